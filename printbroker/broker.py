"""
Claim broker: the only way a job leaves the pending state.

A claim moves one job from PENDING to PROCESSING and resolves its payload
location in a single transaction. Any number of workers may race to claim
the same job; exactly one of them gets it.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from printbroker.constants import SPAN_CLAIM_JOB, TERMINAL_STATUSES, JobStatus
from printbroker.db import get_session_context
from printbroker.db.repository import JobRepository
from printbroker.observability.tracing import get_tracer
from printbroker.storage import StorageUrlSigner
from printbroker.types.job import ClaimedJob

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class ClaimBroker:
    """
    Transactional claim and report operations layered on JobRepository.

    Each public method runs in its own session, committed on success and
    rolled back on error.
    """

    def __init__(
        self,
        url_signer: StorageUrlSigner,
        session_factory: SessionFactory = get_session_context,
    ):
        """
        Initialize the broker.

        Args:
            url_signer: Resolves storage ids to fetchable locations.
            session_factory: Async context manager yielding a session.
        """
        self._url_signer = url_signer
        self._session_factory = session_factory

    async def oldest_pending_for_claim(self, client_id: str) -> UUID | None:
        """
        Get the id of the job a worker for this client should claim next.

        A later claim of the returned id may still lose to another worker.

        Args:
            client_id: The client identity.

        Returns:
            The oldest pending job id, or None.
        """
        async with self._session_factory() as session:
            job = await JobRepository(session).get_oldest_pending_job(client_id)
            return job.id if job is not None else None

    async def claim(self, job_id: UUID) -> ClaimedJob | None:
        """
        Atomically claim a pending job.

        The status change and the location lookup commit together. If the
        lookup raises, the transaction rolls back and the job stays pending.

        Args:
            job_id: The job to claim.

        Returns:
            The claimed job snapshot, or None if the job is absent or
            already claimed.
        """
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOB) as span:
            span.set_attribute("job_id", str(job_id))

            async with self._session_factory() as session:
                job = await JobRepository(session).mark_processing(job_id)
                if job is None:
                    span.set_attribute("claimed", False)
                    return None

                location = self._url_signer.get_url(job.storage_id)
                claimed = ClaimedJob.from_job(job, location)

            span.set_attribute("claimed", True)

        logger.info(
            "Claimed print job",
            extra={"job_id": str(job_id), "client_id": claimed.client_id}
        )
        return claimed

    async def report(
        self,
        job_id: UUID,
        status: JobStatus,
        error: str | None = None,
    ) -> None:
        """
        Record the terminal outcome of a claimed job.

        Args:
            job_id: The job UUID.
            status: COMPLETED or FAILED.
            error: Failure detail for FAILED.

        Raises:
            ValueError: If status is not terminal.
        """
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot report non-terminal status {status!r}")

        async with self._session_factory() as session:
            await JobRepository(session).update_job_status(
                job_id,
                status,
                error=error if status == JobStatus.FAILED else None,
            )
