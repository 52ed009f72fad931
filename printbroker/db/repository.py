"""
Print job repository for database operations.
Implements the core data access patterns for job management.
"""

import logging
from datetime import datetime
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from printbroker.constants import JobStatus
from printbroker.db.models import PrintJob, utcnow

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for print job database operations.

    Implements atomic operations for:
    - Job submission
    - Oldest-pending lookup per client
    - Claiming with a compare-and-swap on status
    - Status reporting
    - Aged job deletion for cleanup
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def create_job(
        self,
        client_id: str,
        printer_id: str,
        storage_id: str,
        options: str = "",
        context: str | None = None,
    ) -> PrintJob:
        """
        Create a new pending print job.

        Args:
            client_id: The client identity the job is addressed to.
            printer_id: Spooler destination name or protocol://host locator.
            storage_id: Reference to the stored payload blob.
            options: Spooler options passed through verbatim.
            context: Optional free-text context supplied by the producer.

        Returns:
            The created PrintJob.
        """
        now = utcnow()
        job = PrintJob(
            client_id=client_id,
            printer_id=printer_id,
            storage_id=storage_id,
            options=options or "",
            context=context,
            status=JobStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._session.add(job)
        await self._session.flush()

        logger.info(
            "Created print job",
            extra={"job_id": str(job.id), "client_id": client_id, "printer_id": printer_id}
        )
        return job

    async def get_job(self, job_id: UUID) -> PrintJob | None:
        """
        Get a job by ID.

        Args:
            job_id: The job UUID.

        Returns:
            The PrintJob or None if not found.
        """
        stmt = select(PrintJob).where(PrintJob.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_oldest_pending_job(self, client_id: str) -> PrintJob | None:
        """
        Get the oldest pending job for a client.

        Ordering is created_at then id, so equal timestamps still give a
        single deterministic answer.

        Args:
            client_id: The client identity.

        Returns:
            The oldest pending PrintJob or None.
        """
        stmt = (
            select(PrintJob)
            .where(
                and_(
                    PrintJob.client_id == client_id,
                    PrintJob.status == JobStatus.PENDING,
                )
            )
            .order_by(PrintJob.created_at.asc(), PrintJob.id.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_processing(self, job_id: UUID) -> PrintJob | None:
        """
        Move a job from PENDING to PROCESSING.

        The status check and the write are a single conditional UPDATE, so
        among any number of concurrent callers exactly one gets the row back.

        Args:
            job_id: The job UUID.

        Returns:
            The updated PrintJob, or None if the job is absent or no longer pending.
        """
        stmt = (
            update(PrintJob)
            .where(
                and_(
                    PrintJob.id == job_id,
                    PrintJob.status == JobStatus.PENDING,
                )
            )
            .values(
                status=JobStatus.PROCESSING,
                updated_at=utcnow(),
            )
            .returning(PrintJob)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_job_status(
        self,
        job_id: UUID,
        status: JobStatus,
        error: str | None = None,
    ) -> None:
        """
        Write a job's status unconditionally.

        Callers are responsible for passing a legal transition.

        Args:
            job_id: The job UUID.
            status: The new status.
            error: Failure detail, only meaningful with FAILED.
        """
        stmt = (
            update(PrintJob)
            .where(PrintJob.id == job_id)
            .values(
                status=status,
                error=error,
                updated_at=utcnow(),
            )
        )
        await self._session.execute(stmt)

        logger.info(
            "Updated job status",
            extra={"job_id": str(job_id), "status": status.value, "error": error}
        )

    async def list_jobs(
        self,
        client_id: str | None = None,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[PrintJob], int]:
        """
        List jobs with optional filtering, newest first.

        Args:
            client_id: Optional client filter.
            status: Optional status filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count).
        """
        filters = []
        if client_id is not None:
            filters.append(PrintJob.client_id == client_id)
        if status is not None:
            filters.append(PrintJob.status == status)

        count_stmt = select(func.count()).select_from(PrintJob)
        stmt = select(PrintJob)
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))

        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            stmt.order_by(PrintJob.created_at.desc(), PrintJob.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all(), total

    async def search_jobs_by_context(
        self,
        query: str,
        client_id: str | None = None,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[PrintJob], int]:
        """
        Find jobs whose context contains the query text (case-insensitive).

        LIKE wildcards in the query match literally.

        Args:
            query: Text to look for.
            client_id: Optional client filter.
            status: Optional status filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count), newest first.
        """
        filters = [PrintJob.context.icontains(query, autoescape=True)]
        if client_id is not None:
            filters.append(PrintJob.client_id == client_id)
        if status is not None:
            filters.append(PrintJob.status == status)

        count_stmt = select(func.count()).select_from(PrintJob).where(and_(*filters))
        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(PrintJob)
            .where(and_(*filters))
            .order_by(PrintJob.created_at.desc(), PrintJob.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all(), total

    async def get_pending_count(self, client_id: str | None = None) -> int:
        """
        Get the number of pending jobs.

        Args:
            client_id: Optional client filter.

        Returns:
            Number of pending jobs.
        """
        filters = [PrintJob.status == JobStatus.PENDING]
        if client_id is not None:
            filters.append(PrintJob.client_id == client_id)

        stmt = select(func.count()).select_from(PrintJob).where(and_(*filters))
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def get_job_stats(
        self,
        client_id: str | None = None,
    ) -> dict[str, int]:
        """
        Get job counts by status.

        Args:
            client_id: Optional client filter.

        Returns:
            Dictionary of status -> count.
        """
        stmt = select(PrintJob.status, func.count()).group_by(PrintJob.status)
        if client_id is not None:
            stmt = stmt.where(PrintJob.client_id == client_id)

        result = await self._session.execute(stmt)
        return {status.value: count for status, count in result.all()}

    async def delete_jobs_created_before(
        self,
        cutoff: datetime,
        limit: int,
    ) -> list[str]:
        """
        Delete up to ``limit`` jobs created before the cutoff, oldest first.

        Args:
            cutoff: Jobs created strictly before this instant are deleted.
            limit: Maximum number of jobs to delete in this call.

        Returns:
            The storage ids of the deleted jobs (one entry per job).
        """
        stmt = (
            select(PrintJob.id, PrintJob.storage_id)
            .where(PrintJob.created_at < cutoff)
            .order_by(PrintJob.created_at.asc(), PrintJob.id.asc())
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).all()
        if not rows:
            return []

        await self._session.execute(
            delete(PrintJob).where(PrintJob.id.in_([row.id for row in rows]))
        )

        logger.info(
            f"Deleted {len(rows)} aged print jobs",
            extra={"cutoff": cutoff.isoformat()}
        )
        return [row.storage_id for row in rows]

    async def get_referenced_storage_ids(
        self,
        storage_ids: Iterable[str],
    ) -> set[str]:
        """
        Return the subset of storage ids still referenced by at least one job.

        Args:
            storage_ids: Candidate storage ids.

        Returns:
            Storage ids that must not be deleted.
        """
        candidates = set(storage_ids)
        if not candidates:
            return set()

        stmt = (
            select(PrintJob.storage_id)
            .where(PrintJob.storage_id.in_(candidates))
            .distinct()
        )
        result = await self._session.execute(stmt)
        return set(result.scalars().all())
