"""
Print job read routes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from printbroker.api.auth import ApiKey
from printbroker.constants import API_V1_PREFIX, JobStatus
from printbroker.db import get_async_session
from printbroker.db.repository import JobRepository
from printbroker.types.api import (
    OldestPendingResponse,
    PrintJobListResponse,
    PrintJobResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])
clients_router = APIRouter(prefix=f"{API_V1_PREFIX}/clients", tags=["Jobs"])


@router.get(
    "/stats/summary",
    summary="Get job statistics",
    description="Get job counts by status, optionally for one client.",
)
async def get_job_stats(
    _api_key: ApiKey,
    client_id: str | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """
    Get job statistics.

    Args:
        client_id: Optional client filter.
        session: Database session.

    Returns:
        Status counts and the number of pending jobs.
    """
    repo = JobRepository(session)
    stats = await repo.get_job_stats(client_id=client_id)
    pending = await repo.get_pending_count(client_id=client_id)

    return {
        "stats": stats,
        "pending": pending,
    }


@router.get(
    "/{job_id}",
    response_model=PrintJobResponse,
    summary="Get job details",
    description="Get detailed information about a specific print job.",
)
async def get_job(
    job_id: UUID,
    _api_key: ApiKey,
    session: AsyncSession = Depends(get_async_session),
) -> PrintJobResponse:
    """
    Get job details by ID.

    Raises:
        HTTPException: If the job does not exist.
    """
    repo = JobRepository(session)
    job = await repo.get_job(job_id)

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return PrintJobResponse.model_validate(job)


@router.get(
    "",
    response_model=PrintJobListResponse,
    summary="List jobs",
    description=(
        "List print jobs with optional filtering. "
        "Passing context searches job context text instead."
    ),
)
async def list_jobs(
    _api_key: ApiKey,
    client_id: str | None = Query(default=None),
    status: JobStatus | None = Query(default=None),
    context: str | None = Query(default=None, min_length=1),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_async_session),
) -> PrintJobListResponse:
    """
    List jobs, newest first.

    Args:
        client_id: Optional client filter.
        status: Optional status filter.
        context: Optional context search text.
        page: Page number (1-indexed).
        page_size: Number of items per page.
        session: Database session.

    Returns:
        PrintJobListResponse with paginated jobs.
    """
    repo = JobRepository(session)
    offset = (page - 1) * page_size

    if context is not None:
        jobs, total = await repo.search_jobs_by_context(
            context,
            client_id=client_id,
            status=status,
            limit=page_size,
            offset=offset,
        )
    else:
        jobs, total = await repo.list_jobs(
            client_id=client_id,
            status=status,
            limit=page_size,
            offset=offset,
        )

    return PrintJobListResponse(
        jobs=[PrintJobResponse.model_validate(job) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
        has_next=(page * page_size) < total,
    )


@clients_router.get(
    "/{client_id}/oldest-pending",
    response_model=OldestPendingResponse,
    summary="Get the next job for a client",
    description="Get the oldest pending job a worker for this client would claim next.",
)
async def get_oldest_pending(
    client_id: str,
    _api_key: ApiKey,
    session: AsyncSession = Depends(get_async_session),
) -> OldestPendingResponse:
    """
    Get the oldest pending job for a client.

    A null job_id means nothing is pending.
    """
    repo = JobRepository(session)
    job = await repo.get_oldest_pending_job(client_id)

    return OldestPendingResponse(
        client_id=client_id,
        job_id=job.id if job is not None else None,
    )
