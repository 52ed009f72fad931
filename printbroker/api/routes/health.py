"""
Health, probe and metrics routes. None of them need the API key.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printbroker import __version__
from printbroker.db import get_async_session
from printbroker.observability.metrics import get_metrics
from printbroker.types.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report service version and whether the job store answers.",
)
async def health_check(
    session: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """Report "degraded" when the job store does not answer."""
    try:
        await session.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError:
        logger.exception("Health check query failed")
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        version=__version__,
        database=database,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Ready once the job store answers.",
)
async def readiness_check(
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Readiness probe. Ready once the database answers."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return {"ready": False}
    return {"ready": True}


@router.get(
    "/live",
    summary="Liveness check",
    description="Answers whenever the process is serving requests.",
)
async def liveness_check() -> dict:
    """Liveness probe."""
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Submission, claim, print and cleanup counters in Prometheus text format.",
)
async def metrics() -> Response:
    collector = get_metrics()
    return Response(
        content=collector.get_metrics(),
        media_type=collector.get_content_type(),
    )
