"""
Type definitions for the print broker.
Contains input/output type definitions, grouped by module.
"""

from printbroker.types.api import (
    CreatePrintJobResponse,
    HealthResponse,
    OldestPendingResponse,
    PrintJobListResponse,
    PrintJobResponse,
)
from printbroker.types.events import PendingJobChange
from printbroker.types.job import ClaimedJob, CleanupResult, SpoolResult

__all__ = [
    # API types
    "CreatePrintJobResponse",
    "PrintJobResponse",
    "PrintJobListResponse",
    "OldestPendingResponse",
    "HealthResponse",
    # Job types
    "ClaimedJob",
    "SpoolResult",
    "CleanupResult",
    # Event types
    "PendingJobChange",
]
