"""
API request and response type definitions.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from printbroker.constants import JobStatus


class CreatePrintJobResponse(BaseModel):
    """Response body after submitting a print job."""

    id: UUID
    client_id: str
    status: JobStatus
    created_at: datetime
    message: str = "Print job created"


class PrintJobResponse(BaseModel):
    """Full print job details response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: str
    printer_id: str
    storage_id: str
    options: str
    context: str | None
    status: JobStatus
    error: str | None
    created_at: datetime
    updated_at: datetime


class PrintJobListResponse(BaseModel):
    """Paginated list of print jobs."""

    jobs: list[PrintJobResponse]
    total: int
    page: int
    page_size: int
    has_next: bool


class OldestPendingResponse(BaseModel):
    """The job a worker for this client would claim next."""

    client_id: str
    job_id: UUID | None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime
