"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from printbroker.constants import JobStatus


@dataclass(frozen=True)
class ClaimedJob:
    """Snapshot of a job taken at claim time, plus where to fetch its payload."""

    job_id: UUID
    client_id: str
    printer_id: str
    storage_id: str
    options: str
    status: JobStatus
    created_at: datetime
    location: str

    @classmethod
    def from_job(cls, job, location: str) -> "ClaimedJob":
        """Build a snapshot from a PrintJob row."""
        return cls(
            job_id=job.id,
            client_id=job.client_id,
            printer_id=job.printer_id,
            storage_id=job.storage_id,
            options=job.options,
            status=job.status,
            created_at=job.created_at,
            location=location,
        )


@dataclass(frozen=True)
class SpoolResult:
    """Outcome of one spooler command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class CleanupResult:
    """
    Outcome of one bounded cleanup batch.

    has_more tells the scheduler to invoke the batch again.
    """

    deleted_jobs: int = 0
    deleted_blobs: int = 0
    has_more: bool = False
