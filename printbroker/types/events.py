"""
Event type definitions for worker notifications.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID


@dataclass(frozen=True)
class PendingJobChange:
    """
    Emitted when the oldest pending job for a client changes.

    job_id is the new oldest pending job, or None when nothing is pending.
    """

    client_id: str
    job_id: UUID | None
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
