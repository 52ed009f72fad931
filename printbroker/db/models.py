"""
SQLAlchemy database models.
Defines the print job table.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from printbroker.constants import JobStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class PrintJob(Base):
    """
    A document to print on a destination for one client identity.

    This is the authoritative source of truth for job state.

    Key constraints:
    - status only moves forward: pending -> processing -> completed | failed
    - storage_id may be shared by several jobs; blobs are reclaimed only when
      no job references them
    - (created_at, id) totally orders pending jobs of a client
    """

    __tablename__ = "print_jobs"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    # Routing
    client_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    printer_id: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )

    # Payload
    storage_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    options: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    context: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Status
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="print_job_status", create_constraint=True, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.PENDING,
    )
    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        # Index for the oldest-pending lookup per client
        Index(
            "ix_print_jobs_client_status_created",
            "client_id",
            "status",
            "created_at",
            "id",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"PrintJob(id={self.id}, client={self.client_id}, "
            f"printer={self.printer_id}, status={self.status})"
        )
