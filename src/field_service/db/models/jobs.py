"""Job, Visit and Visit Photo ORM Models.

Contains models for the execution side of the pipeline:
- JobModel: Confirmed engagement derived from exactly one quote
- VisitModel: One scheduled occurrence of work under a job
- VisitPhotoModel: Photo evidence attached to a visit
"""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from field_service.db.base import Base, UUIDMixin, TenantMixin, TimestampMixin, UUIDType


class JobStatus:
    """Job status values (derived from visit statuses)."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VisitStatus:
    """Visit status values."""
    SCHEDULED = "scheduled"      # Created, maybe not yet timed
    EN_ROUTE = "en_route"        # Technician on the way
    STARTED = "started"          # Technician on site
    COMPLETED = "completed"      # Work finished
    CANCELLED = "cancelled"      # Visit called off

    ALL = (SCHEDULED, EN_ROUTE, STARTED, COMPLETED, CANCELLED)
    TERMINAL = (COMPLETED, CANCELLED)


class PhotoStatus:
    """Visit photo status values."""
    PENDING = "pending"          # Upload authorised, binary not confirmed
    READY = "ready"              # Client confirmed the upload


class JobModel(Base, UUIDMixin, TenantMixin, TimestampMixin):
    """Job ORM model.

    One job per quote, enforced by ``uq_jobs_tenant_quote``. The status is a
    projection of the job's visits and is never set directly by callers.
    """

    __tablename__ = "jobs"

    quote_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("quotes.id"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False, index=True)
    property_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.SCHEDULED,
        comment="scheduled, in_progress, completed, cancelled",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "quote_id", name="uq_jobs_tenant_quote"),
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, status={self.status}, quote_id={self.quote_id})>"


class VisitModel(Base, UUIDMixin, TenantMixin, TimestampMixin):
    """Visit ORM model.

    ``completed_at`` is set if and only if the status is ``completed``.
    """

    __tablename__ = "visits"

    job_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_user_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        nullable=True,
        index=True,
    )

    scheduled_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=60,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VisitStatus.SCHEDULED,
        comment="scheduled, en_route, started, completed, cancelled",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Visit(id={self.id}, status={self.status}, job_id={self.job_id})>"


class VisitPhotoModel(Base, UUIDMixin, TenantMixin, TimestampMixin):
    """Visit photo ORM model."""

    __tablename__ = "visit_photos"

    visit_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("visits.id", ondelete="CASCADE"),
        nullable=False,
    )
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PhotoStatus.PENDING,
        comment="pending, ready",
    )

    __table_args__ = (
        Index("ix_visit_photos_visit_status", "tenant_id", "visit_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<VisitPhoto(id={self.id}, status={self.status}, visit_id={self.visit_id})>"
