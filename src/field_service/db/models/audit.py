"""Audit ORM Model.

Append-only record of lifecycle events. Rows are written by the core and
never read back by it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from field_service.db.base import Base, UUIDMixin, TenantMixin, UUIDType, utcnow


class PrincipalType:
    """Who performed an audited action."""
    INTERNAL = "internal"        # Authenticated staff user
    EXTERNAL = "external"        # Client acting through a secure link token
    SYSTEM = "system"            # Maintenance jobs


class AuditEventModel(Base, UUIDMixin, TenantMixin):
    """Immutable audit event.

    Note: This model intentionally does NOT use TimestampMixin
    because audit events are never updated.
    """

    __tablename__ = "audit_events"

    principal_type: Mapped[str] = mapped_column(String(20), nullable=False)
    principal_id: Mapped[str] = mapped_column(String(128), nullable=False)

    event_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    subject_type: Mapped[str] = mapped_column(String(32), nullable=False)
    subject_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False)

    correlation_id: Mapped[str] = mapped_column(String(64), nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_audit_events_subject", "tenant_id", "subject_type", "subject_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditEvent(event={self.event_name}, subject={self.subject_type}:{self.subject_id})>"
