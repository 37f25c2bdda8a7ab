"""Quote ORM Models.

Contains the pricing side of the pipeline:
- QuoteModel: Priced proposal with embedded line items
- ServiceItemModel: Catalog entry referenced by quote line items
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from field_service.db.base import Base, UUIDMixin, TenantMixin, TimestampMixin, UUIDType


# Enums as string constants for database storage
class QuoteStatus:
    """Quote status values."""
    DRAFT = "draft"              # Being prepared by staff
    SENT = "sent"                # Dispatched to the client
    APPROVED = "approved"        # Client approved via secure link
    DECLINED = "declined"        # Client declined via secure link
    EXPIRED = "expired"          # Validity period passed
    SCHEDULED = "scheduled"      # Job created from the approved quote

    ALL = (DRAFT, SENT, APPROVED, DECLINED, EXPIRED, SCHEDULED)


class QuoteModel(Base, UUIDMixin, TenantMixin, TimestampMixin):
    """Quote ORM model.

    Line items are stored as a JSON list of dicts with keys
    ``service_item_id``, ``description``, ``quantity``, ``unit_price`` and
    ``total``. Money amounts are integer cents.
    """

    __tablename__ = "quotes"

    request_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    client_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False, index=True)
    property_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    line_items: Mapped[list[dict[str, Any]]] = mapped_column(
        nullable=False,
        default=list,
    )

    subtotal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=QuoteStatus.DRAFT,
        comment="draft, sent, approved, declined, expired, scheduled",
    )

    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_quotes_tenant_status", "tenant_id", "status"),
    )

    def service_item_ids(self) -> list[UUID]:
        """Service item references of all line items, in line order."""
        ids = []
        for item in self.line_items or []:
            ref = item.get("service_item_id")
            if ref:
                ids.append(ref if isinstance(ref, UUID) else UUID(str(ref)))
        return ids

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, status={self.status}, title={self.title!r})>"


class ServiceItemModel(Base, UUIDMixin, TenantMixin, TimestampMixin):
    """Catalog service item (e.g. "Lawn mowing, small yard")."""

    __tablename__ = "service_items"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_duration_minutes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Typical on-site time; feeds the suggested visit length",
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ServiceItem(id={self.id}, name={self.name!r})>"
