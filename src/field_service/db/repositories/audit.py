"""Audit event repository."""
from __future__ import annotations

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from field_service.db.models.audit import AuditEventModel
from field_service.db.repositories.base import TenantRepository


class AuditEventRepository(TenantRepository[AuditEventModel]):
    """Append-only repository for audit events."""

    def __init__(self, session: AsyncSession):
        super().__init__(AuditEventModel, session)

    async def record(
        self,
        *,
        tenant_id: UUID,
        principal_type: str,
        principal_id: str,
        event_name: str,
        subject_type: str,
        subject_id: UUID,
        correlation_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> AuditEventModel:
        """Append one audit event.

        The insert runs in a savepoint so a failed write leaves the
        surrounding transaction usable.
        """
        event = AuditEventModel(
            tenant_id=tenant_id,
            principal_type=principal_type,
            principal_id=str(principal_id),
            event_name=event_name,
            subject_type=subject_type,
            subject_id=subject_id,
            correlation_id=correlation_id,
            metadata_json=metadata,
        )
        async with self._session.begin_nested():
            self._session.add(event)
        return event

    async def list_for_subject(
        self,
        tenant_id: UUID,
        subject_type: str,
        subject_id: UUID,
    ) -> Sequence[AuditEventModel]:
        """Events recorded against one subject, oldest first."""
        stmt = (
            select(AuditEventModel)
            .where(
                AuditEventModel.tenant_id == tenant_id,
                AuditEventModel.subject_type == subject_type,
                AuditEventModel.subject_id == subject_id,
            )
            .order_by(AuditEventModel.created_at, AuditEventModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def list_for_tenant(self, tenant_id: UUID) -> Sequence[AuditEventModel]:
        """All events of a tenant, oldest first."""
        stmt = (
            select(AuditEventModel)
            .where(AuditEventModel.tenant_id == tenant_id)
            .order_by(AuditEventModel.created_at, AuditEventModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
