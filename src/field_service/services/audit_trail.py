"""Best-effort audit trail.

Audit events are a write-only side channel: recording one must never fail
the operation being audited.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from field_service.core.logging import get_logger
from field_service.db.repositories.audit import AuditEventRepository

log = get_logger(__name__)


class AuditTrail:
    """Fire-and-forget wrapper around the audit repository.

    Usage:
        audit = AuditTrail(AuditEventRepository(session))
        await audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(user_id),
            event_name="visit.started",
            subject_type="visit",
            subject_id=visit.id,
            correlation_id=correlation_id,
        )
    """

    def __init__(self, audit_repo: AuditEventRepository) -> None:
        self._audit_repo = audit_repo

    async def record(
        self,
        tenant_id: UUID,
        principal_type: str,
        principal_id: str,
        event_name: str,
        subject_type: str,
        subject_id: UUID,
        correlation_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append an audit event, logging and discarding any failure."""
        try:
            await self._audit_repo.record(
                tenant_id=tenant_id,
                principal_type=principal_type,
                principal_id=principal_id,
                event_name=event_name,
                subject_type=subject_type,
                subject_id=subject_id,
                correlation_id=correlation_id,
                metadata=metadata,
            )
        except Exception:
            log.warning(
                "Audit event not recorded",
                event_name=event_name,
                subject_type=subject_type,
                subject_id=str(subject_id),
                tenant_id=str(tenant_id),
                correlation_id=correlation_id,
                exc_info=True,
            )
