"""Visit status transitions with job status derivation.

Visit state machine:

    scheduled -> en_route | started | cancelled
    en_route  -> started | cancelled
    started   -> completed | cancelled
    completed, cancelled: terminal

A job's status is never set by callers. It is recomputed from all of the
job's visits after every visit transition.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from field_service.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from field_service.core.logging import get_logger, resolve_correlation_id
from field_service.db.base import utcnow
from field_service.db.models.audit import PrincipalType
from field_service.db.models.jobs import JobStatus, VisitModel, VisitStatus
from field_service.db.repositories.jobs import JobRepository, VisitRepository
from field_service.services.audit_trail import AuditTrail

log = get_logger(__name__)


class UserRole:
    """Tenant membership roles."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    PRIVILEGED = (OWNER, ADMIN)


VALID_TRANSITIONS: dict[str, tuple[str, ...]] = {
    VisitStatus.SCHEDULED: (VisitStatus.EN_ROUTE, VisitStatus.STARTED, VisitStatus.CANCELLED),
    VisitStatus.EN_ROUTE: (VisitStatus.STARTED, VisitStatus.CANCELLED),
    VisitStatus.STARTED: (VisitStatus.COMPLETED, VisitStatus.CANCELLED),
    VisitStatus.COMPLETED: (),
    VisitStatus.CANCELLED: (),
}


def valid_transitions(status: str) -> tuple[str, ...]:
    """Statuses a visit in ``status`` may move to."""
    return VALID_TRANSITIONS.get(status, ())


def is_valid_transition(from_status: str, to_status: str) -> bool:
    return to_status in valid_transitions(from_status)


def derive_job_status(
    job_status: str,
    trigger_status: str,
    visit_statuses: Iterable[str],
) -> str | None:
    """Job status implied by a visit transition.

    Args:
        job_status: Current job status
        trigger_status: Status the visit just moved to
        visit_statuses: Statuses of all of the job's visits, after the move

    Returns:
        New job status, or None if the job should stay as it is
    """
    if trigger_status == VisitStatus.STARTED:
        if job_status == JobStatus.SCHEDULED:
            return JobStatus.IN_PROGRESS
        return None

    if trigger_status not in VisitStatus.TERMINAL:
        return None

    statuses = list(visit_statuses)
    if not statuses or any(s not in VisitStatus.TERMINAL for s in statuses):
        return None

    if all(s == VisitStatus.CANCELLED for s in statuses):
        return JobStatus.CANCELLED
    return JobStatus.COMPLETED


class VisitStatusService:
    """Drives visit transitions and keeps the parent job in step.

    Usage:
        service = VisitStatusService(visit_repo, job_repo, audit)
        visit = await service.transition_visit_status(
            tenant_id, user_id, UserRole.MEMBER, visit_id, VisitStatus.STARTED,
        )
    """

    def __init__(
        self,
        visit_repo: VisitRepository,
        job_repo: JobRepository,
        audit: AuditTrail,
    ) -> None:
        self._visit_repo = visit_repo
        self._job_repo = job_repo
        self._audit = audit

    async def transition_visit_status(
        self,
        tenant_id: UUID,
        caller_user_id: UUID,
        caller_role: str,
        visit_id: UUID,
        new_status: str,
        correlation_id: str | None = None,
    ) -> VisitModel:
        """Move a visit to ``new_status``.

        Owners and admins may transition any visit. Members may only
        transition visits assigned to them and may never cancel.

        Args:
            tenant_id: Owning tenant
            caller_user_id: Acting staff member
            caller_role: ``owner``, ``admin`` or ``member``
            visit_id: Visit to transition
            new_status: Target status
            correlation_id: Optional ID tying together log lines and audit events

        Returns:
            Updated visit

        Raises:
            NotFoundError: Visit does not exist in the tenant
            ForbiddenError: Caller's role does not allow the transition
            ValidationError: Transition not allowed from the current status
            ConflictError: Visit status changed concurrently
        """
        correlation_id = resolve_correlation_id(correlation_id)

        visit = await self._visit_repo.get(tenant_id, visit_id)
        if visit is None:
            raise NotFoundError("Visit not found", details={"visit_id": str(visit_id)})

        if caller_role not in UserRole.PRIVILEGED:
            if visit.assigned_user_id != caller_user_id:
                raise ForbiddenError("You can only transition your own assigned visits")
            if new_status == VisitStatus.CANCELLED:
                raise ForbiddenError("Only owners and admins can cancel visits")

        if new_status not in VisitStatus.ALL:
            raise ValidationError(f"Unknown visit status '{new_status}'")

        previous_status = visit.status
        if not is_valid_transition(previous_status, new_status):
            allowed = valid_transitions(previous_status)
            raise ValidationError(
                f"Cannot transition from '{previous_status}' to '{new_status}'. "
                f"Valid transitions: {', '.join(allowed) if allowed else 'none (terminal status)'}"
            )

        extra_fields = {"completed_at": utcnow()} if new_status == VisitStatus.COMPLETED else None
        updated = await self._visit_repo.update_status(
            tenant_id,
            visit_id,
            new_status,
            extra_fields=extra_fields,
            expected_statuses=[previous_status],
        )
        if updated is None:
            raise ConflictError("Visit status was changed concurrently. Please retry.")

        log.info(
            "Visit status changed",
            tenant_id=str(tenant_id),
            visit_id=str(visit_id),
            previous_status=previous_status,
            status=new_status,
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(caller_user_id),
            event_name=f"visit.{new_status}",
            subject_type="visit",
            subject_id=visit_id,
            correlation_id=correlation_id,
            metadata={"previous_status": previous_status},
        )

        try:
            async with self._visit_repo.session.begin_nested():
                await self._derive_job_status(
                    tenant_id, caller_user_id, updated, new_status, correlation_id
                )
        except Exception:
            log.warning(
                "Job status derivation failed",
                tenant_id=str(tenant_id),
                visit_id=str(visit_id),
                job_id=str(updated.job_id),
                correlation_id=correlation_id,
                exc_info=True,
            )

        return updated

    async def _derive_job_status(
        self,
        tenant_id: UUID,
        caller_user_id: UUID,
        visit: VisitModel,
        new_status: str,
        correlation_id: str,
    ) -> None:
        job = await self._job_repo.get_for_update(tenant_id, visit.job_id)
        if job is None:
            log.warning("Visit has no job", visit_id=str(visit.id), job_id=str(visit.job_id))
            return

        visits = await self._visit_repo.list_by_job_id(tenant_id, job.id)
        derived = derive_job_status(job.status, new_status, [v.status for v in visits])
        if derived is None or derived == job.status:
            return

        previous_status = job.status
        await self._job_repo.set_status(tenant_id, job.id, derived)

        log.info(
            "Job status derived",
            tenant_id=str(tenant_id),
            job_id=str(job.id),
            previous_status=previous_status,
            status=derived,
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(caller_user_id),
            event_name=f"job.{derived}",
            subject_type="job",
            subject_id=job.id,
            correlation_id=correlation_id,
            metadata={"previous_status": previous_status},
        )
