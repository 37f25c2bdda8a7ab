"""Job creation from approved quotes.

Turning a quote into work touches three rows: the quote flips to
``scheduled``, a job is created and its first visit is created. All three
writes commit together through a unit of work. Two independent guards keep
duplicates out when the operation is retried or raced: the conditional
status write on the quote and the unique (tenant, quote) constraint on jobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from field_service.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    is_unique_violation,
)
from field_service.core.logging import get_logger, resolve_correlation_id
from field_service.db.base import utcnow
from field_service.db.models.audit import PrincipalType
from field_service.db.models.jobs import JobModel, JobStatus, VisitModel, VisitStatus
from field_service.db.models.quotes import QuoteModel, QuoteStatus, ServiceItemModel
from field_service.db.repositories.jobs import JobRepository, VisitRepository
from field_service.db.repositories.quotes import QuoteRepository, ServiceItemRepository
from field_service.db.unit_of_work import TransactionRepositories, UnitOfWork

log = get_logger(__name__)

DEFAULT_VISIT_DURATION_MINUTES = 60


@dataclass
class JobCreationResult:
    """Outcome of ``create_job_from_quote``.

    ``already_existed`` is True when the job had been created by an earlier
    or concurrent call; the returned rows are then the existing ones.
    """

    job: JobModel
    visit: VisitModel | None
    quote: QuoteModel
    suggested_duration_minutes: int
    already_existed: bool


def calculate_suggested_duration(
    line_items: Iterable[Mapping[str, Any]],
    service_items: Mapping[UUID, ServiceItemModel],
    default_minutes: int = DEFAULT_VISIT_DURATION_MINUTES,
) -> int:
    """Suggested length of the first visit.

    Sums the estimated duration of every line item's service item. Line
    items without a service item, with an unknown one, or whose service item
    has no estimate contribute nothing.

    Args:
        line_items: Quote line items
        service_items: Referenced service items by ID
        default_minutes: Returned when nothing contributes a duration

    Returns:
        Duration in minutes
    """
    total = 0
    for item in line_items:
        ref = item.get("service_item_id")
        if not ref:
            continue
        service_item = service_items.get(ref if isinstance(ref, UUID) else UUID(str(ref)))
        if service_item is not None and service_item.estimated_duration_minutes:
            total += service_item.estimated_duration_minutes

    return total if total > 0 else default_minutes


class JobCreationService:
    """Creates a job and its first visit from an approved quote.

    Usage:
        service = JobCreationService(
            quote_repo, service_item_repo, job_repo, visit_repo,
            UnitOfWork(get_session_factory()),
        )
        result = await service.create_job_from_quote(tenant_id, user_id, quote_id)
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        service_item_repo: ServiceItemRepository,
        job_repo: JobRepository,
        visit_repo: VisitRepository,
        unit_of_work: UnitOfWork,
        default_duration_minutes: int = DEFAULT_VISIT_DURATION_MINUTES,
    ) -> None:
        """Initialize service with repositories.

        Args:
            quote_repo: Quote reads
            service_item_repo: Service catalog reads
            job_repo: Job reads
            visit_repo: Visit reads
            unit_of_work: Runs the three-row write atomically
            default_duration_minutes: Suggested visit length when no line
                item carries an estimate
        """
        self._quote_repo = quote_repo
        self._service_item_repo = service_item_repo
        self._job_repo = job_repo
        self._visit_repo = visit_repo
        self._unit_of_work = unit_of_work
        self._default_duration = default_duration_minutes

    async def create_job_from_quote(
        self,
        tenant_id: UUID,
        user_id: UUID,
        quote_id: UUID,
        correlation_id: str | None = None,
    ) -> JobCreationResult:
        """Create the job for an approved quote, or return the existing one.

        Args:
            tenant_id: Owning tenant
            user_id: Staff member creating the job
            quote_id: Approved quote
            correlation_id: Optional ID tying together log lines and audit events

        Returns:
            Job, first visit, quote and suggested duration

        Raises:
            NotFoundError: Quote does not exist in the tenant
            ValidationError: Quote is not approved, or is scheduled without a job
            ConflictError: Quote changed status while the job was being created
        """
        correlation_id = resolve_correlation_id(correlation_id)

        quote = await self._quote_repo.get(tenant_id, quote_id)
        if quote is None:
            raise NotFoundError("Quote not found", details={"quote_id": str(quote_id)})

        if quote.status == QuoteStatus.SCHEDULED:
            existing = await self._existing_result(tenant_id, quote_id)
            if existing is None:
                raise ValidationError("Quote is in scheduled state but no job was found")
            log.info(
                "Job already exists for quote",
                tenant_id=str(tenant_id),
                quote_id=str(quote_id),
                job_id=str(existing.job.id),
                correlation_id=correlation_id,
            )
            return existing

        if quote.status != QuoteStatus.APPROVED:
            raise ValidationError(f"Cannot create job from quote with status \"{quote.status}\"")

        suggested = await self._suggest_duration(tenant_id, quote)

        async def create(repos: TransactionRepositories) -> JobCreationResult:
            scheduled = await repos.quotes.update_status(
                tenant_id,
                quote_id,
                QuoteStatus.SCHEDULED,
                extra_fields={"scheduled_at": utcnow()},
                expected_statuses=[QuoteStatus.APPROVED],
            )
            if scheduled is None:
                raise ConflictError("Quote has already been transitioned")

            job = await repos.jobs.create(
                JobModel(
                    tenant_id=tenant_id,
                    quote_id=quote_id,
                    client_id=scheduled.client_id,
                    property_id=scheduled.property_id,
                    title=scheduled.title,
                    status=JobStatus.SCHEDULED,
                )
            )
            visit = await repos.visits.create(
                VisitModel(
                    tenant_id=tenant_id,
                    job_id=job.id,
                    assigned_user_id=None,
                    scheduled_start=None,
                    scheduled_end=None,
                    estimated_duration_minutes=suggested,
                    status=VisitStatus.SCHEDULED,
                )
            )

            for event_name, subject_type, subject_id in (
                ("job.created", "job", job.id),
                ("visit.scheduled", "visit", visit.id),
                ("quote.scheduled", "quote", quote_id),
            ):
                await repos.audit.record(
                    tenant_id=tenant_id,
                    principal_type=PrincipalType.INTERNAL,
                    principal_id=str(user_id),
                    event_name=event_name,
                    subject_type=subject_type,
                    subject_id=subject_id,
                    correlation_id=correlation_id,
                )

            return JobCreationResult(
                job=job,
                visit=visit,
                quote=scheduled,
                suggested_duration_minutes=suggested,
                already_existed=False,
            )

        try:
            result = await self._unit_of_work.run(create)
        except IntegrityError as exc:
            if not is_unique_violation(exc, "uq_jobs_tenant_quote"):
                raise
            existing = await self._existing_result(tenant_id, quote_id)
            if existing is None:
                raise
            log.info(
                "Concurrent job creation resolved to existing job",
                tenant_id=str(tenant_id),
                quote_id=str(quote_id),
                job_id=str(existing.job.id),
                correlation_id=correlation_id,
            )
            return existing

        log.info(
            "Job created from quote",
            tenant_id=str(tenant_id),
            quote_id=str(quote_id),
            job_id=str(result.job.id),
            visit_id=str(result.visit.id),
            suggested_duration_minutes=suggested,
            correlation_id=correlation_id,
        )
        return result

    async def _suggest_duration(self, tenant_id: UUID, quote: QuoteModel) -> int:
        ids = quote.service_item_ids()
        service_items = await self._service_item_repo.get_by_ids(tenant_id, set(ids))
        return calculate_suggested_duration(
            quote.line_items or [],
            {item.id: item for item in service_items},
            self._default_duration,
        )

    async def _existing_result(self, tenant_id: UUID, quote_id: UUID) -> JobCreationResult | None:
        job = await self._job_repo.get_by_quote_id(tenant_id, quote_id)
        if job is None:
            return None

        quote = await self._quote_repo.get(tenant_id, quote_id)
        visits = await self._visit_repo.list_by_job_id(tenant_id, job.id)
        first_visit = visits[0] if visits else None
        suggested = (
            first_visit.estimated_duration_minutes
            if first_visit is not None and first_visit.estimated_duration_minutes
            else self._default_duration
        )

        return JobCreationResult(
            job=job,
            visit=first_visit,
            quote=quote,
            suggested_duration_minutes=suggested,
            already_existed=True,
        )
