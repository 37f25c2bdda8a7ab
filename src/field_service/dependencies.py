"""Service wiring.

Builds the orchestrator graph for one session so that every repository an
operation touches shares the caller's transaction.

Usage:
    from field_service.db import get_db_context
    from field_service.dependencies import build_services

    async with get_db_context() as db:
        services = build_services(db)
        await services.visits.transition_visit_status(...)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from field_service.config import Settings, get_settings
from field_service.db.repositories import (
    AuditEventRepository,
    JobRepository,
    QuoteRepository,
    ServiceItemRepository,
    VisitPhotoRepository,
    VisitRepository,
)
from field_service.db.session import get_session_factory
from field_service.db.unit_of_work import UnitOfWork
from field_service.integrations.email.base import EmailGateway
from field_service.integrations.email.factory import get_email_gateway
from field_service.integrations.storage.base import FileStorage
from field_service.integrations.storage.factory import get_file_storage
from field_service.services.audit_trail import AuditTrail
from field_service.services.job_creation import JobCreationService
from field_service.services.notifications import OwnerEmailLookup, QuoteResponseNotifier
from field_service.services.quote_lifecycle import QuoteLifecycleService
from field_service.services.visit_photos import VisitPhotoService
from field_service.services.visit_status import VisitStatusService


@dataclass
class Services:
    """Orchestrators bound to one session."""

    quotes: QuoteLifecycleService
    jobs: JobCreationService
    visits: VisitStatusService
    photos: VisitPhotoService
    audit: AuditTrail


def build_services(
    session: AsyncSession,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    storage: FileStorage | None = None,
    email_gateway: EmailGateway | None = None,
    owner_email_lookup: OwnerEmailLookup | None = None,
    settings: Settings | None = None,
) -> Services:
    """Build all orchestrators for a session.

    Args:
        session: Session shared by the single-entity operations
        session_factory: Source of fresh sessions for job creation
        storage: Object storage gateway (default: configured gateway)
        email_gateway: Email gateway (default: configured gateway)
        owner_email_lookup: Resolver of tenant owner email addresses
        settings: Application settings (default: cached settings)
    """
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()
    storage = storage or get_file_storage()
    email_gateway = email_gateway or get_email_gateway()

    quote_repo = QuoteRepository(session)
    job_repo = JobRepository(session)
    visit_repo = VisitRepository(session)
    audit = AuditTrail(AuditEventRepository(session))

    notifier = QuoteResponseNotifier(email_gateway, settings.notifications, owner_email_lookup)

    return Services(
        quotes=QuoteLifecycleService(quote_repo, audit, notifier),
        jobs=JobCreationService(
            quote_repo,
            ServiceItemRepository(session),
            job_repo,
            visit_repo,
            UnitOfWork(session_factory),
            default_duration_minutes=settings.jobs.default_visit_duration_minutes,
        ),
        visits=VisitStatusService(visit_repo, job_repo, audit),
        photos=VisitPhotoService(
            visit_repo,
            VisitPhotoRepository(session),
            storage,
            audit,
            settings.photos,
        ),
        audit=audit,
    )
