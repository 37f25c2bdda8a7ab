"""Repository layer for the lifecycle database.

Provides async data access for all domain entities with tenant scoping
and conditional status writes.
"""
from field_service.db.repositories.base import TenantRepository
from field_service.db.repositories.quotes import QuoteRepository, ServiceItemRepository
from field_service.db.repositories.jobs import JobRepository, VisitRepository
from field_service.db.repositories.visit_photos import VisitPhotoRepository
from field_service.db.repositories.audit import AuditEventRepository

__all__ = [
    "TenantRepository",
    "QuoteRepository",
    "ServiceItemRepository",
    "JobRepository",
    "VisitRepository",
    "VisitPhotoRepository",
    "AuditEventRepository",
]
