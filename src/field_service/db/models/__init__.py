"""Database Models for the lifecycle engine.

Quote Models:
- QuoteModel: Priced proposal with line items
- ServiceItemModel: Catalog entry with estimated duration

Execution Models:
- JobModel: Engagement derived from one approved quote
- VisitModel: Scheduled occurrence of work under a job
- VisitPhotoModel: Photo evidence attached to a visit

Audit Models:
- AuditEventModel: Append-only audit trail
"""

from field_service.db.models.quotes import (
    QuoteStatus,
    QuoteModel,
    ServiceItemModel,
)
from field_service.db.models.jobs import (
    JobStatus,
    VisitStatus,
    PhotoStatus,
    JobModel,
    VisitModel,
    VisitPhotoModel,
)
from field_service.db.models.audit import (
    PrincipalType,
    AuditEventModel,
)

__all__ = [
    # Quotes
    "QuoteStatus",
    "QuoteModel",
    "ServiceItemModel",
    # Jobs and visits
    "JobStatus",
    "VisitStatus",
    "PhotoStatus",
    "JobModel",
    "VisitModel",
    "VisitPhotoModel",
    # Audit
    "PrincipalType",
    "AuditEventModel",
]
