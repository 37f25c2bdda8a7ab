"""Lifecycle orchestrators.

- QuoteLifecycleService: client responses and staff quote transitions
- JobCreationService: approved quote -> job + first visit
- VisitStatusService: visit state machine with job status derivation
- VisitPhotoService: photo evidence with a bounded quota
"""

from field_service.core.logging import new_correlation_id
from field_service.services.audit_trail import AuditTrail
from field_service.services.job_creation import (
    JobCreationResult,
    JobCreationService,
    calculate_suggested_duration,
)
from field_service.services.notifications import QuoteResponseNotifier
from field_service.services.quote_lifecycle import QuoteAction, QuoteLifecycleService
from field_service.services.visit_photos import (
    ALLOWED_CONTENT_TYPES,
    PhotoUpload,
    PhotoWithUrl,
    VisitPhotoService,
)
from field_service.services.visit_status import (
    VALID_TRANSITIONS,
    UserRole,
    VisitStatusService,
    derive_job_status,
    is_valid_transition,
    valid_transitions,
)

__all__ = [
    "AuditTrail",
    "new_correlation_id",
    "JobCreationResult",
    "JobCreationService",
    "calculate_suggested_duration",
    "QuoteResponseNotifier",
    "QuoteAction",
    "QuoteLifecycleService",
    "ALLOWED_CONTENT_TYPES",
    "PhotoUpload",
    "PhotoWithUrl",
    "VisitPhotoService",
    "VALID_TRANSITIONS",
    "UserRole",
    "VisitStatusService",
    "derive_job_status",
    "is_valid_transition",
    "valid_transitions",
]
