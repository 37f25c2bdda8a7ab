"""Core building blocks: error taxonomy and logging."""

from field_service.core.exceptions import (
    FieldServiceError,
    NotFoundError,
    ValidationError,
    ForbiddenError,
    ConflictError,
    is_unique_violation,
)
from field_service.core.logging import (
    correlation_context,
    get_logger,
    new_correlation_id,
    resolve_correlation_id,
    setup_logging,
)

__all__ = [
    "FieldServiceError",
    "NotFoundError",
    "ValidationError",
    "ForbiddenError",
    "ConflictError",
    "is_unique_violation",
    "get_logger",
    "setup_logging",
    "correlation_context",
    "new_correlation_id",
    "resolve_correlation_id",
]
