"""Field Service Exception Hierarchy.

Provides structured error handling with context preservation
and proper HTTP status code mapping.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError


class FieldServiceError(Exception):
    """Base exception for all lifecycle errors.

    Provides:
    - Structured error context
    - HTTP status code mapping
    - Logging-friendly representation
    """

    status_code: int = 500
    error_code: str = "FIELD_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional context for debugging
            cause: Original exception if wrapping
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        """String representation for logging."""
        parts = [f"{self.error_code}: {self.message}"]
        if self.details:
            parts.append(f"details={self.details}")
        if self.cause:
            parts.append(f"cause={self.cause}")
        return " | ".join(parts)


class NotFoundError(FieldServiceError):
    """Entity absent, owned by another tenant, or bound to another visit."""

    status_code = 404
    error_code = "NOT_FOUND"


class ValidationError(FieldServiceError):
    """Illegal state transition, exceeded quota, or malformed input."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class ForbiddenError(FieldServiceError):
    """Caller's role does not permit the operation."""

    status_code = 403
    error_code = "FORBIDDEN"


class ConflictError(FieldServiceError):
    """A concurrent writer won a race that has no idempotent reading."""

    status_code = 409
    error_code = "CONFLICT"


# =============================================================================
# Utility Functions
# =============================================================================

# SQLSTATE for unique_violation (PostgreSQL)
_UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: BaseException, constraint: str | None = None) -> bool:
    """Check whether an exception is a database uniqueness violation.

    Recognises SQLite ("UNIQUE constraint failed") and PostgreSQL
    (SQLSTATE 23505) errors wrapped by SQLAlchemy.

    Args:
        exc: Exception raised by a flush or commit
        constraint: Optional constraint name the violation must mention
            (PostgreSQL only; SQLite reports column names instead)

    Returns:
        True if the exception is a uniqueness violation
    """
    if not isinstance(exc, IntegrityError):
        return False

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    text = str(orig)

    if sqlstate == _UNIQUE_VIOLATION_SQLSTATE:
        if constraint is None:
            return True
        return constraint in text or getattr(orig, "constraint_name", None) == constraint

    return "UNIQUE constraint failed" in text
