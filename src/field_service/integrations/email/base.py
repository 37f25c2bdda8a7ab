"""Email gateway port.

Owner notifications go through an ``EmailGateway``; the concrete gateway is
chosen from settings by ``get_email_gateway``.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from field_service.core.logging import get_logger

log = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class EmailStatus(str, Enum):
    """Delivery status reported by a gateway."""

    SENT = "sent"
    BOUNCED = "bounced"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class EmailMessage:
    """Outbound email."""

    to: str | list[str]
    subject: str
    body_text: str | None = None
    body_html: str | None = None
    from_email: str | None = None
    from_name: str | None = None
    reply_to: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.to, str):
            self.to = [self.to]


@dataclass
class EmailResult:
    """Result of one send attempt."""

    success: bool
    message_id: str | None = None
    status: EmailStatus = EmailStatus.UNKNOWN
    provider: str = ""
    error_message: str | None = None
    error_code: str | None = None
    sent_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message_id": self.message_id,
            "status": self.status.value,
            "provider": self.provider,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }


class EmailGateway(ABC):
    """Abstract email gateway."""

    provider = ""

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailResult:
        """Send a single email message.

        Args:
            message: Email message to send

        Returns:
            Result with success status and message ID
        """

    @staticmethod
    def validate_email(email: str) -> bool:
        return bool(_EMAIL_PATTERN.match(email))

    def validate_message(self, message: EmailMessage) -> list[str]:
        """Validate an email message.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not message.to:
            errors.append("At least one recipient is required")
        for email in message.to:
            if not self.validate_email(email):
                errors.append(f"Invalid recipient email: {email}")

        if not message.subject:
            errors.append("Subject is required")

        if not message.body_text and not message.body_html:
            errors.append("Either text or HTML body is required")

        return errors

    def _failure(self, error_message: str, error_code: str | None = None,
                 status: EmailStatus = EmailStatus.FAILED) -> EmailResult:
        return EmailResult(
            success=False,
            status=status,
            provider=self.provider,
            error_message=error_message,
            error_code=error_code,
        )


class MockEmailGateway(EmailGateway):
    """In-memory gateway for development and tests."""

    provider = "mock"

    def __init__(self):
        self._sent_messages: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> EmailResult:
        """Record the message instead of sending it."""
        errors = self.validate_message(message)
        if errors:
            return self._failure("; ".join(errors), "INVALID_MESSAGE")

        message_id = str(uuid4())
        self._sent_messages.append(message)

        log.info(
            "Mock email sent",
            message_id=message_id,
            to=message.to,
            subject=message.subject,
        )

        return EmailResult(
            success=True,
            message_id=message_id,
            status=EmailStatus.SENT,
            provider=self.provider,
            sent_at=datetime.now(timezone.utc),
        )

    @property
    def sent_messages(self) -> list[EmailMessage]:
        """Messages sent so far (for testing)."""
        return list(self._sent_messages)

    def clear(self) -> None:
        self._sent_messages.clear()
