"""Email integration for owner notifications."""

from field_service.integrations.email.base import (
    EmailGateway,
    EmailMessage,
    EmailResult,
    EmailStatus,
    MockEmailGateway,
)
from field_service.integrations.email.factory import (
    create_email_gateway,
    get_email_gateway,
    reset_email_gateway,
)
from field_service.integrations.email.templates import quote_link, quote_response_email

__all__ = [
    "EmailGateway",
    "EmailMessage",
    "EmailResult",
    "EmailStatus",
    "MockEmailGateway",
    "create_email_gateway",
    "get_email_gateway",
    "reset_email_gateway",
    "quote_link",
    "quote_response_email",
]
