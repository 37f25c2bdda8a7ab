"""Owner notifications for client quote responses."""

from __future__ import annotations

from typing import Awaitable, Callable
from uuid import UUID

from field_service.config import NotificationSettings
from field_service.core.logging import get_logger
from field_service.db.models.quotes import QuoteModel
from field_service.integrations.email.base import EmailGateway
from field_service.integrations.email.templates import quote_response_email

log = get_logger(__name__)

# Resolves the owner email address of a tenant
OwnerEmailLookup = Callable[[UUID], Awaitable[str | None]]


class QuoteResponseNotifier:
    """Emails the tenant owner when a client approves or declines a quote.

    Delivery is best-effort: every failure is logged and swallowed.
    """

    def __init__(
        self,
        email_gateway: EmailGateway,
        settings: NotificationSettings,
        owner_email_lookup: OwnerEmailLookup | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            email_gateway: Gateway used for delivery
            settings: Notification settings (base URL, fallback recipient)
            owner_email_lookup: Optional async resolver of a tenant's owner email
        """
        self._gateway = email_gateway
        self._settings = settings
        self._owner_email_lookup = owner_email_lookup

    async def _resolve_recipient(self, tenant_id: UUID) -> str | None:
        if self._owner_email_lookup is not None:
            email = await self._owner_email_lookup(tenant_id)
            if email:
                return email
        return self._settings.owner_email or None

    async def notify_quote_response(
        self,
        tenant_id: UUID,
        quote: QuoteModel,
        action: str,
        correlation_id: str | None = None,
    ) -> bool:
        """Send the quote response email.

        Returns:
            True if the gateway accepted the message
        """
        if not self._settings.enabled:
            return False

        try:
            recipient = await self._resolve_recipient(tenant_id)
            if not recipient:
                log.info(
                    "No owner email for quote notification",
                    tenant_id=str(tenant_id),
                    quote_id=str(quote.id),
                )
                return False

            message = quote_response_email(
                to=recipient,
                quote_title=quote.title,
                action=action,
                base_url=self._settings.app_base_url,
                quote_id=quote.id,
            )
            result = await self._gateway.send(message)
        except Exception:
            log.warning(
                "Quote notification failed",
                tenant_id=str(tenant_id),
                quote_id=str(quote.id),
                correlation_id=correlation_id,
                exc_info=True,
            )
            return False

        if not result.success:
            log.warning(
                "Quote notification rejected",
                tenant_id=str(tenant_id),
                quote_id=str(quote.id),
                error=result.error_message,
            )
            return False

        return True
