"""Email gateway factory.

Supported providers:
- smtp: aiosmtplib delivery
- mock: in-memory, for development and testing
"""

from __future__ import annotations

from field_service.config import EmailSettings, get_settings
from field_service.core.logging import get_logger
from field_service.integrations.email.base import EmailGateway, MockEmailGateway

log = get_logger(__name__)


# Singleton instance
_email_gateway: EmailGateway | None = None


def create_email_gateway(email_config: EmailSettings) -> EmailGateway:
    """Build a gateway for the given settings.

    Falls back to the mock gateway when email is disabled or the selected
    provider is not configured.
    """
    if not email_config.enabled:
        log.info("Email gateway disabled, using mock")
        return MockEmailGateway()

    provider = email_config.provider.lower()

    if provider == "smtp":
        smtp_config = email_config.smtp
        if not smtp_config.host:
            log.warning("SMTP host not configured, using mock email")
            return MockEmailGateway()

        from field_service.integrations.email.smtp import SMTPEmailGateway

        log.info("SMTP email gateway initialized", host=smtp_config.host, port=smtp_config.port)
        return SMTPEmailGateway(
            host=smtp_config.host,
            port=smtp_config.port,
            username=smtp_config.username or None,
            password=smtp_config.password or None,
            use_tls=smtp_config.use_tls,
            use_ssl=smtp_config.use_ssl,
            from_email=email_config.from_email or None,
            from_name=email_config.from_name or None,
        )

    if provider != "mock":
        log.warning("Unknown email provider, using mock", provider=provider)
    return MockEmailGateway()


def get_email_gateway() -> EmailGateway:
    """Get the configured email gateway (process-wide singleton)."""
    global _email_gateway

    if _email_gateway is None:
        _email_gateway = create_email_gateway(get_settings().email)

    return _email_gateway


def reset_email_gateway() -> None:
    """Reset the email gateway (for testing)."""
    global _email_gateway
    _email_gateway = None
