"""SMTP email gateway.

Async SMTP delivery using aiosmtplib. Works with any SMTP server
(Office 365, Amazon SES SMTP, self-hosted relays).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid

import aiosmtplib

from field_service.core.logging import get_logger
from field_service.integrations.email.base import (
    EmailGateway,
    EmailMessage,
    EmailResult,
    EmailStatus,
)

log = get_logger(__name__)


class SMTPEmailGateway(EmailGateway):
    """SMTP email gateway.

    Attributes:
        host: SMTP server hostname
        port: SMTP server port (25, 465, 587)
        use_tls: Upgrade with STARTTLS after connecting
        use_ssl: Connect over implicit TLS
    """

    provider = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        from_email: str | None = None,
        from_name: str | None = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> EmailResult:
        """Send an email over SMTP.

        Delivery problems are reported in the result, never raised.
        """
        errors = self.validate_message(message)
        if errors:
            return self._failure("; ".join(errors), "INVALID_MESSAGE")

        from_email = message.from_email or self.from_email
        if not from_email:
            return self._failure("No sender email configured", "NO_SENDER")

        mime_message = self.build_mime_message(
            message, from_email, message.from_name or self.from_name
        )

        try:
            async with aiosmtplib.SMTP(
                hostname=self.host,
                port=self.port,
                use_tls=self.use_ssl,
                start_tls=self.use_tls and not self.use_ssl,
                timeout=self.timeout,
            ) as smtp:
                if self.username and self.password:
                    await smtp.login(self.username, self.password)
                await smtp.send_message(mime_message)

        except aiosmtplib.SMTPAuthenticationError as e:
            log.error("SMTP authentication failed", host=self.host, error=str(e))
            return self._failure("Authentication failed", "AUTH_FAILED")

        except aiosmtplib.SMTPRecipientsRefused as e:
            log.error("SMTP recipients refused", error=str(e))
            return self._failure(
                f"Recipients refused: {e.recipients}",
                "RECIPIENTS_REFUSED",
                status=EmailStatus.BOUNCED,
            )

        except aiosmtplib.SMTPException as e:
            log.error("SMTP error", host=self.host, error=str(e))
            return self._failure(str(e))

        except asyncio.TimeoutError:
            log.error("SMTP timeout", host=self.host)
            return self._failure("Connection timeout", "TIMEOUT")

        message_id = mime_message["Message-ID"]
        log.info(
            "Email sent via SMTP",
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

    def build_mime_message(
        self,
        message: EmailMessage,
        from_email: str,
        from_name: str | None,
    ) -> MIMEMultipart:
        """Build a multipart/alternative MIME message."""
        mime_msg = MIMEMultipart("alternative")

        mime_msg["Subject"] = message.subject
        mime_msg["From"] = formataddr((from_name or "", from_email))
        mime_msg["To"] = ", ".join(message.to)
        mime_msg["Date"] = formatdate(localtime=True)
        mime_msg["Message-ID"] = make_msgid(domain=from_email.split("@")[-1])

        if message.reply_to:
            mime_msg["Reply-To"] = message.reply_to

        for key, value in message.headers.items():
            mime_msg[key] = value

        # Plain text first, HTML last (preferred part)
        if message.body_text:
            mime_msg.attach(MIMEText(message.body_text, "plain", "utf-8"))
        if message.body_html:
            mime_msg.attach(MIMEText(message.body_html, "html", "utf-8"))

        return mime_msg
