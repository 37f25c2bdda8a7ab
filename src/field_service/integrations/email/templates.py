"""Email templates for owner notifications.

All user-controlled fields are HTML-escaped before embedding.
"""

from __future__ import annotations

from html import escape as html_escape

from field_service.integrations.email.base import EmailMessage


def _escape(value: str) -> str:
    return html_escape(value, quote=True)


def quote_link(base_url: str, quote_id) -> str:
    """Staff-facing URL of a quote."""
    return f"{base_url.rstrip('/')}/quotes/{quote_id}"


def quote_response_email(
    to: str,
    quote_title: str,
    action: str,
    base_url: str,
    quote_id,
    product_name: str = "Field Service",
) -> EmailMessage:
    """Notify the tenant owner that a client answered a quote.

    Args:
        to: Owner email address
        quote_title: Title of the quote
        action: ``approve`` or ``decline``
        base_url: Base URL of the staff application
        quote_id: Quote the client responded to
        product_name: Name shown in the footer

    Returns:
        Email message with text and HTML bodies
    """
    action_past = "approved" if action == "approve" else "declined"
    color = "#16a34a" if action == "approve" else "#dc2626"
    link = quote_link(base_url, quote_id)

    subject = f"Quote {action_past}: {quote_title}"

    body_text = (
        f"Your quote \"{quote_title}\" has been {action_past} by the client.\n\n"
        f"View the quote: {link}\n\n"
        f"This is an automated notification from {product_name}."
    )

    body_html = f"""<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #1e3a5f;">Quote {action_past.capitalize()}</h2>
  <p>Your quote <strong>{_escape(quote_title)}</strong> has been <span style="color: {color}; font-weight: 600;">{action_past}</span> by the client.</p>
  <p style="margin: 24px 0;">
    <a href="{_escape(link)}" style="background-color: #1e3a5f; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px; display: inline-block;">View Quote</a>
  </p>
  <p style="color: #6b7280; font-size: 12px;">If the button doesn't work, copy and paste this link into your browser:<br>{_escape(link)}</p>
  <p style="color: #6b7280; font-size: 12px;">This is an automated notification from {_escape(product_name)}.</p>
</div>"""

    return EmailMessage(
        to=to,
        subject=subject,
        body_text=body_text,
        body_html=body_html,
    )
