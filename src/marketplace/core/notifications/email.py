"""Email client using Resend API."""

import html
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

import resend

from src.marketplace.core.config import get_settings
from src.marketplace.core.logging import get_logger

logger = get_logger(__name__)

# Thread pool for email sending with timeout support
_email_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="email_sender")

# Shared email styles
_BODY_STYLE = (
    "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
    "line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;"
)
_BUTTON_STYLE = (
    "background-color: #2563eb; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block; font-weight: 500;"
)
_MUTED_STYLE = "color: #666; font-size: 14px;"


def send_event_email(
    to: str,
    recipient_name: str,
    subject: str,
    message: str,
    link_path: str,
    event_kind: str,
) -> bool:
    """Send a workflow notification email.

    Args:
        to: Recipient email address
        recipient_name: Recipient's name for personalization
        subject: Email subject line
        message: Plain-text body, escaped before rendering
        link_path: Path under APP_URL the call-to-action points to
        event_kind: Event kind, used for logging only

    Returns:
        True if email was sent (or logged in dev mode), False on error
    """
    settings = get_settings()
    link_url = f"{settings.app_url}{link_path}"

    if not settings.resend_api_key:
        # Dev mode: log email content instead of sending
        logger.warning(
            "RESEND_API_KEY not set - email not sent",
            to=to if settings.log_user_emails else None,
            email_type=event_kind,
        )
        return True

    resend.api_key = settings.resend_api_key

    def _send() -> None:
        resend.Emails.send(
            {
                "from": settings.email_from,
                "to": [to],
                "subject": subject,
                "html": _get_event_email_html(recipient_name, subject, message, link_url),
            }
        )

    try:
        # Use thread pool with timeout to prevent hanging on slow API responses
        future = _email_executor.submit(_send)
        future.result(timeout=settings.email_send_timeout_seconds)
        logger.info("Notification email sent", email_type=event_kind)
        return True
    except FuturesTimeoutError:
        logger.error(
            "Email send timed out",
            email_type=event_kind,
            timeout=settings.email_send_timeout_seconds,
        )
        return False
    except Exception as e:
        logger.error("Failed to send notification email", email_type=event_kind, error=str(e))
        return False


def _get_event_email_html(recipient_name: str, heading: str, message: str, link_url: str) -> str:
    """Generate HTML content for a notification email."""
    safe_name = html.escape(recipient_name)
    safe_heading = html.escape(heading)
    safe_message = html.escape(message)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="{_BODY_STYLE}">
    <h1 style="color: #2563eb; margin-bottom: 24px;">{safe_heading}</h1>
    <p>Hi {safe_name},</p>
    <p>{safe_message}</p>
    <p style="margin: 32px 0;">
        <a href="{link_url}" style="{_BUTTON_STYLE}">Open in the marketplace</a>
    </p>
    <p style="{_MUTED_STYLE} margin-top: 32px;">
        You are receiving this because you take part in this project.
    </p>
</body>
</html>"""
