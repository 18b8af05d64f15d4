# =============================================================================
# core/services/email_service.py - Transactional Email via Resend
# =============================================================================
# Sends the two emails the delivery flow needs:
# - Access code (one-time 6-digit code for a recipient)
# - Delivery notification (link to a new delivery)
#
# Callers treat a send failure as non-fatal: they catch EmailSendError,
# log it and carry on.
# =============================================================================

import html
import logging
from datetime import datetime

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0


class EmailSendError(Exception):
    """Raised when Resend rejects or can't be reached."""


class EmailService:
    """Thin wrapper around the Resend HTTP API."""

    @staticmethod
    def send(to: str, subject: str, html_body: str, text_body: str | None = None) -> str | None:
        """
        Send one email.

        Returns:
            Resend message id (if the API returned one)

        Raises:
            EmailSendError: If the API key is missing or the request fails
        """
        if not settings.RESEND_API_KEY:
            raise EmailSendError("RESEND_API_KEY is not configured")

        payload: dict[str, object] = {
            "from": settings.EMAIL_FROM,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            payload["text"] = text_body
        if settings.EMAIL_REPLY_TO:
            payload["reply_to"] = settings.EMAIL_REPLY_TO

        headers = {
            "Authorization": f"Bearer {settings.RESEND_API_KEY}",
            "Content-Type": "application/json",
        }

        try:
            response = httpx.post(
                RESEND_SEND_URL,
                headers=headers,
                json=payload,
                timeout=RESEND_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            raise EmailSendError(f"Resend request failed: {e}") from e

        if response.status_code >= 400:
            raise EmailSendError(f"Resend returned {response.status_code}: {response.text[:200]}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        logger.info(f"Email sent to {to} (id={message_id})")
        return message_id

    @staticmethod
    def send_access_code(
        recipient_email: str,
        access_code: str,
        delivery_title: str,
        expires_in_minutes: int = 15,
    ) -> str | None:
        title = html.escape(delivery_title)
        html_body = (
            f"<p>Use this code to open <strong>{title}</strong>:</p>"
            f"<p style=\"font-size:28px;letter-spacing:6px;font-weight:bold\">{access_code}</p>"
            f"<p>The code expires in {expires_in_minutes} minutes and can only be used once.</p>"
            "<p>If you didn't request it, you can ignore this email.</p>"
        )
        text_body = (
            f"Your access code for {delivery_title}: {access_code}\n"
            f"It expires in {expires_in_minutes} minutes."
        )
        return EmailService.send(
            to=recipient_email,
            subject=f"Your access code: {access_code}",
            html_body=html_body,
            text_body=text_body,
        )

    @staticmethod
    def send_delivery_notification(
        recipient_email: str,
        sender_email: str,
        delivery_id: str,
        delivery_title: str,
        expires_at: datetime | str,
        max_views: int,
        max_downloads: int,
        file_count: int,
        delivery_message: str | None = None,
    ) -> str | None:
        link = f"{settings.APP_URL.rstrip('/')}/delivery/{delivery_id}"
        expires = expires_at.isoformat() if isinstance(expires_at, datetime) else expires_at

        note = f"<blockquote>{html.escape(delivery_message)}</blockquote>" if delivery_message else ""
        html_body = (
            f"<p>{html.escape(sender_email)} sent you {file_count} secure file(s): "
            f"<strong>{html.escape(delivery_title)}</strong></p>"
            f"{note}"
            f"<p><a href=\"{link}\">Open delivery</a></p>"
            f"<p>Available until {expires}. Up to {max_views} views and {max_downloads} downloads.</p>"
        )
        return EmailService.send(
            to=recipient_email,
            subject=f"{sender_email} sent you secure files: {delivery_title}",
            html_body=html_body,
            text_body=f"{sender_email} sent you secure files: {delivery_title}\n{link}",
        )
