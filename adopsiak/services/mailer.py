from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..config import get_settings
from ..observability.metrics import EMAILS_SENT

logger = logging.getLogger(__name__)


def render_otp_email(code: str, expire_minutes: int) -> tuple[str, str, str]:
    """Return (subject, html, text) for a verification-code email."""
    subject = "Your verification code"
    html = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #222;">
        <h2>Email verification</h2>
        <p>Your verification code is:</p>
        <div style="font-size: 28px; font-weight: bold; letter-spacing: 6px; margin: 16px 0;">
          {code}
        </div>
        <p>This code will expire in <b>{expire_minutes} minutes</b>.</p>
        <p>If you didn't request this, ignore this email.</p>
      </body>
    </html>
    """
    text = (
        f"Email verification\n\n"
        f"Your verification code is: {code}\n"
        f"This code will expire in {expire_minutes} minutes.\n\n"
        f"If you didn't request this, ignore this email."
    )
    return subject, html, text


class HttpMailer:
    """Client for a Resend-compatible transactional email API.

    Sends are single attempts: a non-2xx answer or transport error is logged
    and reported as False, never raised and never retried.
    """

    def __init__(
        self,
        *,
        api_url: str,
        api_key: Optional[str],
        sender: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._transport = transport
        if not api_key:
            logger.info("Email sending disabled; missing settings: EMAIL_API_KEY")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def send(self, *, to: str, subject: str, html: str, text: str) -> bool:
        if not self._api_key:
            logger.debug("Email send skipped because the email API is not configured.")
            EMAILS_SENT.labels(result="skipped").inc()
            return False

        payload = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._api_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Email send failed: %s", exc.__class__.__name__)
            EMAILS_SENT.labels(result="failed").inc()
            return False

        if not response.is_success:
            logger.warning(
                "Email API rejected send",
                extra={"extra": f"status={response.status_code} body={response.text[:200]}"},
            )
            EMAILS_SENT.labels(result="failed").inc()
            return False

        EMAILS_SENT.labels(result="sent").inc()
        return True

    async def send_otp_email(self, *, to: str, code: str, expire_minutes: int) -> bool:
        subject, html, text = render_otp_email(code, expire_minutes)
        return await self.send(to=to, subject=subject, html=html, text=text)


def _build_default() -> HttpMailer:
    settings = get_settings()
    return HttpMailer(
        api_url=settings.EMAIL_API_URL,
        api_key=settings.EMAIL_API_KEY,
        sender=settings.EMAIL_FROM_ADDRESS,
        timeout=settings.EMAIL_TIMEOUT_SEC,
    )


mailer = _build_default()


def get_mailer() -> HttpMailer:
    return mailer
