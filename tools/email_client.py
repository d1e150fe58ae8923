"""
Email transport
Sends rendered caregiver emails through an HTTP mail API or the log
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import httpx

from config import settings


logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Outcome of one send attempt"""
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


class EmailClient:
    """Interface: send_email(to, subject, html) -> EmailResult"""

    async def send_email(self, to: str, subject: str, html: str) -> EmailResult:
        raise NotImplementedError


class HttpEmailClient(EmailClient):
    """
    JSON mail API client (Resend-compatible: POST {from, to, subject, html},
    bearer API key, response {"id": ...}).
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        sender: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    async def send_email(self, to: str, subject: str, html: str) -> EmailResult:
        if not to:
            logger.info("No recipient email provided, skipping email.")
            return EmailResult(success=False, error="No recipient email")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Email API rejected message to {to}: {e.response.status_code} {e.response.text}")
            return EmailResult(success=False, error=f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Email send error: {e}")
            return EmailResult(success=False, error=str(e))

        message_id = body.get("id") if isinstance(body, dict) else None
        logger.info(f"[EMAIL] Sent to {to}: {subject} (id={message_id})")
        return EmailResult(success=True, message_id=message_id)


@dataclass
class SentEmail:
    to: str
    subject: str
    html: str
    sent_at: datetime


@dataclass
class LoggingEmailClient(EmailClient):
    """Logs instead of sending; keeps what it would have sent"""
    sent: List[SentEmail] = field(default_factory=list)

    async def send_email(self, to: str, subject: str, html: str) -> EmailResult:
        if not to:
            logger.info("No recipient email provided, skipping email.")
            return EmailResult(success=False, error="No recipient email")

        self.sent.append(SentEmail(to=to, subject=subject, html=html, sent_at=datetime.utcnow()))
        logger.info(f"[EMAIL] To {to}: {subject}")
        return EmailResult(success=True, message_id=f"console_{len(self.sent)}")


EMAIL_PROVIDERS: Dict[str, str] = {
    "http": "HTTP mail API",
    "console": "console log",
}


def get_email_client() -> EmailClient:
    """Build the email client selected by EMAIL_PROVIDER"""
    if settings.EMAIL_PROVIDER == "http":
        return HttpEmailClient(
            api_url=settings.EMAIL_API_URL,
            api_key=settings.EMAIL_API_KEY,
            sender=settings.EMAIL_FROM,
            timeout=settings.DISPATCH_TIMEOUT_SECONDS,
        )
    if settings.EMAIL_PROVIDER != "console":
        logger.warning(f"Unknown EMAIL_PROVIDER '{settings.EMAIL_PROVIDER}', using console")
    return LoggingEmailClient()
