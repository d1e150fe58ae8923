"""
Push transport
Best-effort push notifications to the caregiver's devices
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from config import settings


logger = logging.getLogger(__name__)


class PushClient:
    """Interface: show_notification(title, options) -> bool"""

    async def show_notification(self, title: str, options: Dict[str, Any]) -> bool:
        raise NotImplementedError


class WebhookPushClient(PushClient):
    """Posts {title, options} to a push gateway"""

    def __init__(
        self,
        gateway_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.gateway_url = gateway_url
        self.timeout = timeout
        self._transport = transport

    async def show_notification(self, title: str, options: Dict[str, Any]) -> bool:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.gateway_url,
                json={"type": "SHOW_NOTIFICATION", "title": title, "options": options},
            )
            response.raise_for_status()
        logger.info(f"[PUSH] {title}")
        return True


@dataclass
class LoggingPushClient(PushClient):
    """Logs instead of pushing"""
    shown: List[Dict[str, Any]] = field(default_factory=list)

    async def show_notification(self, title: str, options: Dict[str, Any]) -> bool:
        self.shown.append({"title": title, "options": options})
        logger.info(f"[PUSH] {title} - {options.get('body', '')[:40]}")
        return True


def get_push_client() -> PushClient:
    if settings.PUSH_GATEWAY_URL:
        return WebhookPushClient(settings.PUSH_GATEWAY_URL, timeout=settings.DISPATCH_TIMEOUT_SECONDS)
    return LoggingPushClient()
