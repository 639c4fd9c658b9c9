"""
Delivery Notifications

Optional out-of-band push sent after messages are popped. Delivery
correctness never depends on it.
"""

import os
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from ..observability.tracing import inject_trace_context
from .models import NotificationMessage

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """A notification could not be delivered."""


class Notifier(ABC):
    """Sends a NotificationMessage to some out-of-band channel."""

    @abstractmethod
    async def send_notification(self, notification: NotificationMessage) -> None:
        """
        Send one notification.

        Raises:
            NotificationError: If the channel rejected or could not be reached
        """
        ...


class WebhookNotifier(Notifier):
    """
    POSTs notifications as JSON to a webhook URL.

    Usage:
        notifier = WebhookNotifier("https://hooks.example.com/mq", channel="billing")
        service = MessageService(repository, notifier=notifier)
    """

    def __init__(
        self,
        url: str,
        channel: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = url
        self.channel = channel
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_env(cls) -> Optional["WebhookNotifier"]:
        """Build from MQ_NOTIFY_WEBHOOK_URL; None when it is not set."""
        url = os.getenv("MQ_NOTIFY_WEBHOOK_URL")
        if not url:
            return None
        return cls(
            url,
            channel=os.getenv("MQ_NOTIFY_CHANNEL"),
            timeout=float(os.getenv("MQ_NOTIFY_TIMEOUT", "10.0"))
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.channel:
            headers["X-MQ-Channel"] = self.channel
        return inject_trace_context(headers)

    async def send_notification(self, notification: NotificationMessage) -> None:
        body = notification.model_dump_json()
        try:
            if self._client is not None:
                response = await self._client.post(self.url, content=body, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, content=body, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Webhook notification to {self.url} failed: {e}") from e

        logger.debug(
            "Notified %s of %d message(s) for %s/%s",
            self.url, len(notification.message_ids),
            notification.subscriber_name, notification.event_name
        )
