"""Push notifications through an HTTP push gateway, with optional HMAC signature."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from ..delivery import DeliveryRecord, NotificationChannel, RenderedNotification
from ..ports import INotificationSender

logger = logging.getLogger(__name__)

# Client errors that are still worth retrying
_RETRYABLE_4XX = frozenset({408, 425, 429})


class PushGatewaySender(INotificationSender):
    """
    POSTs a push message for a recipient (user or device token) to a gateway.

    4xx replies other than 408/425/429 are permanent failures; 5xx replies and
    transport errors are transient.
    """

    def __init__(
        self,
        gateway_url: str,
        timeout: float = 10.0,
        user_agent: str = "order-notifications/1.0",
        secret: str | None = None,
        api_token: str | None = None,
    ):
        self.gateway_url = gateway_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.secret = secret
        self.api_token = api_token

    async def send(
        self,
        recipient: str,
        content: RenderedNotification,
        channel: NotificationChannel,
        metadata: dict[str, object] | None = None,
    ) -> DeliveryRecord:
        if channel != NotificationChannel.PUSH:
            raise ValueError(f"PushGatewaySender does not support {channel}")

        # Lazy import of httpx
        try:
            import httpx
        except ImportError as e:
            raise ImportError(
                "httpx is required for PushGatewaySender. "
                "Install with: pip install 'order-notifications[push]'"
            ) from e

        payload = {
            "recipient": recipient,
            "title": content.subject or "",
            "body": content.body_text,
            "metadata": metadata or {},
        }
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        if metadata and metadata.get("event_id"):
            # Lets the gateway drop duplicates of a redelivered event
            headers["Idempotency-Key"] = str(metadata["event_id"])

        body = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        if self.secret:
            headers["X-Push-Signature"] = self.signature(body, self.secret)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.gateway_url, content=body, headers=headers
                )
                response.raise_for_status()

            logger.info(f"Push sent to {recipient}")
            return DeliveryRecord.sent(
                recipient, channel, provider_id=response.headers.get("X-Request-ID")
            )

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            permanent = 400 <= status < 500 and status not in _RETRYABLE_4XX
            logger.error(f"Push gateway HTTP error: {status} - {e.response.text}")
            return DeliveryRecord.failed(
                recipient, channel, error=f"HTTP {status}", permanent=permanent
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach push gateway for {recipient}: {str(e)}")
            return DeliveryRecord.failed(recipient, channel, error=str(e))

    @staticmethod
    def signature(payload: str, secret: str) -> str:
        """HMAC-SHA256 of the request body, as ``sha256=<hex>``."""
        digest = hmac.new(
            key=secret.encode("utf-8"),
            msg=payload.encode("utf-8"),
            digestmod=hashlib.sha256,
        ).hexdigest()
        return f"sha256={digest}"

    @staticmethod
    def verify_signature(payload: str, signature: str, secret: str) -> bool:
        """Constant-time check of a signature produced by :meth:`signature`."""
        expected = PushGatewaySender.signature(payload, secret)
        return hmac.compare_digest(expected, signature)
