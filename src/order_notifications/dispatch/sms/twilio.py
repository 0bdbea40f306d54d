"""Twilio SMS implementation (optional)."""

from __future__ import annotations

import asyncio
import logging

from ..delivery import DeliveryRecord, NotificationChannel, RenderedNotification
from ..ports import INotificationSender

logger = logging.getLogger(__name__)


class TwilioSmsSender(INotificationSender):
    """
    Twilio SMS implementation.

    Requires twilio library:
    pip install 'order-notifications[sms]'

    The Twilio client is blocking, so calls run in a worker thread.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = None

    def _get_client(self):
        if self._client is None:
            from twilio.rest import Client as TwilioClient

            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    async def send(
        self,
        recipient: str,
        content: RenderedNotification,
        channel: NotificationChannel,
        metadata: dict[str, object] | None = None,
    ) -> DeliveryRecord:
        if channel != NotificationChannel.SMS:
            raise ValueError(f"TwilioSmsSender does not support {channel}")

        # Lazy import of twilio
        try:
            from twilio.base.exceptions import TwilioRestException
        except ImportError as e:
            raise ImportError(
                "twilio is required for TwilioSmsSender. "
                "Install with: pip install 'order-notifications[sms]'"
            ) from e

        client = self._get_client()
        try:
            message = await asyncio.to_thread(
                client.messages.create,
                to=recipient,
                from_=self.from_number,
                body=content.body_text,
            )
            logger.info(f"SMS sent via Twilio to {recipient} (SID: {message.sid})")
            return DeliveryRecord.sent(recipient, channel, provider_id=message.sid)

        except TwilioRestException as e:
            status = e.status or 0
            permanent = 400 <= status < 500 and status != 429
            logger.error(f"Twilio API error {status}: {e.msg}")
            return DeliveryRecord.failed(
                recipient, channel, error=f"Twilio {status}: {e.msg}", permanent=permanent
            )
        except OSError as e:
            logger.error(f"Failed to send SMS via Twilio: {str(e)}")
            return DeliveryRecord.failed(recipient, channel, error=str(e))
