"""SMTP email implementation."""

from __future__ import annotations

import email.message
import email.policy
import logging

from ..delivery import DeliveryRecord, NotificationChannel, RenderedNotification
from ..ports import INotificationSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(INotificationSender):
    """
    Async SMTP email sender using aiosmtplib.

    Refused recipients and 5xx replies are permanent failures; connection
    problems, timeouts and 4xx replies are transient.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
        from_email: str | None = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.from_email = from_email

    async def send(
        self,
        recipient: str,
        content: RenderedNotification,
        channel: NotificationChannel,
        metadata: dict[str, object] | None = None,
    ) -> DeliveryRecord:
        if channel != NotificationChannel.EMAIL:
            raise ValueError(f"SmtpEmailSender does not support {channel}")

        from_addr = (metadata or {}).get("from_email") or self.from_email
        if not from_addr:
            raise ValueError("Sender email (from_email) is required.")

        # Lazy import of aiosmtplib
        try:
            import aiosmtplib
        except ImportError as e:
            raise ImportError(
                "aiosmtplib is required for SmtpEmailSender. "
                "Install with: pip install 'order-notifications[email]'"
            ) from e

        message = email.message.EmailMessage(policy=email.policy.default)
        message["To"] = recipient
        message["From"] = str(from_addr)
        if content.subject:
            message["Subject"] = content.subject
        message.set_content(content.body_text, charset="utf-8")

        try:
            async with aiosmtplib.SMTP(
                hostname=self.host,
                port=self.port,
                timeout=self.timeout,
                start_tls=self.use_tls,
            ) as smtp:
                if self.username and self.password:
                    await smtp.login(self.username, self.password)
                await smtp.send_message(message)

            logger.info(f"Email sent to {recipient} via SMTP")
            return DeliveryRecord.sent(recipient, channel, provider_id="smtp")

        except aiosmtplib.SMTPRecipientsRefused as e:
            logger.warning(f"SMTP server refused recipient {recipient}: {e}")
            return DeliveryRecord.failed(recipient, channel, error=str(e), permanent=True)
        except aiosmtplib.SMTPAuthenticationError as e:
            # Credentials are an operator problem, not the message's
            logger.error(f"SMTP authentication failed: {e}")
            return DeliveryRecord.failed(recipient, channel, error=str(e))
        except aiosmtplib.SMTPResponseException as e:
            permanent = 500 <= e.code < 600
            logger.error(f"SMTP error {e.code} sending to {recipient}: {e.message}")
            return DeliveryRecord.failed(
                recipient, channel, error=f"SMTP {e.code}: {e.message}", permanent=permanent
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {recipient}: {str(e)}")
            return DeliveryRecord.failed(recipient, channel, error=str(e))
