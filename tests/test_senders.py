"""Unit tests for the SMTP, push-gateway and Twilio senders (no real providers)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from order_notifications.dispatch.delivery import NotificationChannel, RenderedNotification
from order_notifications.exceptions import ErrorKind

CONTENT = RenderedNotification(body_text="Your order o1 is confirmed", subject="Order o1")


class TestSmtpEmailSender:
    aiosmtplib = pytest.importorskip("aiosmtplib")

    @pytest.fixture
    def smtp(self) -> MagicMock:
        client = MagicMock()
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)
        client.login = AsyncMock()
        client.send_message = AsyncMock()
        return client

    @pytest.fixture
    def sender(self):
        from order_notifications.dispatch.email.smtp import SmtpEmailSender

        return SmtpEmailSender(
            host="smtp.test",
            username="user",
            password="secret",
            from_email="shop@example.com",
        )

    @pytest.mark.asyncio
    async def test_sends_message(self, sender, smtp) -> None:
        with patch("aiosmtplib.SMTP", return_value=smtp) as factory:
            record = await sender.send("u1@example.com", CONTENT, NotificationChannel.EMAIL)

        assert record.ok
        factory.assert_called_once_with(
            hostname="smtp.test", port=587, timeout=10.0, start_tls=True
        )
        smtp.login.assert_awaited_once_with("user", "secret")
        message = smtp.send_message.await_args.args[0]
        assert message["To"] == "u1@example.com"
        assert message["Subject"] == "Order o1"

    @pytest.mark.asyncio
    async def test_refused_recipient_is_permanent(self, sender, smtp) -> None:
        aiosmtplib = self.aiosmtplib
        smtp.send_message.side_effect = aiosmtplib.SMTPRecipientsRefused(
            [aiosmtplib.SMTPRecipientRefused(550, "no such user", "u1@example.com")]
        )
        with patch("aiosmtplib.SMTP", return_value=smtp):
            record = await sender.send("u1@example.com", CONTENT, NotificationChannel.EMAIL)

        assert record.failure_kind is ErrorKind.PERMANENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("code", "kind"), [(554, ErrorKind.PERMANENT), (451, ErrorKind.TRANSIENT)])
    async def test_response_codes(self, sender, smtp, code, kind) -> None:
        smtp.send_message.side_effect = self.aiosmtplib.SMTPResponseException(code, "nope")
        with patch("aiosmtplib.SMTP", return_value=smtp):
            record = await sender.send("u1@example.com", CONTENT, NotificationChannel.EMAIL)

        assert record.failure_kind is kind
        assert str(code) in record.error

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, sender) -> None:
        with patch("aiosmtplib.SMTP", side_effect=OSError("connection refused")):
            record = await sender.send("u1@example.com", CONTENT, NotificationChannel.EMAIL)

        assert record.failure_kind is ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_wrong_channel(self, sender) -> None:
        with pytest.raises(ValueError):
            await sender.send("u1@example.com", CONTENT, NotificationChannel.SMS)


class TestPushGatewaySender:
    httpx = pytest.importorskip("httpx")

    def _patched_client(self, handler):
        real_client = self.httpx.AsyncClient
        transport = self.httpx.MockTransport(handler)

        def factory(**kwargs):
            return real_client(transport=transport, **kwargs)

        return patch("httpx.AsyncClient", side_effect=factory)

    @pytest.mark.asyncio
    async def test_posts_signed_payload(self) -> None:
        from order_notifications.dispatch.push.gateway import PushGatewaySender

        seen = {}

        def handler(request):
            seen["request"] = request
            return self.httpx.Response(202, headers={"X-Request-ID": "req-1"})

        sender = PushGatewaySender(
            "https://push.test/send", secret="s3cret", api_token="tok"
        )
        with self._patched_client(handler):
            record = await sender.send(
                "device-1", CONTENT, NotificationChannel.PUSH, metadata={"event_id": "e1"}
            )

        request = seen["request"]
        body = request.content.decode()
        assert record.ok and record.provider_id == "req-1"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Idempotency-Key"] == "e1"
        assert PushGatewaySender.verify_signature(
            body, request.headers["X-Push-Signature"], "s3cret"
        )
        assert json.loads(body)["recipient"] == "device-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (400, ErrorKind.PERMANENT),
            (404, ErrorKind.PERMANENT),
            (429, ErrorKind.TRANSIENT),
            (503, ErrorKind.TRANSIENT),
        ],
    )
    async def test_status_classification(self, status, kind) -> None:
        from order_notifications.dispatch.push.gateway import PushGatewaySender

        sender = PushGatewaySender("https://push.test/send")
        with self._patched_client(lambda request: self.httpx.Response(status)):
            record = await sender.send("device-1", CONTENT, NotificationChannel.PUSH)

        assert record.failure_kind is kind

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self) -> None:
        from order_notifications.dispatch.push.gateway import PushGatewaySender

        def handler(request):
            raise self.httpx.ConnectError("refused", request=request)

        sender = PushGatewaySender("https://push.test/send")
        with self._patched_client(handler):
            record = await sender.send("device-1", CONTENT, NotificationChannel.PUSH)

        assert record.failure_kind is ErrorKind.TRANSIENT

    def test_signature_mismatch(self) -> None:
        from order_notifications.dispatch.push.gateway import PushGatewaySender

        signature = PushGatewaySender.signature("{}", "a")
        assert not PushGatewaySender.verify_signature("{}", signature, "b")


class TestTwilioSmsSender:
    @pytest.fixture
    def sender(self):
        pytest.importorskip("twilio")
        from order_notifications.dispatch.sms.twilio import TwilioSmsSender

        sender = TwilioSmsSender("AC1", "token", "+15550000000")
        sender._client = MagicMock()
        return sender

    @pytest.mark.asyncio
    async def test_sends_sms(self, sender) -> None:
        sender._client.messages.create.return_value = MagicMock(sid="SM1")

        record = await sender.send("+15551111111", CONTENT, NotificationChannel.SMS)

        assert record.ok and record.provider_id == "SM1"
        sender._client.messages.create.assert_called_once_with(
            to="+15551111111", from_="+15550000000", body=CONTENT.body_text
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("status", "kind"), [(400, ErrorKind.PERMANENT), (429, ErrorKind.TRANSIENT), (500, ErrorKind.TRANSIENT)])
    async def test_rest_errors(self, sender, status, kind) -> None:
        from twilio.base.exceptions import TwilioRestException

        sender._client.messages.create.side_effect = TwilioRestException(
            status, "https://api.twilio.com", msg="rejected"
        )

        record = await sender.send("+15551111111", CONTENT, NotificationChannel.SMS)

        assert record.failure_kind is kind
