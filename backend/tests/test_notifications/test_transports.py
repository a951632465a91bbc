"""
Tests for the Twilio and Resend transports using httpx.MockTransport.
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from order_tracker.core.config import Settings
from order_tracker.services.notifications.transports import (
    ResendEmailTransport,
    TwilioSMSTransport,
    get_email_transport,
    get_sms_transport,
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTwilioSMSTransport:
    @pytest.mark.asyncio
    async def test_send_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM123"})

        async with mock_client(handler) as client:
            transport = TwilioSMSTransport("AC1", "secret", "+15550000000", client=client)
            result = await transport.send_sms("+15551234567", "Your order shipped")

        assert result.success
        assert result.message_id == "SM123"
        assert captured["url"] == (
            "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
        )
        assert captured["auth"].startswith("Basic ")
        assert captured["form"] == {
            "To": ["+15551234567"],
            "From": ["+15550000000"],
            "Body": ["Your order shipped"],
        }

    @pytest.mark.asyncio
    async def test_api_error_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Invalid 'To' Phone Number"})

        async with mock_client(handler) as client:
            transport = TwilioSMSTransport("AC1", "secret", "+15550000000", client=client)
            result = await transport.send_sms("123", "Hi")

        assert not result.success
        assert result.error == "Invalid 'To' Phone Number"

    @pytest.mark.asyncio
    async def test_non_json_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        async with mock_client(handler) as client:
            transport = TwilioSMSTransport("AC1", "secret", "+15550000000", client=client)
            result = await transport.send_sms("+15551234567", "Hi")

        assert result.error == "Failed to send SMS (HTTP 503)"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            transport = TwilioSMSTransport("AC1", "secret", "+15550000000", client=client)
            result = await transport.send_sms("+15551234567", "Hi")

        assert not result.success
        assert result.error.startswith("Failed to send SMS:")

    @pytest.mark.asyncio
    async def test_not_configured(self):
        result = await TwilioSMSTransport("", "", "").send_sms("+15551234567", "Hi")

        assert result.error == "Twilio not configured"

    @pytest.mark.asyncio
    async def test_missing_sender_number(self):
        result = await TwilioSMSTransport("AC1", "secret", "").send_sms("+1555", "Hi")

        assert result.error == "Twilio phone number not configured"


class TestResendEmailTransport:
    @pytest.mark.asyncio
    async def test_send_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_1"})

        async with mock_client(handler) as client:
            transport = ResendEmailTransport("re_key", "orders@shop.test", client=client)
            result = await transport.send_email(
                "jane@example.com", "Order Update: PO-1", "<p>Hi</p>", "Hi"
            )

        assert result.success
        assert result.message_id == "email_1"
        assert captured["url"] == "https://api.resend.com/emails"
        assert captured["auth"] == "Bearer re_key"
        assert captured["payload"] == {
            "from": "orders@shop.test",
            "to": ["jane@example.com"],
            "subject": "Order Update: PO-1",
            "html": "<p>Hi</p>",
            "text": "Hi",
        }

    @pytest.mark.asyncio
    async def test_api_error_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"message": "Invalid `to` field"})

        async with mock_client(handler) as client:
            transport = ResendEmailTransport("re_key", "orders@shop.test", client=client)
            result = await transport.send_email("bad", "s", "<p></p>", "")

        assert result.error == "Invalid `to` field"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        transport = ResendEmailTransport("", "orders@shop.test")

        result = await transport.send_email("jane@example.com", "s", "h", "t")

        assert not transport.configured
        assert result.error == "Resend not configured"


class TestFactories:
    def test_transports_from_settings(self):
        settings = Settings(
            environment="test",
            twilio_account_sid="AC9",
            twilio_auth_token="token",
            twilio_phone_number="+15559990000",
            resend_api_key="re_9",
            transport_timeout_seconds=3.5,
        )

        sms = get_sms_transport(settings)
        email = get_email_transport(settings)

        assert sms.configured
        assert sms.timeout == 3.5
        assert email.configured
        assert email.from_email == settings.resend_from_email
