"""
SMS and email transports.

Thin httpx clients for the Twilio Messages API and the Resend Emails API.
Transports never raise for delivery problems: every outcome, including a
missing configuration, is reported as a SendResult so the dispatcher can
record it on the queue item.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from order_tracker.core.config import Settings
from order_tracker.core.logging import get_logger

logger = get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
RESEND_API_BASE = "https://api.resend.com"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one delivery attempt."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class SMSTransport(Protocol):
    async def send_sms(self, to: str, body: str) -> SendResult:
        """Send a text message."""


class EmailTransport(Protocol):
    async def send_email(
        self, to: str, subject: str, html: str, text: str
    ) -> SendResult:
        """Send an email with HTML and plain text parts."""


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"{default} (HTTP {response.status_code})"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"{default} (HTTP {response.status_code})"


class _HttpTransport:
    """Shared request handling for the REST transports."""

    def __init__(self, timeout: float, client: Optional[httpx.AsyncClient]):
        self.timeout = timeout
        self._client = client

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, **kwargs)


class TwilioSMSTransport(_HttpTransport):
    """Sends SMS through the Twilio Messages REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout, client)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send_sms(self, to: str, body: str) -> SendResult:
        if not (self.account_sid and self.auth_token):
            return SendResult(success=False, error="Twilio not configured")
        if not self.from_number:
            return SendResult(
                success=False, error="Twilio phone number not configured"
            )

        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = await self._post(
                url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.HTTPError as e:
            logger.warning("Twilio request failed", error=str(e))
            return SendResult(success=False, error=f"Failed to send SMS: {e}")

        if response.status_code >= 400:
            error = _error_message(response, "Failed to send SMS")
            logger.warning(
                "Twilio rejected message",
                status_code=response.status_code,
                error=error,
            )
            return SendResult(success=False, error=error)

        return SendResult(success=True, message_id=response.json().get("sid"))


class ResendEmailTransport(_HttpTransport):
    """Sends email through the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout, client)
        self.api_key = api_key
        self.from_email = from_email

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send_email(
        self, to: str, subject: str, html: str, text: str
    ) -> SendResult:
        if not self.api_key:
            return SendResult(success=False, error="Resend not configured")

        payload: Dict[str, Any] = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        try:
            response = await self._post(
                f"{RESEND_API_BASE}/emails",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            logger.warning("Resend request failed", error=str(e))
            return SendResult(success=False, error=f"Failed to send email: {e}")

        if response.status_code >= 400:
            error = _error_message(response, "Failed to send email")
            logger.warning(
                "Resend rejected email",
                status_code=response.status_code,
                error=error,
            )
            return SendResult(success=False, error=error)

        return SendResult(success=True, message_id=response.json().get("id"))


def get_sms_transport(settings: Settings) -> TwilioSMSTransport:
    return TwilioSMSTransport(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        timeout=settings.transport_timeout_seconds,
    )


def get_email_transport(settings: Settings) -> ResendEmailTransport:
    return ResendEmailTransport(
        api_key=settings.resend_api_key,
        from_email=settings.resend_from_email,
        timeout=settings.transport_timeout_seconds,
    )
