"""Notification gateway: delivers WhatsApp messages through Twilio.

Configuration comes from ``Settings``:
  TWILIO_ACCOUNT_SID      account SID, must start with "AC"
  TWILIO_AUTH_TOKEN       auth token
  TWILIO_WHATSAPP_NUMBER  sender, e.g. "whatsapp:+14155238886"

Delivery problems never propagate: callers have already committed their state
change by the time a message is sent, so every outcome is reported through
``DeliveryResult`` and the log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from starlette.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioRestException
from twilio.request_validator import RequestValidator
from twilio.rest import Client

from src.medverify.config import Settings
from src.medverify.services.notifications.templates import fit_body

logger = logging.getLogger("medverify.notifications")

WHATSAPP_PREFIX = "whatsapp:"
ACCOUNT_SID_PREFIX = "AC"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    NOT_CONFIGURED = "not_configured"


@dataclass
class DeliveryResult:
    status: DeliveryStatus
    recipient: str
    sid: Optional[str] = None
    error: Optional[str] = None
    # Collaborator-reported HTTP status and Twilio error code, when available.
    http_status: Optional[int] = None
    error_code: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == DeliveryStatus.SENT


def to_whatsapp_address(address: str) -> str:
    """Return ``address`` with the WhatsApp channel prefix; idempotent."""

    address = address.strip()
    if address.startswith(WHATSAPP_PREFIX):
        return address
    return f"{WHATSAPP_PREFIX}{address}"


def credential_problems(account_sid: Optional[str], auth_token: Optional[str], from_number: Optional[str]) -> list[str]:
    problems = []
    if not account_sid or not account_sid.startswith(ACCOUNT_SID_PREFIX):
        problems.append(f"TWILIO_ACCOUNT_SID must start with '{ACCOUNT_SID_PREFIX}'")
    if not auth_token:
        problems.append("TWILIO_AUTH_TOKEN is required")
    if not from_number:
        problems.append("TWILIO_WHATSAPP_NUMBER is required")
    return problems


class NotificationGateway:
    """Sends WhatsApp messages via the Twilio REST API.

    A pre-built client may be injected (tests use a fake with the same
    ``messages.create`` interface); otherwise one is created lazily once the
    credentials validate.
    """

    def __init__(
        self,
        *,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        client: Any = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._client = client
        self._problems = credential_problems(account_sid, auth_token, from_number)

    @classmethod
    def from_settings(cls, settings: Settings, *, client: Any = None) -> "NotificationGateway":
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_whatsapp_number,
            client=client,
        )

    @property
    def is_configured(self) -> bool:
        return not self._problems

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = Client(self._account_sid, self._auth_token)
            logger.info("Twilio client initialized")
        return self._client

    async def send(self, destination: str, body: str) -> DeliveryResult:
        """Send one WhatsApp message to ``destination``."""

        to_address = to_whatsapp_address(destination)

        if self._problems:
            logger.warning(
                "Twilio not configured, message to %s not sent: %s",
                to_address,
                "; ".join(self._problems),
            )
            return DeliveryResult(
                status=DeliveryStatus.NOT_CONFIGURED,
                recipient=to_address,
                error="; ".join(self._problems),
            )

        message_text = fit_body(body)
        from_address = to_whatsapp_address(self._from_number or "")

        try:
            client = self._get_client()
            message = await run_in_threadpool(
                client.messages.create,
                body=message_text,
                from_=from_address,
                to=to_address,
            )
        except TwilioRestException as exc:
            logger.error(
                "Twilio send to %s failed: status=%s code=%s message=%s",
                to_address,
                exc.status,
                exc.code,
                exc.msg,
            )
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                recipient=to_address,
                error=str(exc.msg),
                http_status=exc.status,
                error_code=exc.code,
            )
        except Exception as exc:
            logger.exception("Twilio send to %s failed", to_address)
            return DeliveryResult(status=DeliveryStatus.FAILED, recipient=to_address, error=str(exc))

        logger.info("Twilio message sent: SID=%s -> %s", message.sid, to_address)
        return DeliveryResult(status=DeliveryStatus.SENT, recipient=to_address, sid=message.sid)


class WebhookSignatureValidator:
    """Checks the X-Twilio-Signature header of inbound webhooks."""

    def __init__(self, auth_token: Optional[str], public_url: Optional[str]) -> None:
        self._validator = RequestValidator(auth_token or "")
        self._public_url = public_url

    def is_valid(self, request_url: str, params: Mapping[str, str], signature: Optional[str]) -> bool:
        if not signature:
            return False
        # Behind a proxy the URL Twilio signed differs from the one we see.
        url = self._public_url or request_url
        return bool(self._validator.validate(url, dict(params), signature))
