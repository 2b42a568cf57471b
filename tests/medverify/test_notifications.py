from twilio.base.exceptions import TwilioRestException

from conftest import FakeTwilioClient
from src.medverify.domain.models.clinician import Specialty
from src.medverify.domain.models.patient_query import VerificationStatus
from src.medverify.services.notifications import templates
from src.medverify.services.notifications.gateway import (
    DeliveryStatus,
    NotificationGateway,
    to_whatsapp_address,
)


def make_gateway(client, account_sid="AC123", auth_token="token", from_number="+14155238886"):
    return NotificationGateway(account_sid=account_sid, auth_token=auth_token, from_number=from_number, client=client)


def test_whatsapp_prefix_is_added_once():
    assert to_whatsapp_address("+15551234567") == "whatsapp:+15551234567"
    assert to_whatsapp_address("whatsapp:+15551234567") == "whatsapp:+15551234567"


async def test_send_uses_whatsapp_addresses():
    client = FakeTwilioClient()

    result = await make_gateway(client).send("+15551234567", "hello")

    assert result.success
    assert result.sid
    assert client.sent == [{"body": "hello", "from_": "whatsapp:+14155238886", "to": "whatsapp:+15551234567"}]


async def test_invalid_account_sid_is_not_configured():
    client = FakeTwilioClient()
    gateway = make_gateway(client, account_sid="SK123")

    result = await gateway.send("+15551234567", "hello")

    assert not gateway.is_configured
    assert result.status == DeliveryStatus.NOT_CONFIGURED
    assert "TWILIO_ACCOUNT_SID" in result.error
    assert client.sent == []


async def test_twilio_error_is_reported_not_raised():
    client = FakeTwilioClient()
    client.messages.error = TwilioRestException(400, "/Messages", msg="Channel not found", code=63007)

    result = await make_gateway(client).send("+15551234567", "hello")

    assert result.status == DeliveryStatus.FAILED
    assert result.http_status == 400
    assert result.error_code == 63007


async def test_long_body_is_truncated_to_channel_limit():
    client = FakeTwilioClient()

    await make_gateway(client).send("+15551234567", "x" * 5000)

    body = client.sent[0]["body"]
    assert len(body) == templates.MAX_BODY_LENGTH
    assert body.endswith(templates.ELLIPSIS)


def test_disclaimer_survives_long_answers():
    full = templates.with_disclaimer("y" * 3000)

    assert len(full) <= templates.MAX_BODY_LENGTH
    assert full.endswith(templates.UNVERIFIED_DISCLAIMER)
    assert templates.strip_disclaimer(full).endswith(templates.ELLIPSIS)


def test_verification_summary_fits_one_message():
    body = templates.verification_summary(
        question="q" * 2000,
        answer="a" * 5000 + templates.UNVERIFIED_DISCLAIMER,
        decision=VerificationStatus.VERIFIED,
        specialty=Specialty.NEUROLOGY,
        comment="c" * 2000,
    )

    assert len(body) <= templates.MAX_BODY_LENGTH
    assert "Verified by a Neurology specialist" in body
    assert "not yet verified" not in body


def test_incorrect_summary_uses_correction_wording():
    body = templates.verification_summary(
        question="Can I take ibuprofen?",
        answer="Yes." + templates.UNVERIFIED_DISCLAIMER,
        decision=VerificationStatus.INCORRECT,
        specialty=Specialty.FAMILY_MEDICINE,
        comment=None,
    )

    assert "⚠️ The AI response requires clarification" in body
    assert "*Doctor's Correction*" in body
    assert templates.DEFAULT_INCORRECT_COMMENT in body
