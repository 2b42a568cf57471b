from conftest import PATIENT, FakeTwilioClient, StaticDraftingBackend, make_container
from src.medverify.domain.models.patient_profile import OnboardingState
from src.medverify.errors import StateConflictError
from src.medverify.infra.db.inmemory import InMemoryPatientProfileRepository
from src.medverify.services.audit.service import AuditService, address_fingerprint
from src.medverify.services.notifications import templates
from src.medverify.services.onboarding.service import ConversationService


class RacingProfileRepository(InMemoryPatientProfileRepository):
    """Fails the first ``conflicts`` saves as if another delivery got there first."""

    def __init__(self, conflicts):
        super().__init__()
        self.conflicts = conflicts
        self.attempts = 0

    def save(self, profile, *, expected_version=None):
        self.attempts += 1
        if self.attempts <= self.conflicts:
            raise StateConflictError("Patient profile was modified concurrently")
        return super().save(profile, expected_version=expected_version)


def make_service(patients, twilio_client):
    container = make_container(backend=StaticDraftingBackend(), twilio_client=twilio_client)
    return ConversationService(patients=patients, drafting=container.drafting, gateway=container.gateway)


async def test_single_conflict_is_retried():
    twilio_client = FakeTwilioClient()
    patients = RacingProfileRepository(conflicts=1)

    result = await make_service(patients, twilio_client).handle_inbound(PATIENT, "hi")

    assert result.action == "onboarding"
    assert result.onboarding_status == OnboardingState.AWAITING_NAME
    assert patients.attempts == 2
    assert len(twilio_client.sent) == 1


async def test_repeated_conflict_asks_patient_to_resend():
    twilio_client = FakeTwilioClient()
    patients = RacingProfileRepository(conflicts=5)

    result = await make_service(patients, twilio_client).handle_inbound(PATIENT, "hi")

    assert result.action == "conflict"
    assert result.delivery.success
    assert patients.get(PATIENT) is None
    assert twilio_client.bodies_to(PATIENT) == [templates.RESEND_LAST_MESSAGE]


async def test_completed_patient_is_handed_to_drafting(container, twilio_client):
    for text in ("hi", "Maria", "30"):
        await container.conversations.handle_inbound(PATIENT, text)

    result = await container.conversations.handle_inbound(PATIENT, "Is my blood pressure fine?")

    assert result.action == "query"
    assert container.repositories.queries.get(result.query_id).query == "Is my blood pressure fine?"


class RecordingAudit(AuditService):
    def __init__(self):
        self.events = []

    def log_event(self, **event):
        self.events.append(event)


async def test_onboarding_audit_does_not_expose_patient_address():
    audit = RecordingAudit()
    container = make_container(backend=StaticDraftingBackend(), twilio_client=FakeTwilioClient())
    service = ConversationService(
        patients=container.repositories.patients,
        drafting=container.drafting,
        gateway=container.gateway,
        audit=audit,
    )

    await service.handle_inbound(PATIENT, "hi")

    [event] = audit.events
    assert event["action"] == "onboarding_transition"
    assert event["resource_id"] == address_fingerprint(PATIENT)
    assert "+15551234567" not in str(event)
