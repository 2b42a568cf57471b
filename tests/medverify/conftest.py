from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, List, Optional
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from src.medverify.config import Settings
from src.medverify.container import ServiceContainer, build_container
from src.medverify.domain.models.clinician import ClinicianProfile, Specialty
from src.medverify.domain.models.patient_query import PatientQuery, VerificationStatus
from src.medverify.errors import CollaboratorError
from src.medverify.infra.db.bootstrap import in_memory_repositories
from src.medverify.main import create_app
from src.medverify.services.drafting.backends import ChatMessage, DraftResult

PATIENT = "whatsapp:+15551234567"
TWILIO_NUMBER = "whatsapp:+14155238886"


class FakeMessages:
    def __init__(self) -> None:
        self.sent: List[dict] = []
        self.error: Optional[Exception] = None

    def create(self, *, body: str, from_: str, to: str) -> Any:
        if self.error is not None:
            raise self.error
        self.sent.append({"body": body, "from_": from_, "to": to})
        return SimpleNamespace(sid=f"SM{len(self.sent):032d}")


class FakeTwilioClient:
    """Stands in for ``twilio.rest.Client``; records outbound messages."""

    def __init__(self) -> None:
        self.messages = FakeMessages()

    @property
    def sent(self) -> List[dict]:
        return self.messages.sent

    def bodies_to(self, recipient: str) -> List[str]:
        return [m["body"] for m in self.sent if m["to"] == recipient]


class StaticDraftingBackend:
    def __init__(self, specialty: Specialty = Specialty.CARDIOLOGY, answer: str = "Drink water and rest.") -> None:
        self.specialty = specialty
        self.answer = answer
        self.calls: List[dict] = []

    async def draft(self, *, system_prompt: str, messages: List[ChatMessage]) -> DraftResult:
        self.calls.append({"system_prompt": system_prompt, "messages": messages})
        return DraftResult(answer=self.answer, specialty=self.specialty)


class FailingDraftingBackend:
    async def draft(self, *, system_prompt: str, messages: List[ChatMessage]) -> DraftResult:
        raise CollaboratorError("LLM unavailable", collaborator="openai", code="503")


def make_settings(**overrides: Any) -> Settings:
    values = dict(
        twilio_account_sid="AC00000000000000000000000000000000",
        twilio_auth_token="test-token",
        twilio_whatsapp_number=TWILIO_NUMBER,
        twilio_validate_signature=False,
        public_webhook_url=None,
        drafting_backend="demo",
        openai_api_key=None,
        history_window_hours=24,
        llm_timeout_seconds=5,
        database_url=None,
        use_sql_repos=False,
        enable_api_auth=False,
        api_keys=None,
        cors_allow_origins="*",
    )
    values.update(overrides)
    return Settings(**values)


def make_container(
    *,
    settings: Optional[Settings] = None,
    backend: Any = None,
    twilio_client: Optional[FakeTwilioClient] = None,
) -> ServiceContainer:
    return build_container(
        settings or make_settings(),
        repositories=in_memory_repositories(),
        drafting_backend=backend or StaticDraftingBackend(),
        twilio_client=twilio_client or FakeTwilioClient(),
    )


def make_client(container: ServiceContainer) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=create_app(container)), base_url="http://test")


def make_clinician(container: ServiceContainer, clerk_id: str, specialty: Specialty) -> ClinicianProfile:
    clinician, _ = container.clinicians.onboard(
        clerk_id=clerk_id,
        name=f"Dr {clerk_id}",
        email=f"{clerk_id}@clinic.org",
        specialty=specialty,
    )
    return clinician


def make_query(
    container: ServiceContainer,
    *,
    specialty: Optional[Specialty] = Specialty.CARDIOLOGY,
    status: VerificationStatus = VerificationStatus.PENDING,
    phone_number: str = PATIENT,
    text: str = "Is my heart rate too high?",
    age_minutes: int = 0,
) -> PatientQuery:
    query = PatientQuery(
        id=uuid4(),
        phone_number=phone_number,
        query=text,
        response="Probably not." if specialty is not None else None,
        doctor_category=specialty,
        status=status,
        created_at=datetime.now(timezone.utc) - timedelta(minutes=age_minutes),
    )
    container.repositories.queries.create(query)
    return query


async def send_whatsapp(client: AsyncClient, body: str, *, sender: str = PATIENT, sid: Optional[str] = None):
    data = {"From": sender, "Body": body}
    if sid is not None:
        data["MessageSid"] = sid
    return await client.post("/api/v1/webhooks/whatsapp", data=data)


async def onboard_patient(client: AsyncClient, *, sender: str = PATIENT, name: str = "Maria", age: str = "30") -> None:
    for body in ("hi", name, age):
        response = await send_whatsapp(client, body, sender=sender)
        assert response.status_code == 200


@pytest.fixture
def twilio_client() -> FakeTwilioClient:
    return FakeTwilioClient()


@pytest.fixture
def drafting_backend() -> StaticDraftingBackend:
    return StaticDraftingBackend()


@pytest.fixture
def container(twilio_client: FakeTwilioClient, drafting_backend: StaticDraftingBackend) -> ServiceContainer:
    return make_container(backend=drafting_backend, twilio_client=twilio_client)


@pytest.fixture
async def client(container: ServiceContainer):
    async with make_client(container) as ac:
        yield ac
