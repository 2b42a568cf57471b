from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from src.medverify.domain.models.patient_profile import OnboardingState, PatientProfile
from src.medverify.errors import StateConflictError
from src.medverify.infra.db.repositories import PatientProfileRepository
from src.medverify.services.audit.service import AuditService, address_fingerprint, audit_service
from src.medverify.services.drafting.service import QueryDraftingService
from src.medverify.services.notifications import templates
from src.medverify.services.notifications.gateway import DeliveryResult, NotificationGateway
from src.medverify.services.onboarding.state_machine import OnboardingOutcome, transition

logger = logging.getLogger("medverify.webhook")

# Attempts at applying one inbound message when concurrent deliveries race.
_MAX_ATTEMPTS = 2


@dataclass
class InboundResult:
    action: str
    onboarding_status: Optional[OnboardingState] = None
    query_id: Optional[UUID] = None
    delivery: Optional[DeliveryResult] = None


class ConversationService:
    """Handles one inbound WhatsApp message end to end.

    Profile changes are persisted before any reply is sent; a failed reply
    never rolls the change back. Messages from completed patients are handed
    to the drafting pipeline, which sends its own reply.
    """

    def __init__(
        self,
        *,
        patients: PatientProfileRepository,
        drafting: QueryDraftingService,
        gateway: NotificationGateway,
        audit: AuditService = audit_service,
    ) -> None:
        self._patients = patients
        self._drafting = drafting
        self._gateway = gateway
        self._audit = audit

    def _apply(self, phone_number: str, text: str, message_sid: Optional[str]) -> tuple[str, OnboardingOutcome]:
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            stored = self._patients.get(phone_number)
            if message_sid and stored is not None and stored.last_message_sid == message_sid:
                return "duplicate", OnboardingOutcome(profile=stored, reply=None)

            outcome = transition(stored, text, phone_number=phone_number, now=datetime.now(timezone.utc))
            if outcome.profile is None or not (outcome.changed or message_sid):
                return "onboarding", outcome

            to_save: PatientProfile = outcome.profile
            if message_sid:
                to_save = to_save.model_copy(update={"last_message_sid": message_sid})
            try:
                outcome.profile = self._patients.save(
                    to_save,
                    expected_version=stored.version if stored is not None else 0,
                )
            except StateConflictError:
                if attempt == _MAX_ATTEMPTS:
                    raise
                logger.warning("Concurrent update of profile %s, re-reading and retrying", phone_number)
                continue

            if outcome.changed:
                self._audit.log_event(
                    action="onboarding_transition",
                    resource_type="patient_profile",
                    resource_id=address_fingerprint(phone_number),
                    extra={
                        "from": stored.onboarding_status.value if stored is not None else None,
                        "to": outcome.profile.onboarding_status.value,
                    },
                )
            return "onboarding", outcome

        raise AssertionError("unreachable")

    async def handle_inbound(self, phone_number: str, text: str, *, message_sid: Optional[str] = None) -> InboundResult:
        try:
            action, outcome = self._apply(phone_number, text, message_sid)
        except StateConflictError:
            # Another delivery kept winning the race; the patient is asked to resend.
            logger.warning("Message from %s not applied after repeated concurrent updates", phone_number)
            current = self._patients.get(phone_number)
            delivery = await self._gateway.send(phone_number, templates.RESEND_LAST_MESSAGE)
            return InboundResult(
                action="conflict",
                onboarding_status=current.onboarding_status if current is not None else None,
                delivery=delivery,
            )

        status = outcome.profile.onboarding_status if outcome.profile is not None else None

        if action == "duplicate":
            logger.info("Ignoring duplicate delivery %s from %s", message_sid, phone_number)
            return InboundResult(action=action, onboarding_status=status)

        if outcome.hand_off:
            assert outcome.profile is not None
            query = await self._drafting.handle_question(outcome.profile, text)
            return InboundResult(action="query", onboarding_status=status, query_id=query.id)

        assert outcome.reply is not None
        delivery = await self._gateway.send(phone_number, outcome.reply)
        return InboundResult(action=action, onboarding_status=status, delivery=delivery)
