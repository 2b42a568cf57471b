from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import uuid4

from src.medverify.domain.models.clinician import Specialty
from src.medverify.domain.models.patient_profile import PatientProfile
from src.medverify.domain.models.patient_query import PatientQuery, QueryPatch
from src.medverify.errors import CollaboratorError, ValidationError
from src.medverify.infra.db.repositories import QueryRepository
from src.medverify.services.audit.service import AuditService, audit_service
from src.medverify.services.drafting.backends import ChatMessage, DraftingBackend
from src.medverify.services.notifications import templates
from src.medverify.services.notifications.gateway import NotificationGateway

logger = logging.getLogger("medverify.drafting")


def build_system_prompt(profile: PatientProfile) -> str:
    specialties = ", ".join(s.value for s in Specialty)
    return (
        "You are a helpful AI assistant that provides medical information over WhatsApp. "
        "Always be professional and compassionate. You are not a doctor, so always include "
        "a short disclaimer advising the patient to consult a healthcare provider. "
        "Keep the answer under 250 words.\n\n"
        f"The patient's name is {profile.user_name} and they are {profile.age} years old.\n\n"
        "Also classify the question into exactly one of these medical specialties: "
        f"{specialties}.\n\n"
        'Respond ONLY with a JSON object of the form {"answer": "<your answer>", '
        '"specialty": "<one specialty from the list, spelled exactly>"}.'
    )


def build_conversation(history: List[PatientQuery], question: str) -> List[ChatMessage]:
    """Rebuild the chat transcript from earlier queries, oldest first."""

    messages: List[ChatMessage] = []
    for previous in history:
        messages.append({"role": "user", "content": previous.query})
        answer = templates.strip_disclaimer(previous.response)
        if answer:
            messages.append({"role": "assistant", "content": answer})
    messages.append({"role": "user", "content": question})
    return messages


class QueryDraftingService:
    """Turns a completed patient's message into a drafted, categorised query.

    The query row is stored before the drafting backend is called so the
    question survives any backend failure.
    """

    def __init__(
        self,
        *,
        queries: QueryRepository,
        backend: DraftingBackend,
        gateway: NotificationGateway,
        history_window: timedelta = timedelta(hours=24),
        timeout_seconds: Optional[float] = None,
        audit: AuditService = audit_service,
    ) -> None:
        self._queries = queries
        self._backend = backend
        self._gateway = gateway
        self._history_window = history_window
        self._timeout_seconds = timeout_seconds
        self._audit = audit

    async def handle_question(self, profile: PatientProfile, text: str) -> PatientQuery:
        text = text.strip()
        if not text:
            raise ValidationError("Query text must not be empty", detail={"field": "query"})

        now = datetime.now(timezone.utc)
        query = PatientQuery(id=uuid4(), phone_number=profile.phone_number, query=text, created_at=now)
        self._queries.create(query)

        self._audit.log_event(
            action="create_query",
            resource_type="patient_query",
            resource_id=str(query.id),
        )

        history = self._queries.list_for_patient_since(
            profile.phone_number,
            now - self._history_window,
            exclude_id=query.id,
        )

        try:
            result = await asyncio.wait_for(
                self._backend.draft(
                    system_prompt=build_system_prompt(profile),
                    messages=build_conversation(history, text),
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Drafting timed out for query %s after %ss", query.id, self._timeout_seconds)
            await self._gateway.send(profile.phone_number, templates.QUERY_FAILED)
            return query
        except CollaboratorError as exc:
            logger.error(
                "Drafting failed for query %s: %s (collaborator=%s code=%s detail=%s)",
                query.id,
                exc.message,
                exc.collaborator,
                exc.code,
                exc.detail,
            )
            await self._gateway.send(profile.phone_number, templates.QUERY_FAILED)
            return query
        except Exception:
            logger.exception("Drafting backend raised unexpectedly for query %s", query.id)
            await self._gateway.send(profile.phone_number, templates.QUERY_FAILED)
            return query

        full_response = templates.with_disclaimer(result.answer)
        drafted = self._queries.update(
            query.id,
            QueryPatch(response=full_response, doctor_category=result.specialty),
        )

        self._audit.log_event(
            action="draft_query",
            resource_type="patient_query",
            resource_id=str(query.id),
            extra={"doctor_category": result.specialty.value, "history_count": len(history)},
        )

        await self._gateway.send(profile.phone_number, full_response)
        return drafted
