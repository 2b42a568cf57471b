from __future__ import annotations

from typing import Dict, List, Optional, Protocol

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from src.medverify.config import Settings
from src.medverify.domain.models.clinician import Specialty
from src.medverify.errors import CollaboratorError, ConfigurationError

ChatMessage = Dict[str, str]


class DraftResult(BaseModel):
    """Structured output expected from a drafting backend."""

    answer: str = Field(min_length=1)
    specialty: Specialty


class DraftingBackend(Protocol):
    """Protocol for services that draft an answer to a patient question."""

    async def draft(self, *, system_prompt: str, messages: List[ChatMessage]) -> DraftResult:  # pragma: no cover - interface
        """Return a drafted answer and specialty for the last user message."""
        raise NotImplementedError


class DemoDraftingBackend:
    """Deterministic, offline drafting backend for tests and local development.

    Picks a specialty from a few keywords in the latest question and answers
    with a fixed cautious template.
    """

    _KEYWORDS = {
        "heart": Specialty.CARDIOLOGY,
        "chest": Specialty.CARDIOLOGY,
        "skin": Specialty.DERMATOLOGY,
        "rash": Specialty.DERMATOLOGY,
        "diabetes": Specialty.ENDOCRINOLOGY,
        "thyroid": Specialty.ENDOCRINOLOGY,
        "stomach": Specialty.GASTROENTEROLOGY,
        "headache": Specialty.NEUROLOGY,
        "migraine": Specialty.NEUROLOGY,
        "pregnan": Specialty.OBSTETRICS_GYNECOLOGY,
        "eye": Specialty.OPHTHALMOLOGY,
        "knee": Specialty.ORTHOPEDICS,
        "child": Specialty.PEDIATRICS,
        "anxiety": Specialty.PSYCHIATRY,
        "depress": Specialty.PSYCHIATRY,
    }

    def classify(self, question: str) -> Specialty:
        lower = question.lower()
        for keyword, specialty in self._KEYWORDS.items():
            if keyword in lower:
                return specialty
        return Specialty.FAMILY_MEDICINE

    async def draft(self, *, system_prompt: str, messages: List[ChatMessage]) -> DraftResult:
        question = messages[-1]["content"] if messages else ""
        specialty = self.classify(question)
        answer = (
            f"Thank you for your question about \"{question.strip()[:80]}\". "
            f"This sounds like something a {specialty.value} specialist can advise on. "
            "I'm an AI assistant, not a doctor, so please consult a healthcare provider for a diagnosis."
        )
        return DraftResult(answer=answer, specialty=specialty)


class OpenAIDraftingBackend:
    """Drafting backend that calls OpenAI chat completions in JSON mode.

    The model is asked for ``{"answer": ..., "specialty": ...}``; anything
    that does not validate against ``DraftResult`` is a collaborator failure.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str,
        timeout_seconds: float,
        max_tokens: int,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        if client is None and not api_key:
            raise ConfigurationError("OPENAI_API_KEY must be set to use the OpenAI drafting backend")
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=1)
        self._model = model
        self._max_tokens = max_tokens

    async def draft(self, *, system_prompt: str, messages: List[ChatMessage]) -> DraftResult:
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                response_format={"type": "json_object"},
                max_tokens=self._max_tokens,
            )
        except openai.APIStatusError as exc:
            raise CollaboratorError(
                "OpenAI request failed",
                collaborator="openai",
                code=str(exc.status_code),
                detail=exc.message,
            ) from exc
        except openai.APIError as exc:
            # Connection errors and timeouts carry no HTTP status.
            raise CollaboratorError(
                "OpenAI request failed",
                collaborator="openai",
                code=getattr(exc, "code", None),
                detail=exc.message,
            ) from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise CollaboratorError("OpenAI returned an empty completion", collaborator="openai")

        try:
            return DraftResult.model_validate_json(content)
        except PydanticValidationError as exc:
            raise CollaboratorError(
                "OpenAI returned a malformed draft",
                collaborator="openai",
                detail=exc.errors(include_url=False),
            ) from exc


def get_drafting_backend_from_settings(settings: Settings) -> DraftingBackend:
    """Select a drafting backend based on DRAFTING_BACKEND.

    - DRAFTING_BACKEND=openai → OpenAIDraftingBackend
    - Anything else (or unset) → DemoDraftingBackend
    """

    backend_name = settings.drafting_backend.lower()
    if backend_name == "openai":
        return OpenAIDraftingBackend(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
        )
    return DemoDraftingBackend()
