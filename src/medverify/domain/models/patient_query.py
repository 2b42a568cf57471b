from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.medverify.domain.models.clinician import Specialty


class VerificationStatus(str, Enum):
    PENDING = "not_verified"
    VERIFIED = "verified"
    INCORRECT = "incorrect"


class PatientQuery(BaseModel):
    """A health question submitted over WhatsApp and its review lifecycle.

    Created as soon as the question arrives (status PENDING, no draft), then
    filled in by the drafting pipeline and finally decided exactly once by a
    clinician.
    """

    id: UUID
    phone_number: str
    query: str = Field(min_length=1)
    response: Optional[str] = None
    doctor_category: Optional[Specialty] = None
    status: VerificationStatus = VerificationStatus.PENDING
    doctor_comment: Optional[str] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    created_at: datetime

    @property
    def is_decided(self) -> bool:
        return self.status != VerificationStatus.PENDING


class QueryFilter(BaseModel):
    status: VerificationStatus
    doctor_category: Optional[Specialty] = None
    # Restrict to queries the drafting pipeline could not categorise.
    uncategorized_only: bool = False


class QueryPatch(BaseModel):
    """Partial update applied by ``QueryRepository.update``.

    Only fields explicitly set are written.
    """

    model_config = ConfigDict(extra="forbid")

    response: Optional[str] = None
    doctor_category: Optional[Specialty] = None
    status: Optional[VerificationStatus] = None
    doctor_comment: Optional[str] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
