from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OnboardingState(str, Enum):
    NEW = "new"
    AWAITING_NAME = "awaiting_name"
    AWAITING_AGE = "awaiting_age"
    COMPLETED = "completed"


class PatientProfile(BaseModel):
    """A patient known to the WhatsApp intake flow.

    Keyed by the sender address exactly as the messaging channel reports it
    (e.g. ``whatsapp:+15551234567``). ``user_name`` is set on entering
    AWAITING_AGE and ``age`` on entering COMPLETED.
    """

    phone_number: str
    user_name: Optional[str] = None
    age: Optional[int] = Field(default=None, gt=0)
    onboarding_status: OnboardingState = OnboardingState.NEW
    created_at: datetime
    updated_at: datetime
    # Incremented on every save; used for optimistic concurrency checks.
    version: int = 0
    # Id of the last inbound message applied to this profile.
    last_message_sid: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.onboarding_status == OnboardingState.COMPLETED
