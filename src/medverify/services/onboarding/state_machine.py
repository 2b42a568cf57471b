"""Onboarding conversation rules.

``transition`` is a pure function: given the stored profile (or None for an
unknown sender) and the inbound text, it returns the profile to persist, the
reply to send, and whether the message should be handed to the drafting
pipeline. Persistence and delivery happen in ``ConversationService``.

    absent/new     + "hi"       -> awaiting_name   (profile created)
    absent/new     + other      -> absent          (nothing stored)
    completed      + "hi"       -> completed       (welcome back)
    completed      + blank      -> completed       (ask for text)
    awaiting_*     + "hi"       -> awaiting_name   (restart)
    awaiting_name  + text       -> awaiting_age    (name stored)
    awaiting_age   + integer    -> completed       (age stored)
    awaiting_age   + other      -> awaiting_age    (ask again)
    completed      + other      -> completed       (hand off)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.medverify.domain.models.patient_profile import OnboardingState, PatientProfile
from src.medverify.services.notifications import templates

TRIGGER_WORD = "hi"
MIN_AGE = 1
MAX_AGE = 150

_LEADING_INT = re.compile(r"^[+-]?\d+")


@dataclass
class OnboardingOutcome:
    # Profile as it should be persisted; None when the sender stays unknown.
    profile: Optional[PatientProfile]
    reply: Optional[str]
    changed: bool = False
    hand_off: bool = False


def is_trigger(text: str) -> bool:
    return text.strip().lower() == TRIGGER_WORD


def parse_age(text: str) -> Optional[int]:
    """Parse the leading integer of ``text`` ("30", "30 years"); None if invalid."""

    match = _LEADING_INT.match(text.strip())
    if match is None:
        return None
    age = int(match.group())
    if age < MIN_AGE or age > MAX_AGE:
        return None
    return age


def _moved(profile: PatientProfile, now: datetime, **changes) -> PatientProfile:
    return profile.model_copy(update={**changes, "updated_at": now})


def transition(profile: Optional[PatientProfile], text: str, *, phone_number: str, now: datetime) -> OnboardingOutcome:
    trigger = is_trigger(text)

    if profile is None or profile.onboarding_status == OnboardingState.NEW:
        if not trigger:
            return OnboardingOutcome(profile=profile, reply=templates.SEND_HI_TO_BEGIN)
        base = profile or PatientProfile(phone_number=phone_number, created_at=now, updated_at=now)
        started = _moved(base, now, onboarding_status=OnboardingState.AWAITING_NAME)
        return OnboardingOutcome(profile=started, reply=templates.ASK_NAME, changed=True)

    state = profile.onboarding_status

    if state == OnboardingState.COMPLETED:
        if trigger:
            return OnboardingOutcome(profile=profile, reply=templates.welcome_back(profile))
        # Media without a caption arrives with an empty body.
        if not text.strip():
            return OnboardingOutcome(profile=profile, reply=templates.SEND_TEXT_QUESTION)
        # The drafting pipeline owns the reply for health questions.
        return OnboardingOutcome(profile=profile, reply=None, hand_off=True)

    if trigger:
        restarted = _moved(profile, now, user_name=None, age=None, onboarding_status=OnboardingState.AWAITING_NAME)
        return OnboardingOutcome(profile=restarted, reply=templates.ASK_NAME_AGAIN, changed=True)

    if state == OnboardingState.AWAITING_NAME:
        name = text.strip()
        if not name:
            return OnboardingOutcome(profile=profile, reply=templates.ASK_NAME_NOT_EMPTY)
        named = _moved(profile, now, user_name=name, onboarding_status=OnboardingState.AWAITING_AGE)
        return OnboardingOutcome(profile=named, reply=templates.ask_age(name), changed=True)

    # AWAITING_AGE
    age = parse_age(text)
    if age is None:
        return OnboardingOutcome(profile=profile, reply=templates.INVALID_AGE)
    completed = _moved(profile, now, age=age, onboarding_status=OnboardingState.COMPLETED)
    return OnboardingOutcome(
        profile=completed,
        reply=templates.onboarding_complete(completed.user_name or "", age),
        changed=True,
    )
