"""Patient-facing WhatsApp message bodies.

Bodies sent through Twilio may not exceed ``MAX_BODY_LENGTH`` characters.
Multi-part messages truncate each section first so the most useful parts of
all sections survive, then the assembled body is capped as a whole.
"""

from __future__ import annotations

from typing import Optional

from src.medverify.domain.models.clinician import Specialty
from src.medverify.domain.models.patient_profile import PatientProfile
from src.medverify.domain.models.patient_query import VerificationStatus

MAX_BODY_LENGTH = 1600
ELLIPSIS = "..."

QUESTION_EXCERPT_LENGTH = 100
ANSWER_EXCERPT_LENGTH = 400
COMMENT_EXCERPT_LENGTH = 300

UNVERIFIED_DISCLAIMER = "\n\n*This response is not yet verified by the doctor.*"

DEFAULT_VERIFIED_COMMENT = "The information provided is medically accurate."
DEFAULT_INCORRECT_COMMENT = "Please consult with a healthcare provider for accurate guidance on this matter."

# Onboarding replies.
ASK_NAME = "Hello! What is your name?"
ASK_NAME_AGAIN = "Let's finish your onboarding. What is your name?"
ASK_NAME_NOT_EMPTY = "Please tell us your name to continue."
SEND_HI_TO_BEGIN = 'Hello! To get started, please send "hi" to begin the registration process.'
INVALID_AGE = "Please provide a valid number for your age."
SEND_TEXT_QUESTION = "Please send your health question as a text message."
RESEND_LAST_MESSAGE = "Sorry, we couldn't process your last message. Please send it again."
QUERY_FAILED = "I'm sorry, I couldn't process your health query at the moment. Please try again later."


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut with an ellipsis."""

    if len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:limit]
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def fit_body(body: str) -> str:
    return truncate(body, MAX_BODY_LENGTH)


def strip_disclaimer(answer: Optional[str]) -> str:
    """Remove the unverified-answer disclaimer appended when the draft was sent."""

    if not answer:
        return ""
    if answer.endswith(UNVERIFIED_DISCLAIMER):
        return answer[: -len(UNVERIFIED_DISCLAIMER)]
    return answer


def with_disclaimer(answer: str) -> str:
    """Append the unverified disclaimer, shortening the answer so both fit one message."""

    answer = truncate(answer.rstrip(), MAX_BODY_LENGTH - len(UNVERIFIED_DISCLAIMER))
    return f"{answer}{UNVERIFIED_DISCLAIMER}"


def ask_age(name: str) -> str:
    return f"Thanks, {name}! Now, what is your age?"


def onboarding_complete(name: str, age: int) -> str:
    return (
        f"Great! Your profile is complete. We've saved your name ({name}) and age ({age}). "
        "You can now use our service."
    )


def welcome_back(profile: PatientProfile) -> str:
    return f"Welcome back, {profile.user_name}! How can I help you today?"


def default_comment(decision: VerificationStatus) -> str:
    if decision == VerificationStatus.VERIFIED:
        return DEFAULT_VERIFIED_COMMENT
    return DEFAULT_INCORRECT_COMMENT


def verification_summary(
    *,
    question: str,
    answer: Optional[str],
    decision: VerificationStatus,
    specialty: Specialty,
    comment: Optional[str],
) -> str:
    """Compose the message telling a patient how a clinician judged the AI draft."""

    question_excerpt = truncate(question, QUESTION_EXCERPT_LENGTH)
    answer_excerpt = truncate(strip_disclaimer(answer) or "(no AI response was generated)", ANSWER_EXCERPT_LENGTH)
    comment_excerpt = truncate(comment or default_comment(decision), COMMENT_EXCERPT_LENGTH)

    if decision == VerificationStatus.VERIFIED:
        badge = f"✅ Verified by a {specialty.value} specialist"
        comment_heading = "Doctor's Comment"
    else:
        badge = "⚠️ The AI response requires clarification"
        comment_heading = "Doctor's Correction"

    body = (
        "*Healthcare Query Verification*\n\n"
        f'Your question: "{question_excerpt}"\n\n'
        f"*Status*: {badge}\n\n"
        f"*AI Response*:\n{answer_excerpt}\n\n"
        f"*{comment_heading}*:\n{comment_excerpt}\n\n"
        "Thank you for using our service. For medical emergencies, always consult a healthcare provider immediately."
    )
    return fit_body(body)
