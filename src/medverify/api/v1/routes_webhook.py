from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.medverify.container import ServiceContainer, get_container
from src.medverify.errors import MedVerifyError

logger = logging.getLogger("medverify.webhook")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookResponse(BaseModel):
    status: str
    message: str


async def verify_twilio_signature(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Reject webhooks whose X-Twilio-Signature does not match, when enabled."""

    validator = container.signature_validator
    if validator is None:
        return

    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    if not validator.is_valid(str(request.url), params, request.headers.get("X-Twilio-Signature")):
        logger.warning("Rejected webhook with invalid Twilio signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Twilio signature")


@router.post(
    "/whatsapp",
    response_model=WebhookResponse,
    dependencies=[Depends(verify_twilio_signature)],
)
async def whatsapp_webhook(
    sender: str = Form(..., alias="From"),
    body: str = Form("", alias="Body"),
    message_sid: Optional[str] = Form(None, alias="MessageSid"),
    container: ServiceContainer = Depends(get_container),
):
    """Inbound WhatsApp message from Twilio.

    Drives the onboarding conversation and, for onboarded patients, the
    drafting pipeline. Every accepted message gets exactly one reply.
    """

    logger.info("Inbound message from %s (sid=%s)", sender, message_sid)
    try:
        result = await container.conversations.handle_inbound(sender, body, message_sid=message_sid)
    except MedVerifyError as exc:
        logger.exception("Failed to handle inbound message from %s", sender)
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "message": exc.message},
        )

    if result.action == "duplicate":
        return WebhookResponse(status="success", message="Duplicate message ignored")
    if result.action == "conflict":
        return WebhookResponse(status="success", message="Concurrent update, patient asked to resend")
    if result.action == "query":
        return WebhookResponse(status="success", message="Health query received")
    return WebhookResponse(status="success", message="Onboarding message processed")
