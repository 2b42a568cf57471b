from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from fastapi import Request

from src.medverify.config import Settings
from src.medverify.infra.db.bootstrap import Repositories, init_repositories
from src.medverify.services.audit.service import AuditService, audit_service
from src.medverify.services.clinicians.service import ClinicianService
from src.medverify.services.drafting.backends import DraftingBackend, get_drafting_backend_from_settings
from src.medverify.services.drafting.service import QueryDraftingService
from src.medverify.services.notifications.gateway import NotificationGateway, WebhookSignatureValidator
from src.medverify.services.onboarding.service import ConversationService
from src.medverify.services.verification.service import VerificationService


@dataclass
class ServiceContainer:
    """Everything a request handler needs, built once per process.

    Stored on ``app.state.container`` and handed to routes through the
    ``get_container`` dependency.
    """

    settings: Settings
    repositories: Repositories
    gateway: NotificationGateway
    conversations: ConversationService
    drafting: QueryDraftingService
    verification: VerificationService
    clinicians: ClinicianService
    signature_validator: Optional[WebhookSignatureValidator] = None

    def close(self) -> None:
        self.repositories.close()


def build_container(
    settings: Settings,
    *,
    repositories: Optional[Repositories] = None,
    drafting_backend: Optional[DraftingBackend] = None,
    twilio_client: Any = None,
    audit: AuditService = audit_service,
) -> ServiceContainer:
    """Wire repositories, collaborators and services together.

    Any collaborator may be supplied explicitly (tests inject fakes);
    otherwise it is selected from ``settings``.
    """

    repositories = repositories or init_repositories(settings)
    gateway = NotificationGateway.from_settings(settings, client=twilio_client)
    drafting = QueryDraftingService(
        queries=repositories.queries,
        backend=drafting_backend or get_drafting_backend_from_settings(settings),
        gateway=gateway,
        history_window=timedelta(hours=settings.history_window_hours),
        timeout_seconds=settings.llm_timeout_seconds,
        audit=audit,
    )
    signature_validator = None
    if settings.twilio_validate_signature:
        signature_validator = WebhookSignatureValidator(settings.twilio_auth_token, settings.public_webhook_url)

    return ServiceContainer(
        settings=settings,
        repositories=repositories,
        gateway=gateway,
        conversations=ConversationService(
            patients=repositories.patients,
            drafting=drafting,
            gateway=gateway,
            audit=audit,
        ),
        drafting=drafting,
        verification=VerificationService(
            queries=repositories.queries,
            clinicians=repositories.clinicians,
            gateway=gateway,
            audit=audit,
        ),
        clinicians=ClinicianService(clinicians=repositories.clinicians, audit=audit),
        signature_validator=signature_validator,
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the process-wide service container."""

    return request.app.state.container
