from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from src.medverify.domain.models.clinician import ClinicianProfile, Specialty
from src.medverify.infra.db.repositories import ClinicianRepository
from src.medverify.services.audit.service import AuditService, audit_service


class ClinicianService:
    """Registers clinicians coming from the identity provider."""

    def __init__(self, *, clinicians: ClinicianRepository, audit: AuditService = audit_service) -> None:
        self._clinicians = clinicians
        self._audit = audit

    def onboard(
        self,
        *,
        clerk_id: str,
        name: str,
        email: str,
        specialty: Specialty,
        phone_number: Optional[str] = None,
    ) -> Tuple[ClinicianProfile, bool]:
        """Create or update a clinician and mark them onboarded.

        Returns the stored profile and whether it was newly created.
        """

        now = datetime.now(timezone.utc)
        existing = self._clinicians.get_by_clerk_id(clerk_id)
        if existing is None:
            clinician = ClinicianProfile(
                id=uuid4(),
                clerk_id=clerk_id,
                name=name,
                email=email,
                specialty=specialty,
                phone_number=phone_number,
                is_onboarded=True,
                created_at=now,
                updated_at=now,
            )
        else:
            clinician = existing.model_copy(
                update={
                    "name": name,
                    "email": email,
                    "specialty": specialty,
                    "phone_number": phone_number,
                    "is_onboarded": True,
                    "updated_at": now,
                }
            )

        saved = self._clinicians.save(clinician)
        self._audit.log_event(
            action="onboard_clinician",
            resource_type="clinician",
            resource_id=str(saved.id),
            subject=clerk_id,
            extra={"created": existing is None, "specialty": specialty.value},
        )
        return saved, existing is None

    def status(self, clerk_id: str) -> Tuple[bool, Optional[ClinicianProfile]]:
        clinician = self._clinicians.get_by_clerk_id(clerk_id)
        if clinician is None:
            return False, None
        return clinician.is_onboarded, clinician
