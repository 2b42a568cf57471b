from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from src.medverify.container import ServiceContainer, get_container
from src.medverify.domain.models.clinician import ClinicianProfile, Specialty
from src.medverify.security import ensure_same_subject, get_current_subject

router = APIRouter(prefix="/clinicians", tags=["clinicians"])


class ClinicianView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    clerk_id: str
    name: str
    email: EmailStr
    specialty: Specialty
    phone_number: Optional[str] = None
    is_onboarded: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, clinician: ClinicianProfile) -> "ClinicianView":
        return cls(**clinician.model_dump())


class ClinicianOnboardRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    clerk_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: EmailStr
    specialty: Specialty
    phone_number: Optional[str] = None


class ClinicianOnboardResponse(BaseModel):
    message: str
    user: ClinicianView


class ClinicianStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_onboarded: bool
    user: Optional[ClinicianView] = None


@router.post("/onboard", response_model=ClinicianOnboardResponse)
async def onboard_clinician(
    payload: ClinicianOnboardRequest,
    subject: str = Depends(get_current_subject),
    container: ServiceContainer = Depends(get_container),
) -> ClinicianOnboardResponse:
    ensure_same_subject(subject, payload.clerk_id)

    clinician, created = container.clinicians.onboard(
        clerk_id=payload.clerk_id,
        name=payload.name.strip(),
        email=str(payload.email),
        specialty=payload.specialty,
        phone_number=payload.phone_number,
    )
    message = "Clinician onboarded successfully" if created else "Clinician updated successfully"
    return ClinicianOnboardResponse(message=message, user=ClinicianView.from_domain(clinician))


@router.get("/onboard/status", response_model=ClinicianStatusResponse)
async def clinician_onboarding_status(
    clerk_id: Optional[str] = Query(None, alias="clerkId"),
    subject: str = Depends(get_current_subject),
    container: ServiceContainer = Depends(get_container),
) -> ClinicianStatusResponse:
    ensure_same_subject(subject, clerk_id)

    is_onboarded, clinician = container.clinicians.status(subject)
    return ClinicianStatusResponse(
        is_onboarded=is_onboarded,
        user=ClinicianView.from_domain(clinician) if clinician is not None else None,
    )
