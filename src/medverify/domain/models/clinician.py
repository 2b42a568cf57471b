from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr


class Specialty(str, Enum):
    """Closed set of medical specialties.

    Used to route drafted queries to clinicians and to describe the clinician
    who reviewed a query.
    """

    CARDIOLOGY = "Cardiology"
    DERMATOLOGY = "Dermatology"
    ENDOCRINOLOGY = "Endocrinology"
    FAMILY_MEDICINE = "Family Medicine"
    GASTROENTEROLOGY = "Gastroenterology"
    INTERNAL_MEDICINE = "Internal Medicine"
    NEUROLOGY = "Neurology"
    OBSTETRICS_GYNECOLOGY = "Obstetrics & Gynecology"
    ONCOLOGY = "Oncology"
    OPHTHALMOLOGY = "Ophthalmology"
    ORTHOPEDICS = "Orthopedics"
    PEDIATRICS = "Pediatrics"
    PSYCHIATRY = "Psychiatry"
    RADIOLOGY = "Radiology"
    SURGERY = "Surgery"
    UROLOGY = "Urology"


class ClinicianProfile(BaseModel):
    id: UUID
    # Subject id issued by the external identity provider.
    clerk_id: str
    name: str
    email: EmailStr
    specialty: Specialty
    phone_number: Optional[str] = None
    is_onboarded: bool = False
    created_at: datetime
    updated_at: datetime
