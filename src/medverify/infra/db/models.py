from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.medverify.domain.models.clinician import ClinicianProfile, Specialty
from src.medverify.domain.models.patient_profile import OnboardingState, PatientProfile
from src.medverify.domain.models.patient_query import PatientQuery, VerificationStatus


class Base(DeclarativeBase):
    pass


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Some backends (SQLite) drop tzinfo on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class PatientProfileORM(Base):
    __tablename__ = "patient_profiles"

    phone_number: Mapped[str] = mapped_column(String, primary_key=True)
    user_name: Mapped[str | None] = mapped_column(String, nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    onboarding_status: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_message_sid: Mapped[str | None] = mapped_column(String, nullable=True)

    @classmethod
    def from_domain(cls, profile: PatientProfile) -> "PatientProfileORM":
        return cls(
            phone_number=profile.phone_number,
            user_name=profile.user_name,
            age=profile.age,
            onboarding_status=profile.onboarding_status.value,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
            version=profile.version,
            last_message_sid=profile.last_message_sid,
        )

    def to_domain(self) -> PatientProfile:
        return PatientProfile(
            phone_number=self.phone_number,
            user_name=self.user_name,
            age=self.age,
            onboarding_status=OnboardingState(self.onboarding_status),
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            version=self.version,
            last_message_sid=self.last_message_sid,
        )


class PatientQueryORM(Base):
    __tablename__ = "patient_queries"
    __table_args__ = (
        Index("ix_patient_queries_status_category_created", "status", "doctor_category", "created_at"),
        Index("ix_patient_queries_phone_created", "phone_number", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    phone_number: Mapped[str] = mapped_column(String, nullable=False)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str | None] = mapped_column(Text, nullable=True)
    doctor_category: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    doctor_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, query: PatientQuery) -> "PatientQueryORM":
        return cls(
            id=query.id,
            phone_number=query.phone_number,
            query=query.query,
            response=query.response,
            doctor_category=query.doctor_category.value if query.doctor_category else None,
            status=query.status.value,
            doctor_comment=query.doctor_comment,
            verified_by=query.verified_by,
            verified_at=query.verified_at,
            created_at=query.created_at,
        )

    def to_domain(self) -> PatientQuery:
        return PatientQuery(
            id=self.id,
            phone_number=self.phone_number,
            query=self.query,
            response=self.response,
            doctor_category=Specialty(self.doctor_category) if self.doctor_category else None,
            status=VerificationStatus(self.status),
            doctor_comment=self.doctor_comment,
            verified_by=self.verified_by,
            verified_at=_as_utc(self.verified_at),
            created_at=_as_utc(self.created_at),
        )


class ClinicianORM(Base):
    __tablename__ = "clinicians"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    clerk_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    specialty: Mapped[str] = mapped_column(String, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
    is_onboarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, clinician: ClinicianProfile) -> "ClinicianORM":
        return cls(
            id=clinician.id,
            clerk_id=clinician.clerk_id,
            name=clinician.name,
            email=str(clinician.email),
            specialty=clinician.specialty.value,
            phone_number=clinician.phone_number,
            is_onboarded=clinician.is_onboarded,
            created_at=clinician.created_at,
            updated_at=clinician.updated_at,
        )

    def to_domain(self) -> ClinicianProfile:
        return ClinicianProfile(
            id=self.id,
            clerk_id=self.clerk_id,
            name=self.name,
            email=self.email,
            specialty=Specialty(self.specialty),
            phone_number=self.phone_number,
            is_onboarded=self.is_onboarded,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )
