from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update

from src.medverify.domain.models.clinician import ClinicianProfile
from src.medverify.domain.models.patient_profile import PatientProfile
from src.medverify.domain.models.patient_query import (
    PatientQuery,
    QueryFilter,
    QueryPatch,
    VerificationStatus,
)
from src.medverify.errors import NotFoundError, StateConflictError, ValidationError
from src.medverify.infra.db.models import ClinicianORM, PatientProfileORM, PatientQueryORM
from src.medverify.infra.db.repositories import (
    ClinicianRepository,
    PatientProfileRepository,
    QueryRepository,
)
from src.medverify.infra.db.session import SessionFactory


class SqlQueryRepository(QueryRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def create(self, query: PatientQuery) -> UUID:
        if not query.query.strip():
            raise ValidationError("Query text must not be empty", detail={"field": "query"})

        session = self._session_factory()
        try:
            session.add(PatientQueryORM.from_domain(query))
            session.commit()
            return query.id
        finally:
            session.close()

    def get(self, query_id: UUID) -> Optional[PatientQuery]:
        session = self._session_factory()
        try:
            orm = session.get(PatientQueryORM, query_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list_by_filter(
        self,
        query_filter: QueryFilter,
        *,
        page: int,
        page_size: int,
    ) -> Tuple[List[PatientQuery], int]:
        """Return one page of queries matching ``query_filter``, newest first."""

        conditions = [PatientQueryORM.status == query_filter.status.value]
        if query_filter.uncategorized_only:
            conditions.append(PatientQueryORM.doctor_category.is_(None))
        elif query_filter.doctor_category is not None:
            conditions.append(PatientQueryORM.doctor_category == query_filter.doctor_category.value)

        session = self._session_factory()
        try:
            total = session.scalar(select(func.count()).select_from(PatientQueryORM).where(*conditions)) or 0
            rows = session.scalars(
                select(PatientQueryORM)
                .where(*conditions)
                .order_by(PatientQueryORM.created_at.desc(), PatientQueryORM.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()
            return [row.to_domain() for row in rows], total
        finally:
            session.close()

    def list_for_patient_since(
        self,
        phone_number: str,
        since: datetime,
        *,
        exclude_id: Optional[UUID] = None,
    ) -> List[PatientQuery]:
        stmt = select(PatientQueryORM).where(
            PatientQueryORM.phone_number == phone_number,
            PatientQueryORM.created_at >= since,
        )
        if exclude_id is not None:
            stmt = stmt.where(PatientQueryORM.id != exclude_id)

        session = self._session_factory()
        try:
            rows = session.scalars(stmt.order_by(PatientQueryORM.created_at.asc())).all()
            return [row.to_domain() for row in rows]
        finally:
            session.close()

    def update(
        self,
        query_id: UUID,
        patch: QueryPatch,
        *,
        expected_status: Optional[VerificationStatus] = None,
    ) -> PatientQuery:
        """Apply ``patch`` in a single UPDATE statement.

        When ``expected_status`` is given the statement is conditional on the
        stored status, so two concurrent decisions cannot both succeed.
        """

        values = {
            field: value.value if isinstance(value, Enum) else value
            for field, value in patch.model_dump(exclude_unset=True).items()
        }

        session = self._session_factory()
        try:
            stmt = update(PatientQueryORM).where(PatientQueryORM.id == query_id)
            if expected_status is not None:
                stmt = stmt.where(PatientQueryORM.status == expected_status.value)
            result = session.execute(stmt.values(**values))

            if result.rowcount == 0:
                session.rollback()
                existing = session.get(PatientQueryORM, query_id)
                if existing is None:
                    raise NotFoundError("Query not found", detail={"queryId": str(query_id)})
                raise StateConflictError(
                    f"Query is already {existing.status}",
                    detail={"queryId": str(query_id), "status": existing.status},
                )

            session.commit()
            orm = session.get(PatientQueryORM, query_id)
            assert orm is not None
            return orm.to_domain()
        finally:
            session.close()


class SqlPatientProfileRepository(PatientProfileRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, phone_number: str) -> Optional[PatientProfile]:
        session = self._session_factory()
        try:
            orm = session.get(PatientProfileORM, phone_number)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def save(self, profile: PatientProfile, *, expected_version: Optional[int] = None) -> PatientProfile:
        session = self._session_factory()
        try:
            existing = session.get(PatientProfileORM, profile.phone_number, with_for_update=True)
            stored_version = existing.version if existing is not None else 0
            if expected_version is not None and stored_version != expected_version:
                raise StateConflictError(
                    "Patient profile was modified concurrently",
                    detail={"expected": expected_version, "actual": stored_version},
                )

            saved = profile.model_copy(update={"version": stored_version + 1})
            if existing is None:
                session.add(PatientProfileORM.from_domain(saved))
            else:
                existing.user_name = saved.user_name
                existing.age = saved.age
                existing.onboarding_status = saved.onboarding_status.value
                existing.updated_at = saved.updated_at
                existing.version = saved.version
                existing.last_message_sid = saved.last_message_sid

            session.commit()
            return saved
        finally:
            session.close()


class SqlClinicianRepository(ClinicianRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, clinician_id: UUID) -> Optional[ClinicianProfile]:
        session = self._session_factory()
        try:
            orm = session.get(ClinicianORM, clinician_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def get_by_clerk_id(self, clerk_id: str) -> Optional[ClinicianProfile]:
        session = self._session_factory()
        try:
            orm = session.scalars(select(ClinicianORM).where(ClinicianORM.clerk_id == clerk_id)).first()
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def save(self, clinician: ClinicianProfile) -> ClinicianProfile:
        session = self._session_factory()
        try:
            existing = session.get(ClinicianORM, clinician.id)
            if existing is None:
                session.add(ClinicianORM.from_domain(clinician))
            else:
                existing.name = clinician.name
                existing.email = str(clinician.email)
                existing.specialty = clinician.specialty.value
                existing.phone_number = clinician.phone_number
                existing.is_onboarded = clinician.is_onboarded
                existing.updated_at = clinician.updated_at

            session.commit()
            return clinician
        finally:
            session.close()
