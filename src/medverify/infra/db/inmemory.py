from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from src.medverify.domain.models.clinician import ClinicianProfile
from src.medverify.domain.models.patient_profile import PatientProfile
from src.medverify.domain.models.patient_query import (
    PatientQuery,
    QueryFilter,
    QueryPatch,
    VerificationStatus,
)
from src.medverify.errors import NotFoundError, StateConflictError, ValidationError
from src.medverify.infra.db.repositories import (
    ClinicianRepository,
    PatientProfileRepository,
    QueryRepository,
)


def _matches(query: PatientQuery, query_filter: QueryFilter) -> bool:
    if query.status != query_filter.status:
        return False
    if query_filter.uncategorized_only:
        return query.doctor_category is None
    if query_filter.doctor_category is not None and query.doctor_category != query_filter.doctor_category:
        return False
    return True


class InMemoryQueryRepository(QueryRepository):
    """Dictionary-backed query store for tests and local development."""

    def __init__(self) -> None:
        self._queries: Dict[UUID, PatientQuery] = {}
        self._lock = Lock()

    def create(self, query: PatientQuery) -> UUID:
        if not query.query.strip():
            raise ValidationError("Query text must not be empty", detail={"field": "query"})
        with self._lock:
            self._queries[query.id] = query.model_copy(deep=True)
        return query.id

    def get(self, query_id: UUID) -> Optional[PatientQuery]:
        query = self._queries.get(query_id)
        return query.model_copy(deep=True) if query is not None else None

    def list_by_filter(
        self,
        query_filter: QueryFilter,
        *,
        page: int,
        page_size: int,
    ) -> Tuple[List[PatientQuery], int]:
        matching = [q for q in self._queries.values() if _matches(q, query_filter)]
        matching.sort(key=lambda q: q.created_at, reverse=True)
        skip = (page - 1) * page_size
        items = [q.model_copy(deep=True) for q in matching[skip : skip + page_size]]
        return items, len(matching)

    def list_for_patient_since(
        self,
        phone_number: str,
        since: datetime,
        *,
        exclude_id: Optional[UUID] = None,
    ) -> List[PatientQuery]:
        history = [
            q.model_copy(deep=True)
            for q in self._queries.values()
            if q.phone_number == phone_number and q.created_at >= since and q.id != exclude_id
        ]
        history.sort(key=lambda q: q.created_at)
        return history

    def update(
        self,
        query_id: UUID,
        patch: QueryPatch,
        *,
        expected_status: Optional[VerificationStatus] = None,
    ) -> PatientQuery:
        with self._lock:
            existing = self._queries.get(query_id)
            if existing is None:
                raise NotFoundError("Query not found", detail={"queryId": str(query_id)})
            if expected_status is not None and existing.status != expected_status:
                raise StateConflictError(
                    f"Query is already {existing.status.value}",
                    detail={"queryId": str(query_id), "status": existing.status.value},
                )
            updated = existing.model_copy(update=patch.model_dump(exclude_unset=True))
            self._queries[query_id] = updated
            return updated.model_copy(deep=True)


class InMemoryPatientProfileRepository(PatientProfileRepository):
    def __init__(self) -> None:
        self._profiles: Dict[str, PatientProfile] = {}
        self._lock = Lock()

    def get(self, phone_number: str) -> Optional[PatientProfile]:
        profile = self._profiles.get(phone_number)
        return profile.model_copy() if profile is not None else None

    def save(self, profile: PatientProfile, *, expected_version: Optional[int] = None) -> PatientProfile:
        with self._lock:
            existing = self._profiles.get(profile.phone_number)
            stored_version = existing.version if existing is not None else 0
            if expected_version is not None and stored_version != expected_version:
                raise StateConflictError(
                    "Patient profile was modified concurrently",
                    detail={"expected": expected_version, "actual": stored_version},
                )
            saved = profile.model_copy(update={"version": stored_version + 1})
            self._profiles[profile.phone_number] = saved
            return saved.model_copy()


class InMemoryClinicianRepository(ClinicianRepository):
    def __init__(self) -> None:
        self._clinicians: Dict[UUID, ClinicianProfile] = {}

    def get(self, clinician_id: UUID) -> Optional[ClinicianProfile]:
        return self._clinicians.get(clinician_id)

    def get_by_clerk_id(self, clerk_id: str) -> Optional[ClinicianProfile]:
        for clinician in self._clinicians.values():
            if clinician.clerk_id == clerk_id:
                return clinician
        return None

    def save(self, clinician: ClinicianProfile) -> ClinicianProfile:
        self._clinicians[clinician.id] = clinician
        return clinician
