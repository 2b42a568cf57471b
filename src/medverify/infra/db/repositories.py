from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from src.medverify.domain.models.clinician import ClinicianProfile
from src.medverify.domain.models.patient_profile import PatientProfile
from src.medverify.domain.models.patient_query import (
    PatientQuery,
    QueryFilter,
    QueryPatch,
    VerificationStatus,
)


class QueryRepository(ABC):
    @abstractmethod
    def create(self, query: PatientQuery) -> UUID:
        """Persist a new query and return its id.

        Raises ValidationError if the question text is empty.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, query_id: UUID) -> Optional[PatientQuery]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filter(
        self,
        query_filter: QueryFilter,
        *,
        page: int,
        page_size: int,
    ) -> Tuple[List[PatientQuery], int]:
        """Return one page of matching queries (newest first) and the total count."""
        raise NotImplementedError

    @abstractmethod
    def list_for_patient_since(
        self,
        phone_number: str,
        since: datetime,
        *,
        exclude_id: Optional[UUID] = None,
    ) -> List[PatientQuery]:
        """Return a patient's queries created at or after ``since``, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def update(
        self,
        query_id: UUID,
        patch: QueryPatch,
        *,
        expected_status: Optional[VerificationStatus] = None,
    ) -> PatientQuery:
        """Apply ``patch`` and return the updated record.

        Raises NotFoundError if the query does not exist, and
        StateConflictError if ``expected_status`` is given and differs from
        the stored status.
        """
        raise NotImplementedError


class PatientProfileRepository(ABC):
    @abstractmethod
    def get(self, phone_number: str) -> Optional[PatientProfile]:
        raise NotImplementedError

    @abstractmethod
    def save(self, profile: PatientProfile, *, expected_version: Optional[int] = None) -> PatientProfile:
        """Insert or update a profile, bumping its version.

        Raises StateConflictError when ``expected_version`` is given and does
        not match the stored version. A profile that is not stored yet counts
        as version 0.
        """
        raise NotImplementedError


class ClinicianRepository(ABC):
    @abstractmethod
    def get(self, clinician_id: UUID) -> Optional[ClinicianProfile]:
        raise NotImplementedError

    @abstractmethod
    def get_by_clerk_id(self, clerk_id: str) -> Optional[ClinicianProfile]:
        raise NotImplementedError

    @abstractmethod
    def save(self, clinician: ClinicianProfile) -> ClinicianProfile:
        raise NotImplementedError
