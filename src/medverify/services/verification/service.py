from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from src.medverify.domain.models.clinician import ClinicianProfile
from src.medverify.domain.models.patient_query import (
    PatientQuery,
    QueryFilter,
    QueryPatch,
    VerificationStatus,
)
from src.medverify.errors import NotFoundError, StateConflictError, ValidationError
from src.medverify.infra.db.repositories import ClinicianRepository, QueryRepository
from src.medverify.services.audit.service import AuditService, audit_service
from src.medverify.services.notifications import templates
from src.medverify.services.notifications.gateway import DeliveryResult, NotificationGateway

logger = logging.getLogger("medverify.verification")

DECISIONS = {VerificationStatus.VERIFIED, VerificationStatus.INCORRECT}


class VerificationService:
    """Clinician-facing review of drafted queries.

    A query is decided exactly once. The decision is written before the
    patient is notified, and notification problems are only logged.
    """

    def __init__(
        self,
        *,
        queries: QueryRepository,
        clinicians: ClinicianRepository,
        gateway: NotificationGateway,
        audit: AuditService = audit_service,
    ) -> None:
        self._queries = queries
        self._clinicians = clinicians
        self._gateway = gateway
        self._audit = audit

    def get_clinician(self, clerk_id: str) -> ClinicianProfile:
        clinician = self._clinicians.get_by_clerk_id(clerk_id)
        if clinician is None:
            raise NotFoundError("Clinician not found")
        return clinician

    # Listing

    def list_queries(
        self,
        clerk_id: str,
        *,
        status: VerificationStatus,
        page: int,
        limit: int,
    ) -> Tuple[List[PatientQuery], int]:
        """List queries for a clinician's dashboard.

        Pending queries are routed by specialty: a clinician only sees the ones
        categorised under their own specialty. Verified and incorrect queries
        form an open audit trail visible to every clinician.
        """

        clinician = self.get_clinician(clerk_id)
        query_filter = QueryFilter(status=status)
        if status == VerificationStatus.PENDING:
            query_filter.doctor_category = clinician.specialty

        items, total = self._queries.list_by_filter(query_filter, page=page, page_size=limit)
        self._audit.log_event(
            action="list_queries",
            resource_type="patient_query",
            subject=clerk_id,
            extra={"status": status.value, "page": page, "count": len(items), "total": total},
        )
        return items, total

    def list_uncategorized(self, clerk_id: str, *, page: int, limit: int) -> Tuple[List[PatientQuery], int]:
        """Pending queries the drafting pipeline could not categorise.

        These match no specialty, so they are open to every clinician.
        """

        self.get_clinician(clerk_id)
        query_filter = QueryFilter(status=VerificationStatus.PENDING, uncategorized_only=True)
        return self._queries.list_by_filter(query_filter, page=page, page_size=limit)

    # Decisions

    def verify(
        self,
        query_id: UUID,
        clerk_id: str,
        decision: VerificationStatus,
        comment: Optional[str] = None,
    ) -> Tuple[PatientQuery, ClinicianProfile]:
        if decision not in DECISIONS:
            raise ValidationError(
                "status must be 'verified' or 'incorrect'",
                detail={"field": "status", "value": decision.value},
            )

        clinician = self.get_clinician(clerk_id)

        query = self._queries.get(query_id)
        if query is None:
            raise NotFoundError("Query not found", detail={"queryId": str(query_id)})
        if query.is_decided:
            raise StateConflictError(
                f"Query is already {query.status.value}",
                detail={"queryId": str(query_id), "status": query.status.value},
            )

        comment = (comment or "").strip() or templates.default_comment(decision)
        patch = QueryPatch(
            status=decision,
            doctor_comment=comment,
            verified_by=clinician.id,
            verified_at=datetime.now(timezone.utc),
        )
        # Conditional on the query still being pending, in case another
        # clinician decided it since we read it.
        updated = self._queries.update(query_id, patch, expected_status=VerificationStatus.PENDING)

        self._audit.log_event(
            action="verify_query",
            resource_type="patient_query",
            resource_id=str(query_id),
            subject=clerk_id,
            extra={"decision": decision.value, "clinician_id": str(clinician.id)},
        )
        return updated, clinician

    async def notify_outcome(self, query: PatientQuery, clinician: ClinicianProfile) -> DeliveryResult:
        body = templates.verification_summary(
            question=query.query,
            answer=query.response,
            decision=query.status,
            specialty=clinician.specialty,
            comment=query.doctor_comment,
        )
        result = await self._gateway.send(query.phone_number, body)
        if not result.success:
            logger.warning(
                "Verification notice for query %s not delivered: status=%s error=%s",
                query.id,
                result.status.value,
                result.error,
            )
        return result
