from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.medverify.container import ServiceContainer, get_container
from src.medverify.domain.models.clinician import Specialty
from src.medverify.domain.models.patient_query import PatientQuery, VerificationStatus
from src.medverify.security import get_current_subject

router = APIRouter(prefix="/clinician/queries", tags=["dashboard"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatientQueryView(CamelModel):
    id: UUID
    phone_number: str
    query: str
    response: Optional[str] = None
    doctor_category: Optional[Specialty] = None
    status: VerificationStatus
    doctor_comment: Optional[str] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, query: PatientQuery) -> "PatientQueryView":
        return cls(**query.model_dump())


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class QueryListResponse(BaseModel):
    queries: List[PatientQueryView]
    pagination: Pagination


class VerifyQueryRequest(CamelModel):
    query_id: UUID
    status: VerificationStatus
    doctor_comment: Optional[str] = None


class VerifyQueryResponse(BaseModel):
    success: bool
    message: str
    query: PatientQueryView


def _page(items: List[PatientQuery], total: int, page: int, limit: int) -> QueryListResponse:
    return QueryListResponse(
        queries=[PatientQueryView.from_domain(q) for q in items],
        pagination=Pagination(total=total, page=page, limit=limit, pages=math.ceil(total / limit)),
    )


@router.get("", response_model=QueryListResponse)
async def list_queries(
    status_filter: VerificationStatus = Query(VerificationStatus.PENDING, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    subject: str = Depends(get_current_subject),
    container: ServiceContainer = Depends(get_container),
) -> QueryListResponse:
    """Dashboard listing.

    ``status=not_verified`` returns pending queries in the caller's specialty;
    ``verified`` and ``incorrect`` return every decided query.
    """

    items, total = container.verification.list_queries(subject, status=status_filter, page=page, limit=limit)
    return _page(items, total, page, limit)


@router.get("/uncategorized", response_model=QueryListResponse)
async def list_uncategorized_queries(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    subject: str = Depends(get_current_subject),
    container: ServiceContainer = Depends(get_container),
) -> QueryListResponse:
    """Pending queries that could not be drafted or categorised, open to all clinicians."""

    items, total = container.verification.list_uncategorized(subject, page=page, limit=limit)
    return _page(items, total, page, limit)


@router.post("/verify", response_model=VerifyQueryResponse)
async def verify_query(
    payload: VerifyQueryRequest,
    background_tasks: BackgroundTasks,
    subject: str = Depends(get_current_subject),
    container: ServiceContainer = Depends(get_container),
) -> VerifyQueryResponse:
    query, clinician = container.verification.verify(
        payload.query_id,
        subject,
        payload.status,
        payload.doctor_comment,
    )
    # The decision is committed; the patient notice goes out after the response.
    background_tasks.add_task(container.verification.notify_outcome, query, clinician)

    return VerifyQueryResponse(
        success=True,
        message="Query updated successfully",
        query=PatientQueryView.from_domain(query),
    )
