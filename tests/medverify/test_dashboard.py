from uuid import uuid4

import pytest
from fastapi import status

from conftest import PATIENT, make_client, make_clinician, make_container, make_query, make_settings
from src.medverify.domain.models.clinician import Specialty
from src.medverify.domain.models.patient_query import VerificationStatus
from src.medverify.services.notifications import templates

QUERIES_URL = "/api/v1/clinician/queries"


def as_clinician(clerk_id):
    return {"X-Auth-Subject": clerk_id}


async def test_pending_queries_are_scoped_to_specialty(client, container):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)
    cardio = make_query(container, specialty=Specialty.CARDIOLOGY)
    make_query(container, specialty=Specialty.DERMATOLOGY)
    make_query(container, specialty=None)

    response = await client.get(QUERIES_URL, headers=as_clinician("user_cardio"))

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert [q["id"] for q in payload["queries"]] == [str(cardio.id)]
    assert payload["pagination"] == {"total": 1, "page": 1, "limit": 10, "pages": 1}

    item = payload["queries"][0]
    assert item["phoneNumber"] == PATIENT
    assert item["doctorCategory"] == "Cardiology"
    assert item["status"] == "not_verified"
    assert "createdAt" in item and "verifiedBy" in item


async def test_pagination_pages_newest_first(client, container):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)
    created = [make_query(container, age_minutes=minutes) for minutes in range(25)]

    response = await client.get(
        QUERIES_URL,
        params={"page": 3, "limit": 10},
        headers=as_clinician("user_cardio"),
    )

    payload = response.json()
    assert payload["pagination"] == {"total": 25, "page": 3, "limit": 10, "pages": 3}
    # created[0] is the newest, so page 3 holds the five oldest.
    assert [q["id"] for q in payload["queries"]] == [str(q.id) for q in created[20:]]


@pytest.mark.parametrize("decision", [VerificationStatus.VERIFIED, VerificationStatus.INCORRECT])
async def test_decided_queries_are_visible_across_specialties(client, container, decision):
    make_clinician(container, "user_derm", Specialty.DERMATOLOGY)
    decided = make_query(container, specialty=Specialty.CARDIOLOGY, status=decision)
    make_query(container, specialty=Specialty.CARDIOLOGY)

    response = await client.get(QUERIES_URL, params={"status": decision.value}, headers=as_clinician("user_derm"))

    assert response.status_code == status.HTTP_200_OK
    assert [q["id"] for q in response.json()["queries"]] == [str(decided.id)]
    assert response.json()["queries"][0]["status"] == decision.value


async def test_uncategorized_queries_are_open_to_every_clinician(client, container):
    make_clinician(container, "user_derm", Specialty.DERMATOLOGY)
    orphan = make_query(container, specialty=None)
    make_query(container, specialty=Specialty.CARDIOLOGY)

    response = await client.get(f"{QUERIES_URL}/uncategorized", headers=as_clinician("user_derm"))

    assert response.status_code == status.HTTP_200_OK
    assert [q["id"] for q in response.json()["queries"]] == [str(orphan.id)]


async def test_listing_requires_authenticated_subject(client):
    response = await client.get(QUERIES_URL)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_listing_for_unknown_clinician_is_not_found(client):
    response = await client.get(QUERIES_URL, headers=as_clinician("user_nobody"))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "Clinician not found"


async def test_marking_incorrect_without_comment_uses_default_correction(client, container, twilio_client):
    clinician = make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)
    query = make_query(container)

    response = await client.post(
        f"{QUERIES_URL}/verify",
        json={"queryId": str(query.id), "status": "incorrect"},
        headers=as_clinician("user_cardio"),
    )

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Query updated successfully"
    assert payload["query"]["status"] == "incorrect"
    assert payload["query"]["doctorComment"] == templates.DEFAULT_INCORRECT_COMMENT
    assert payload["query"]["verifiedBy"] == str(clinician.id)
    assert payload["query"]["verifiedAt"] is not None

    notice = twilio_client.bodies_to(PATIENT)[-1]
    assert "requires clarification" in notice
    assert "Doctor's Correction" in notice
    assert templates.DEFAULT_INCORRECT_COMMENT in notice


async def test_verifying_sends_specialist_badge_and_comment(client, container, twilio_client):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)
    query = make_query(container)

    await client.post(
        f"{QUERIES_URL}/verify",
        json={"queryId": str(query.id), "status": "verified", "doctorComment": "Looks right."},
        headers=as_clinician("user_cardio"),
    )

    notice = twilio_client.bodies_to(PATIENT)[-1]
    assert "Verified by a Cardiology specialist" in notice
    assert "Looks right." in notice
    assert len(notice) <= templates.MAX_BODY_LENGTH


async def test_second_decision_conflicts(client, container, twilio_client):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)
    query = make_query(container)
    body = {"queryId": str(query.id), "status": "verified"}

    first = await client.post(f"{QUERIES_URL}/verify", json=body, headers=as_clinician("user_cardio"))
    second = await client.post(
        f"{QUERIES_URL}/verify",
        json={"queryId": str(query.id), "status": "incorrect"},
        headers=as_clinician("user_cardio"),
    )

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_409_CONFLICT
    assert container.repositories.queries.get(query.id).status == VerificationStatus.VERIFIED
    assert len(twilio_client.bodies_to(PATIENT)) == 1


async def test_verify_rejects_pending_as_decision(client, container):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)
    query = make_query(container)

    response = await client.post(
        f"{QUERIES_URL}/verify",
        json={"queryId": str(query.id), "status": "not_verified"},
        headers=as_clinician("user_cardio"),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_verify_requires_query_id_and_status(client, container):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)

    response = await client.post(f"{QUERIES_URL}/verify", json={}, headers=as_clinician("user_cardio"))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert set(response.json()["detail"]["fields"]) >= {"queryId", "status"}


async def test_verify_unknown_query_is_not_found(client, container):
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)

    response = await client.post(
        f"{QUERIES_URL}/verify",
        json={"queryId": str(uuid4()), "status": "verified"},
        headers=as_clinician("user_cardio"),
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_api_key_is_required_when_enabled():
    container = make_container(settings=make_settings(enable_api_auth=True, api_keys="k1, k2"))
    make_clinician(container, "user_cardio", Specialty.CARDIOLOGY)

    async with make_client(container) as client:
        rejected = await client.get(QUERIES_URL, headers=as_clinician("user_cardio"))
        accepted = await client.get(QUERIES_URL, headers={**as_clinician("user_cardio"), "X-API-Key": "k2"})

    assert rejected.status_code == status.HTTP_401_UNAUTHORIZED
    assert accepted.status_code == status.HTTP_200_OK
