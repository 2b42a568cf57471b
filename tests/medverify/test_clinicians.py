from fastapi import status

ONBOARD_URL = "/api/v1/clinicians/onboard"
STATUS_URL = "/api/v1/clinicians/onboard/status"


def onboarding_payload(**overrides):
    payload = {
        "clerkId": "user_123",
        "name": "Ada Okafor",
        "email": "ada@clinic.org",
        "specialty": "Obstetrics & Gynecology",
        "phoneNumber": "+15550001111",
    }
    payload.update(overrides)
    return payload


async def test_onboard_then_update_clinician(client, container):
    created = await client.post(ONBOARD_URL, json=onboarding_payload(), headers={"X-Auth-Subject": "user_123"})
    updated = await client.post(
        ONBOARD_URL,
        json=onboarding_payload(specialty="Pediatrics"),
        headers={"X-Auth-Subject": "user_123"},
    )

    assert created.status_code == status.HTTP_200_OK
    assert created.json()["message"] == "Clinician onboarded successfully"
    user = created.json()["user"]
    assert user["clerkId"] == "user_123"
    assert user["isOnboarded"] is True

    assert updated.json()["message"] == "Clinician updated successfully"
    assert updated.json()["user"]["id"] == user["id"]
    assert container.repositories.clinicians.get_by_clerk_id("user_123").specialty.value == "Pediatrics"


async def test_onboarding_someone_else_is_unauthorized(client, container):
    response = await client.post(ONBOARD_URL, json=onboarding_payload(), headers={"X-Auth-Subject": "user_999"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert container.repositories.clinicians.get_by_clerk_id("user_123") is None


async def test_onboarding_rejects_unknown_specialty(client):
    response = await client.post(
        ONBOARD_URL,
        json=onboarding_payload(specialty="Astrology"),
        headers={"X-Auth-Subject": "user_123"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "specialty" in response.json()["detail"]["fields"]


async def test_onboarding_status_before_and_after(client):
    headers = {"X-Auth-Subject": "user_123"}

    before = await client.get(STATUS_URL, params={"clerkId": "user_123"}, headers=headers)
    await client.post(ONBOARD_URL, json=onboarding_payload(), headers=headers)
    after = await client.get(STATUS_URL, params={"clerkId": "user_123"}, headers=headers)

    assert before.json() == {"isOnboarded": False, "user": None}
    assert after.json()["isOnboarded"] is True
    assert after.json()["user"]["specialty"] == "Obstetrics & Gynecology"


async def test_onboarding_status_for_other_clinician_is_unauthorized(client):
    response = await client.get(STATUS_URL, params={"clerkId": "user_123"}, headers={"X-Auth-Subject": "user_999"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
