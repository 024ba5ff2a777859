"""Tests for authentication endpoints."""

import pytest
from httpx import AsyncClient

API = "/api/v1/auth"

# Matches the password of the users inserted by the fixtures
PASSWORD = "Secret123!"  # pragma: allowlist secret


@pytest.fixture
def registration() -> dict:
    return {
        "email": "New.Patient@Example.com",
        "password": "Str0ngPassword",  # pragma: allowlist secret
        "first_name": "New",
        "last_name": "Patient",
    }


@pytest.mark.asyncio
async def test_register_patient_creates_profile(client: AsyncClient, registration: dict):
    response = await client.post(f"{API}/register", json=registration)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new.patient@example.com"
    assert data["role"] == "patient"
    assert "password_hash" not in data

    login = await client.post(
        f"{API}/login",
        json={"email": registration["email"], "password": registration["password"]},
    )
    assert login.status_code == 200
    token = login.json()["access_token"]

    profile = await client.get(
        "/api/v1/patients/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert profile.status_code == 200
    assert profile.json()["user_id"] == data["id"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, patient_user: dict):
    payload = {
        "email": patient_user["email"],
        "password": "Str0ngPassword",  # pragma: allowlist secret
        "first_name": "Dup",
        "last_name": "User",
    }

    response = await client.post(f"{API}/register", json=payload)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_staff_accounts_need_an_admin(
    client: AsyncClient, registration: dict, staff_headers: dict, admin_headers: dict
):
    payload = {**registration, "role": "secretary"}

    anonymous = await client.post(f"{API}/register", json=payload)
    assert anonymous.status_code == 403

    by_secretary = await client.post(f"{API}/register", json=payload, headers=staff_headers)
    assert by_secretary.status_code == 403

    by_admin = await client.post(f"{API}/register", json=payload, headers=admin_headers)
    assert by_admin.status_code == 201
    assert by_admin.json()["role"] == "secretary"


@pytest.mark.asyncio
async def test_login(client: AsyncClient, secretary_user: dict):
    response = await client.post(
        f"{API}/login", json={"email": secretary_user["email"], "password": PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "secretary"
    assert data["user"]["last_login_at"] is not None


@pytest.mark.asyncio
async def test_login_with_wrong_password(client: AsyncClient, secretary_user: dict):
    response = await client.post(
        f"{API}/login", json={"email": secretary_user["email"], "password": "nope-nope"}
    )

    assert response.status_code == 401
    assert response.json()["category"] == "unauthorized"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient, db_session):
    response = await client.post(
        f"{API}/login", json={"email": "ghost@example.com", "password": PASSWORD}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token(client: AsyncClient, patient_user: dict):
    login = await client.post(
        f"{API}/login", json={"email": patient_user["email"], "password": PASSWORD}
    )
    refresh_token = login.json()["refresh_token"]

    response = await client.post(f"{API}/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 200
    token = response.json()["access_token"]
    me = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == patient_user["email"]


@pytest.mark.asyncio
async def test_access_token_is_not_a_refresh_token(client: AsyncClient, patient_user: dict):
    login = await client.post(
        f"{API}/login", json={"email": patient_user["email"], "password": PASSWORD}
    )

    response = await client.post(
        f"{API}/refresh", json={"refresh_token": login.json()["access_token"]}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_me(client: AsyncClient, patient_headers: dict):
    response = await client.put(
        f"{API}/me", json={"phone": "+15551234"}, headers=patient_headers
    )

    assert response.status_code == 200
    assert response.json()["phone"] == "+15551234"


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, patient_user: dict, patient_headers: dict):
    wrong = await client.post(
        f"{API}/change-password",
        json={"current_password": "incorrect", "new_password": "An0therSecret"},
        headers=patient_headers,
    )
    assert wrong.status_code == 400

    response = await client.post(
        f"{API}/change-password",
        json={"current_password": PASSWORD, "new_password": "An0therSecret"},
        headers=patient_headers,
    )
    assert response.status_code == 204

    login = await client.post(
        f"{API}/login", json={"email": patient_user["email"], "password": "An0therSecret"}
    )
    assert login.status_code == 200
