"""Tests for patient endpoints."""

import pytest
from httpx import AsyncClient

API = "/api/v1/patients"


@pytest.mark.asyncio
async def test_patient_reads_own_record(
    client: AsyncClient, patient_user: dict, patient_headers: dict
):
    response = await client.get(f"{API}/{patient_user['patient_id']}", headers=patient_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == "Pat"
    assert data["email"] == "pat@example.com"


@pytest.mark.asyncio
async def test_patient_cannot_read_others(
    client: AsyncClient, other_patient_user: dict, patient_headers: dict
):
    response = await client.get(
        f"{API}/{other_patient_user['patient_id']}", headers=patient_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_listing_is_staff_only(
    client: AsyncClient, patient_user: dict, patient_headers: dict, staff_headers: dict
):
    forbidden = await client.get(f"{API}/", headers=patient_headers)
    assert forbidden.status_code == 403

    response = await client.get(f"{API}/", params={"search": "smith"}, headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_update_own_record(
    client: AsyncClient, patient_user: dict, patient_headers: dict
):
    response = await client.put(
        f"{API}/{patient_user['patient_id']}",
        json={"blood_type": "O+", "insurance_number": "INS-1"},
        headers=patient_headers,
    )

    assert response.status_code == 200
    assert response.json()["blood_type"] == "O+"


@pytest.mark.asyncio
async def test_upcoming_and_history(
    client: AsyncClient,
    patient_user: dict,
    patient_headers: dict,
    staff_headers: dict,
    booking_payload: dict,
):
    booked = await client.post("/api/v1/appointments/", json=booking_payload, headers=staff_headers)
    appointment_id = booked.json()["id"]

    upcoming = await client.get(
        f"{API}/{patient_user['patient_id']}/upcoming-appointments", headers=patient_headers
    )
    assert [item["id"] for item in upcoming.json()] == [appointment_id]
    assert upcoming.json()[0]["doctor_name"] == "Greg House"

    await client.post(f"/api/v1/appointments/{appointment_id}/cancel", headers=patient_headers)

    after_cancel = await client.get(
        f"{API}/{patient_user['patient_id']}/upcoming-appointments", headers=patient_headers
    )
    assert after_cancel.json() == []

    history = await client.get(
        f"{API}/{patient_user['patient_id']}/history", headers=patient_headers
    )
    assert history.status_code == 200
    entries = history.json()
    assert entries[0]["status"] == "cancelled"
    assert [h["new_status"] for h in entries[0]["history"]] == ["scheduled", "cancelled"]


@pytest.mark.asyncio
async def test_patient_with_upcoming_appointment_cannot_be_deleted(
    client: AsyncClient, patient_user: dict, staff_headers: dict, booking_payload: dict
):
    await client.post("/api/v1/appointments/", json=booking_payload, headers=staff_headers)

    response = await client.delete(f"{API}/{patient_user['patient_id']}", headers=staff_headers)

    assert response.status_code == 400
