"""Tests for appointment endpoints."""

import asyncio
from datetime import date, time, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SlotUnavailableException
from app.models import appointments
from app.schemas.appointments import AppointmentCreate
from app.services.appointment_service import AppointmentService

API = "/api/v1/appointments"


async def _book(client: AsyncClient, headers: dict, payload: dict, **overrides) -> dict:
    response = await client.post(f"{API}/", json={**payload, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_appointment(
    client: AsyncClient, staff_headers: dict, booking_payload: dict, secretary_user: dict
) -> None:
    """Staff book on behalf of a patient; duration defaults to the consultation length."""
    response = await client.post(f"{API}/", json=booking_payload, headers=staff_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["duration_minutes"] == 30
    assert data["appointment_time"] == "10:00:00"
    assert data["patient_name"] == "Pat Smith"
    assert data["doctor_name"] == "Greg House"
    assert data["clinic_name"] == "Central Clinic"
    assert data["specialty_name"] == "Cardiology"
    assert data["created_by"] == str(secretary_user["id"])

    detail = await client.get(f"{API}/{data['id']}", headers=staff_headers)
    history = detail.json()["history"]
    assert len(history) == 1
    assert history[0]["previous_status"] is None
    assert history[0]["new_status"] == "scheduled"


@pytest.mark.asyncio
async def test_overlapping_booking_is_rejected(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    """A 10:15 request against a 10:00-10:30 booking is refused."""
    await _book(client, staff_headers, booking_payload)

    response = await client.post(
        f"{API}/",
        json={**booking_payload, "appointment_time": "10:15"},
        headers=staff_headers,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["category"] == "slot_unavailable"
    assert body["path"] == f"{API}/"


@pytest.mark.asyncio
async def test_back_to_back_bookings_are_allowed(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    await _book(client, staff_headers, booking_payload)
    await _book(client, staff_headers, booking_payload, appointment_time="10:30")
    await _book(client, staff_headers, booking_payload, appointment_time="09:30")


@pytest.mark.asyncio
async def test_cancelled_booking_frees_the_slot(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    first = await _book(client, staff_headers, booking_payload)
    cancel = await client.post(f"{API}/{first['id']}/cancel", headers=staff_headers)
    assert cancel.status_code == 200

    await _book(client, staff_headers, booking_payload)


@pytest.mark.asyncio
async def test_doctor_outside_clinic_is_rejected(
    client: AsyncClient, staff_headers: dict, booking_payload: dict, other_clinic: dict
) -> None:
    response = await client.post(
        f"{API}/",
        json={**booking_payload, "clinic_id": str(other_clinic["id"])},
        headers=staff_headers,
    )

    assert response.status_code == 400
    assert response.json()["category"] == "invalid_relationship"


@pytest.mark.asyncio
async def test_unknown_doctor_is_not_found(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    response = await client.post(
        f"{API}/",
        json={**booking_payload, "doctor_id": "00000000-0000-0000-0000-000000000000"},
        headers=staff_headers,
    )

    assert response.status_code == 404
    assert response.json()["category"] == "not_found"


@pytest.mark.asyncio
async def test_booking_past_midnight_is_invalid(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    response = await client.post(
        f"{API}/",
        json={**booking_payload, "appointment_time": "23:45"},
        headers=staff_headers,
    )

    assert response.status_code == 422
    assert response.json()["category"] == "validation_error"


@pytest.mark.asyncio
async def test_zero_duration_is_invalid(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    response = await client.post(
        f"{API}/", json={**booking_payload, "duration_minutes": 0}, headers=staff_headers
    )

    assert response.status_code == 422
    assert "details" in response.json()


@pytest.mark.asyncio
async def test_staff_must_name_the_patient(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    payload = {key: value for key, value in booking_payload.items() if key != "patient_id"}

    response = await client.post(f"{API}/", json=payload, headers=staff_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_patient_books_for_themselves(
    client: AsyncClient, patient_headers: dict, patient_user: dict, booking_payload: dict
) -> None:
    payload = {key: value for key, value in booking_payload.items() if key != "patient_id"}

    data = await _book(client, patient_headers, payload)

    assert data["patient_id"] == str(patient_user["patient_id"])


@pytest.mark.asyncio
async def test_patient_cannot_book_for_someone_else(
    client: AsyncClient,
    patient_headers: dict,
    other_patient_user: dict,
    booking_payload: dict,
) -> None:
    response = await client.post(
        f"{API}/",
        json={**booking_payload, "patient_id": str(other_patient_user["patient_id"])},
        headers=patient_headers,
    )

    assert response.status_code == 403
    assert response.json()["category"] == "forbidden"


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient, booking_payload: dict) -> None:
    response = await client.post(f"{API}/", json=booking_payload)

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_status_lifecycle(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload, notes="Fasting")
    appointment_id = created["id"]

    confirmed = await client.post(f"{API}/{appointment_id}/confirm", headers=staff_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    completed = await client.post(
        f"{API}/{appointment_id}/complete",
        json={"notes": "All good"},
        headers=staff_headers,
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["notes"] == "Fasting\n\nClosing notes: All good"

    detail = await client.get(f"{API}/{appointment_id}", headers=staff_headers)
    statuses = [(h["previous_status"], h["new_status"]) for h in detail.json()["history"]]
    assert statuses == [
        (None, "scheduled"),
        ("scheduled", "confirmed"),
        ("confirmed", "completed"),
    ]


@pytest.mark.asyncio
async def test_invalid_transition(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload)

    response = await client.patch(
        f"{API}/{created['id']}/status",
        json={"status": "completed"},
        headers=staff_headers,
    )

    assert response.status_code == 400
    assert response.json()["category"] == "invalid_transition"


@pytest.mark.asyncio
async def test_cancel_records_default_reason(
    client: AsyncClient, staff_headers: dict, booking_payload: dict, secretary_user: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload)

    response = await client.post(f"{API}/{created['id']}/cancel", headers=staff_headers)

    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancellation_reason"] == "Cancelled by user"
    assert data["cancelled_by"] == str(secretary_user["id"])
    assert data["cancelled_at"] is not None


@pytest.mark.asyncio
async def test_reopen_requires_a_free_slot(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    first = await _book(client, staff_headers, booking_payload)
    await client.post(f"{API}/{first['id']}/cancel", headers=staff_headers)
    await _book(client, staff_headers, booking_payload)

    response = await client.patch(
        f"{API}/{first['id']}/status", json={"status": "scheduled"}, headers=staff_headers
    )

    assert response.status_code == 409
    assert response.json()["category"] == "slot_unavailable"


@pytest.mark.asyncio
async def test_reopen_clears_cancellation(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    first = await _book(client, staff_headers, booking_payload)
    await client.post(
        f"{API}/{first['id']}/cancel", json={"reason": "Travel"}, headers=staff_headers
    )

    response = await client.patch(
        f"{API}/{first['id']}/status", json={"status": "scheduled"}, headers=staff_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["cancellation_reason"] is None


@pytest.mark.asyncio
async def test_reschedule(client: AsyncClient, staff_headers: dict, booking_payload: dict) -> None:
    first = await _book(client, staff_headers, booking_payload)
    second = await _book(client, staff_headers, booking_payload, appointment_time="11:00")

    clash = await client.post(
        f"{API}/{second['id']}/reschedule",
        json={"appointment_date": booking_payload["appointment_date"], "appointment_time": "10:15"},
        headers=staff_headers,
    )
    assert clash.status_code == 409

    # Moving by less than its own length only overlaps itself
    nudge = await client.post(
        f"{API}/{first['id']}/reschedule",
        json={"appointment_date": booking_payload["appointment_date"], "appointment_time": "10:15"},
        headers=staff_headers,
    )
    assert nudge.status_code == 200
    assert nudge.json()["appointment_time"] == "10:15:00"


@pytest.mark.asyncio
async def test_reschedule_closed_appointment_is_refused(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload)
    await client.post(f"{API}/{created['id']}/cancel", headers=staff_headers)

    response = await client.post(
        f"{API}/{created['id']}/reschedule",
        json={"appointment_date": booking_payload["appointment_date"], "appointment_time": "11:00"},
        headers=staff_headers,
    )

    assert response.status_code == 400
    assert response.json()["category"] == "invalid_transition"


@pytest.mark.asyncio
async def test_update_reason_and_notes(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload)

    response = await client.put(
        f"{API}/{created['id']}",
        json={"reason": "Follow-up", "notes": None},
        headers=staff_headers,
    )

    assert response.status_code == 200
    assert response.json()["reason"] == "Follow-up"
    assert response.json()["notes"] == ""


@pytest.mark.asyncio
async def test_delete_appointment(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload)

    response = await client.delete(f"{API}/{created['id']}", headers=staff_headers)
    assert response.status_code == 204

    missing = await client.get(f"{API}/{created['id']}", headers=staff_headers)
    assert missing.status_code == 404

    # Deleted appointments no longer occupy their slot
    await _book(client, staff_headers, booking_payload)


@pytest.mark.asyncio
async def test_completed_appointment_cannot_be_deleted(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    created = await _book(client, staff_headers, booking_payload)
    await client.post(f"{API}/{created['id']}/confirm", headers=staff_headers)
    await client.post(f"{API}/{created['id']}/complete", headers=staff_headers)

    response = await client.delete(f"{API}/{created['id']}", headers=staff_headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_patient_access_rules(
    client: AsyncClient,
    staff_headers: dict,
    patient_headers: dict,
    other_patient_user: dict,
    booking_payload: dict,
) -> None:
    mine = await _book(client, staff_headers, booking_payload)
    theirs = await _book(
        client,
        staff_headers,
        booking_payload,
        patient_id=str(other_patient_user["patient_id"]),
        appointment_time="11:00",
    )

    own = await client.get(f"{API}/{mine['id']}", headers=patient_headers)
    assert own.status_code == 200

    foreign = await client.get(f"{API}/{theirs['id']}", headers=patient_headers)
    assert foreign.status_code == 403

    listing = await client.get(f"{API}/", headers=patient_headers)
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()["items"]] == [mine["id"]]

    confirm = await client.patch(
        f"{API}/{mine['id']}/status", json={"status": "confirmed"}, headers=patient_headers
    )
    assert confirm.status_code == 403

    cancel = await client.post(f"{API}/{mine['id']}/cancel", headers=patient_headers)
    assert cancel.status_code == 200


@pytest.mark.asyncio
async def test_staff_only_endpoints_reject_patients(
    client: AsyncClient, patient_headers: dict
) -> None:
    assert (await client.get(f"{API}/today", headers=patient_headers)).status_code == 403
    assert (await client.get(f"{API}/stats", headers=patient_headers)).status_code == 403


@pytest.mark.asyncio
async def test_list_filters_and_stats(
    client: AsyncClient, staff_headers: dict, booking_payload: dict, next_monday
) -> None:
    await _book(client, staff_headers, booking_payload)
    second = await _book(client, staff_headers, booking_payload, appointment_time="11:00")
    await client.post(f"{API}/{second['id']}/cancel", headers=staff_headers)

    cancelled = await client.get(f"{API}/?status=cancelled", headers=staff_headers)
    assert cancelled.json()["total"] == 1

    later = (next_monday + timedelta(days=1)).isoformat()
    none_later = await client.get(f"{API}/?date_from={later}", headers=staff_headers)
    assert none_later.json()["total"] == 0

    stats = await client.get(f"{API}/stats?period=week", headers=staff_headers)
    assert stats.status_code == 200
    data = stats.json()
    assert data["total_appointments"] == 2
    assert data["upcoming"] == 2
    assert data["by_status"]["cancelled"] == 1
    assert data["by_status"]["scheduled"] == 1


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client: AsyncClient, patient_headers: dict) -> None:
    headers = {"Authorization": patient_headers["Authorization"] + "tampered"}

    response = await client.get(f"{API}/", headers=headers)

    assert response.status_code == 401
    assert response.json()["category"] == "unauthorized"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, suffix", [("post", "/"), ("put", "/{id}"), ("post", "/{id}/reschedule")]
)
async def test_times_with_seconds_are_invalid(
    client: AsyncClient, staff_headers: dict, booking_payload: dict, method: str, suffix: str
) -> None:
    """Start times are whole minutes, matching the minute grid of the slots."""
    if suffix == "/":
        payload = {**booking_payload, "appointment_time": "08:00:45"}
    else:
        created = await _book(client, staff_headers, booking_payload)
        suffix = suffix.format(id=created["id"])
        payload = {
            "appointment_date": booking_payload["appointment_date"],
            "appointment_time": "10:30:15",
        }

    response = await client.request(method, f"{API}{suffix}", json=payload, headers=staff_headers)

    assert response.status_code == 422
    assert response.json()["category"] == "validation_error"


@pytest.mark.asyncio
async def test_update_with_clashing_time_changes_nothing(
    client: AsyncClient, staff_headers: dict, booking_payload: dict
) -> None:
    await _book(client, staff_headers, booking_payload)
    later = await _book(client, staff_headers, booking_payload, appointment_time="11:00")

    response = await client.put(
        f"{API}/{later['id']}",
        json={"appointment_time": "10:15", "reason": "Moved earlier"},
        headers=staff_headers,
    )
    assert response.status_code == 409

    unchanged = await client.get(f"{API}/{later['id']}", headers=staff_headers)
    assert unchanged.json()["appointment_time"] == "11:00:00"
    assert unchanged.json()["reason"] == "Regular checkup"

    moved = await client.put(
        f"{API}/{later['id']}",
        json={"appointment_time": "11:30", "reason": "Moved later"},
        headers=staff_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["appointment_time"] == "11:30:00"
    assert moved.json()["reason"] == "Moved later"


@pytest.mark.asyncio
async def test_storage_rejects_overlapping_rows(
    db_session: AsyncSession,
    patient_user: dict,
    doctor: dict,
    clinic: dict,
    next_monday: date,
) -> None:
    """The exclusion constraint holds even for writes that skip the service."""

    def row(start: time, status: str = "scheduled") -> dict:
        return {
            "patient_id": patient_user["patient_id"],
            "doctor_id": doctor["id"],
            "clinic_id": clinic["id"],
            "appointment_date": next_monday,
            "appointment_time": start,
            "duration_minutes": 30,
            "status": status,
        }

    await db_session.execute(insert(appointments).values(**row(time(10, 0))))
    await db_session.commit()

    with pytest.raises(IntegrityError) as exc_info:
        await db_session.execute(insert(appointments).values(**row(time(10, 15))))
    assert "appointments_no_overlap" in str(exc_info.value.orig)
    await db_session.rollback()

    await db_session.execute(insert(appointments).values(**row(time(10, 30))))
    await db_session.execute(insert(appointments).values(**row(time(10, 15), "cancelled")))
    await db_session.commit()


@pytest.mark.asyncio
async def test_concurrent_bookings_for_one_slot(
    session_factory,
    secretary_user: dict,
    patient_user: dict,
    other_patient_user: dict,
    doctor: dict,
    clinic: dict,
    next_monday: date,
) -> None:
    """Two simultaneous requests for the same interval: exactly one is booked."""

    async def book(patient_id) -> dict:
        data = AppointmentCreate(
            patient_id=patient_id,
            doctor_id=doctor["id"],
            clinic_id=clinic["id"],
            appointment_date=next_monday,
            appointment_time=time(10, 0),
        )
        async with session_factory() as session:
            return await AppointmentService(session).create_appointment(data, secretary_user)

    results = await asyncio.gather(
        book(patient_user["patient_id"]),
        book(other_patient_user["patient_id"]),
        return_exceptions=True,
    )

    booked = [result for result in results if isinstance(result, dict)]
    refused = [result for result in results if isinstance(result, Exception)]
    assert len(booked) == 1
    assert len(refused) == 1
    assert isinstance(refused[0], SlotUnavailableException)

    async with session_factory() as session:
        count = await session.scalar(
            select(func.count())
            .select_from(appointments)
            .where(appointments.c.doctor_id == doctor["id"])
        )
    assert count == 1
