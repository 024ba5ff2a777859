"""Doctor, schedule and availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import Cache, DatabaseSession, OptionalUser, StaffUser
from app.schemas.doctors import (
    DoctorCreate,
    DoctorListResponse,
    DoctorResponse,
    DoctorUpdate,
    SpecialtyResponse,
)
from app.schemas.schedules import AvailabilityResponse, ScheduleEntryResponse, ScheduleReplace
from app.services.appointment_service import AppointmentService
from app.services.doctor_service import DoctorService

router = APIRouter()


def _role(user: dict | None) -> str | None:
    return user["role"] if user else None


@router.get(
    "/",
    response_model=DoctorListResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_200_OK,
    summary="List doctors",
)
async def list_doctors(
    db: DatabaseSession,
    current_user: OptionalUser,
    clinic_id: UUID | None = Query(None),
    specialty_id: UUID | None = Query(None),
    search: str | None = Query(None, description="Search by first or last name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> DoctorListResponse:
    """List doctors, masked for the caller's role."""
    total, items = await DoctorService().list_doctors(
        db,
        _role(current_user),
        clinic_id=clinic_id,
        specialty_id=specialty_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return DoctorListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[DoctorResponse.model_validate(item) for item in items],
    )


@router.get(
    "/specialties",
    response_model=list[SpecialtyResponse],
    status_code=status.HTTP_200_OK,
    summary="List specialties",
)
async def list_specialties(db: DatabaseSession) -> list[SpecialtyResponse]:
    """Active medical specialties."""
    rows = await DoctorService().get_specialties(db)
    return [SpecialtyResponse.model_validate(row) for row in rows]


@router.post(
    "/",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create doctor",
)
async def create_doctor(
    data: DoctorCreate,
    db: DatabaseSession,
    current_user: StaffUser,
) -> DoctorResponse:
    """Create a doctor profile for an existing user (staff only)."""
    doctor = await DoctorService().create_doctor(db, data)
    return DoctorResponse.model_validate(doctor)


@router.get(
    "/{doctor_id}",
    response_model=DoctorResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_200_OK,
    summary="Get doctor by ID",
)
async def get_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    cache: Cache,
    current_user: OptionalUser,
) -> DoctorResponse:
    """Get a doctor; staff also receive the schedule and appointment counters."""
    doctor = await DoctorService(cache).get_doctor(db, doctor_id, _role(current_user))
    return DoctorResponse.model_validate(doctor)


@router.put(
    "/{doctor_id}",
    response_model=DoctorResponse,
    status_code=status.HTTP_200_OK,
    summary="Update doctor",
)
async def update_doctor(
    doctor_id: UUID,
    data: DoctorUpdate,
    db: DatabaseSession,
    cache: Cache,
    current_user: StaffUser,
) -> DoctorResponse:
    """Update a doctor (staff only)."""
    doctor = await DoctorService(cache).update_doctor(db, doctor_id, data)
    return DoctorResponse.model_validate(doctor)


@router.delete(
    "/{doctor_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete doctor",
)
async def delete_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    cache: Cache,
    current_user: StaffUser,
) -> None:
    """Deactivate a doctor (staff only); refused while appointments are upcoming."""
    await DoctorService(cache).delete_doctor(db, doctor_id)


@router.get(
    "/{doctor_id}/schedules",
    response_model=list[ScheduleEntryResponse],
    status_code=status.HTTP_200_OK,
    summary="Get weekly schedule",
)
async def get_schedules(doctor_id: UUID, db: DatabaseSession) -> list[ScheduleEntryResponse]:
    """Weekly schedule of a doctor; ``day_of_week`` runs from 1 (Sunday) to 7 (Saturday)."""
    entries = await DoctorService().get_schedules(db, doctor_id)
    return [ScheduleEntryResponse.model_validate(entry) for entry in entries]


@router.put(
    "/{doctor_id}/schedules",
    response_model=list[ScheduleEntryResponse],
    status_code=status.HTTP_200_OK,
    summary="Replace weekly schedule",
)
async def replace_schedules(
    doctor_id: UUID,
    data: ScheduleReplace,
    db: DatabaseSession,
    cache: Cache,
    current_user: StaffUser,
) -> list[ScheduleEntryResponse]:
    """
    Replace the whole weekly schedule of a doctor (staff only).

    Existing entries are removed and the submitted ones stored atomically.
    """
    entries = await DoctorService(cache).replace_schedules(db, doctor_id, data.schedules)
    return [ScheduleEntryResponse.model_validate(entry) for entry in entries]


@router.get(
    "/{doctor_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Free slots on a date",
)
async def get_availability(
    doctor_id: UUID,
    db: DatabaseSession,
    day: date = Query(..., alias="date", description="Date to check (YYYY-MM-DD)"),
    duration: int | None = Query(None, description="Slot length in minutes"),
) -> AvailabilityResponse:
    """
    Compute the free slots of a doctor on a date.

    Slots are cut from the doctor's schedule windows for that weekday, in
    steps of the slot length, skipping anything that overlaps a booking.
    Never cached.
    """
    availability = await AppointmentService(db).get_availability(doctor_id, day, duration)
    return AvailabilityResponse.model_validate(availability)
