"""Patient endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import NotFoundException
from app.dependencies import CurrentUser, DatabaseSession, StaffUser
from app.schemas.appointments import AppointmentResponse
from app.schemas.patients import (
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.services.patient_service import PatientService

router = APIRouter()


@router.get(
    "/",
    response_model=PatientListResponse,
    status_code=status.HTTP_200_OK,
    summary="List patients",
)
async def list_patients(
    db: DatabaseSession,
    current_user: StaffUser,
    search: str | None = Query(None, description="Name, email or insurance number"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PatientListResponse:
    """List active patients (staff only)."""
    total, items = await PatientService(db).list_patients(search, page, page_size)
    return PatientListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[PatientResponse.model_validate(item) for item in items],
    )


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create patient profile",
)
async def create_patient(
    data: PatientCreate,
    db: DatabaseSession,
    current_user: StaffUser,
) -> PatientResponse:
    """Create a patient profile for an existing user (staff only)."""
    return PatientResponse.model_validate(await PatientService(db).create_patient(data))


@router.get(
    "/me",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Own patient profile",
)
async def get_my_patient_profile(
    db: DatabaseSession,
    current_user: CurrentUser,
) -> PatientResponse:
    """Patient profile of the authenticated user."""
    patient = await PatientService(db).get_patient_by_user_id(current_user["id"])
    if not patient:
        raise NotFoundException("Patient profile not found")
    return PatientResponse.model_validate(patient)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Get patient by ID",
)
async def get_patient(
    patient_id: UUID,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> PatientResponse:
    """Get a patient; patients may only read their own record."""
    patient = await PatientService(db).get_accessible_patient(patient_id, current_user)
    return PatientResponse.model_validate(patient)


@router.put(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Update patient",
)
async def update_patient(
    patient_id: UUID,
    data: PatientUpdate,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> PatientResponse:
    """Update a patient; patients may only update their own record."""
    service = PatientService(db)
    await service.get_accessible_patient(patient_id, current_user)
    return PatientResponse.model_validate(await service.update_patient(patient_id, data))


@router.delete(
    "/{patient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete patient",
)
async def delete_patient(
    patient_id: UUID,
    db: DatabaseSession,
    current_user: StaffUser,
) -> None:
    """Deactivate a patient (staff only); refused while appointments are upcoming."""
    await PatientService(db).delete_patient(patient_id)


@router.get(
    "/{patient_id}/upcoming-appointments",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="Upcoming appointments",
)
async def get_upcoming_appointments(
    patient_id: UUID,
    db: DatabaseSession,
    current_user: CurrentUser,
    limit: int = Query(10, ge=1, le=50),
) -> list[AppointmentResponse]:
    """Open appointments from today on, soonest first."""
    service = PatientService(db)
    await service.get_accessible_patient(patient_id, current_user)
    items = await service.get_upcoming_appointments(patient_id, limit)
    return [AppointmentResponse.model_validate(item) for item in items]


@router.get(
    "/{patient_id}/history",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="Appointment history",
)
async def get_patient_history(
    patient_id: UUID,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> list[AppointmentResponse]:
    """Past and closed appointments, each with its status trail."""
    service = PatientService(db)
    await service.get_accessible_patient(patient_id, current_user)
    items = await service.get_history(patient_id)
    return [AppointmentResponse.model_validate(item) for item in items]
