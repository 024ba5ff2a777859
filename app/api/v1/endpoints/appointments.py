"""Appointment endpoints."""

from datetime import date
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DatabaseSession, StaffUser
from app.schemas.appointments import (
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStats,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    StatsPeriod,
)
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Book an appointment.

    Staff book on behalf of a patient; patients book for themselves.
    Returns 409 when the requested time overlaps another booking.

    Args:
        data: Appointment creation data
        current_user: Authenticated user
        db: Database session

    Returns:
        Created appointment
    """
    appointment = await AppointmentService(db).create_appointment(data, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    clinic_id: UUID | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    order_by: Literal["appointment_date", "created_at", "status"] = Query("appointment_date"),
    order_dir: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments with filtering.

    Patients only ever see their own appointments.

    Args:
        current_user: Authenticated user
        db: Database session
        status_filter: Filter by status
        doctor_id: Filter by doctor ID
        patient_id: Filter by patient ID (staff only)
        clinic_id: Filter by clinic ID
        date_from: Earliest appointment date
        date_to: Latest appointment date
        order_by: Sort column
        order_dir: Sort direction
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        clinic_id=clinic_id,
        date_from=date_from,
        date_to=date_to,
        order_by=order_by,
        order_dir=order_dir,
        page=page,
        page_size=page_size,
    )
    total, items = await AppointmentService(db).list_appointments(filters, current_user)
    return AppointmentListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[AppointmentResponse.model_validate(item) for item in items],
    )


@router.get(
    "/today",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="Today's appointments",
)
async def get_today_appointments(
    current_user: StaffUser,
    db: DatabaseSession,
    doctor_id: UUID | None = Query(None),
    clinic_id: UUID | None = Query(None),
) -> list[AppointmentResponse]:
    """Today's appointments in chronological order (staff only)."""
    items = await AppointmentService(db).get_today_appointments(doctor_id, clinic_id)
    return [AppointmentResponse.model_validate(item) for item in items]


@router.get(
    "/stats",
    response_model=AppointmentStats,
    status_code=status.HTTP_200_OK,
    summary="Appointment statistics",
)
async def get_appointment_stats(
    current_user: StaffUser,
    db: DatabaseSession,
    period: StatsPeriod = Query(StatsPeriod.MONTH),
    doctor_id: UUID | None = Query(None),
    clinic_id: UUID | None = Query(None),
) -> AppointmentStats:
    """Counters per status over the period plus the last seven days (staff only)."""
    stats = await AppointmentService(db).get_stats(period, doctor_id, clinic_id)
    return AppointmentStats.model_validate(stats)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get an appointment together with its status history."""
    appointment = await AppointmentService(db).get_appointment(appointment_id, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Update reason and notes of an appointment.

    A new date or time is handled as a reschedule and re-checked for overlaps.
    """
    appointment = await AppointmentService(db).update_appointment(
        appointment_id, data, current_user
    )
    return AppointmentResponse.model_validate(appointment)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    current_user: StaffUser,
    db: DatabaseSession,
) -> None:
    """Soft delete an appointment (staff only). Completed appointments are kept."""
    await AppointmentService(db).delete_appointment(appointment_id, current_user)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Change appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Move an appointment through its lifecycle.

    Allowed changes: scheduled to confirmed or cancelled; confirmed to
    completed, cancelled or no_show; cancelled back to scheduled.
    """
    appointment = await AppointmentService(db).change_status(
        appointment_id, data.status, current_user, reason=data.reason, notes=data.notes
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    current_user: StaffUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Confirm a scheduled appointment (staff only)."""
    appointment = await AppointmentService(db).confirm_appointment(appointment_id, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    current_user: StaffUser,
    db: DatabaseSession,
    data: AppointmentComplete | None = None,
) -> AppointmentResponse:
    """Complete a confirmed appointment, appending optional closing notes (staff only)."""
    appointment = await AppointmentService(db).complete_appointment(
        appointment_id, current_user, notes=data.notes if data else None
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    """Cancel an appointment; patients may cancel their own."""
    appointment = await AppointmentService(db).cancel_appointment(
        appointment_id, current_user, reason=data.reason if data else None
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Move a scheduled or confirmed appointment to a free date and time."""
    appointment = await AppointmentService(db).reschedule_appointment(
        appointment_id, data.appointment_date, data.appointment_time, current_user
    )
    return AppointmentResponse.model_validate(appointment)
