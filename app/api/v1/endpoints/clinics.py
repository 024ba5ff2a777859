"""Clinic endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import Cache, DatabaseSession, OptionalUser, StaffUser
from app.schemas.clinics import (
    ClinicCreate,
    ClinicListResponse,
    ClinicResponse,
    ClinicStats,
    ClinicUpdate,
)
from app.services.clinic_service import ClinicService

router = APIRouter()


def _role(user: dict | None) -> str | None:
    return user["role"] if user else None


@router.get(
    "/",
    response_model=ClinicListResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_200_OK,
    summary="List clinics",
)
async def list_clinics(
    db: DatabaseSession,
    current_user: OptionalUser,
    city: str | None = Query(None, description="Filter by city"),
    search: str | None = Query(None, description="Search by name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> ClinicListResponse:
    """
    List clinics.

    Public endpoint; staff callers also see inactive clinics and staff-only fields.
    """
    total, items = await ClinicService().list_clinics(
        db, _role(current_user), city=city, search=search, page=page, page_size=page_size
    )
    return ClinicListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[ClinicResponse.model_validate(item) for item in items],
    )


@router.get(
    "/cities",
    response_model=list[str],
    status_code=status.HTTP_200_OK,
    summary="List cities with clinics",
)
async def list_cities(db: DatabaseSession) -> list[str]:
    """Distinct cities that have at least one active clinic."""
    return await ClinicService().get_cities(db)


@router.post(
    "/",
    response_model=ClinicResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create clinic",
)
async def create_clinic(
    data: ClinicCreate,
    db: DatabaseSession,
    current_user: StaffUser,
) -> ClinicResponse:
    """Create a clinic (staff only)."""
    clinic = await ClinicService().create_clinic(db, data)
    return ClinicResponse.model_validate(clinic)


@router.get(
    "/{clinic_id}",
    response_model=ClinicResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_200_OK,
    summary="Get clinic by ID",
)
async def get_clinic(
    clinic_id: UUID,
    db: DatabaseSession,
    cache: Cache,
    current_user: OptionalUser,
) -> ClinicResponse:
    """Get a clinic with its doctors, masked for the caller's role."""
    clinic = await ClinicService(cache).get_clinic(db, clinic_id, _role(current_user))
    return ClinicResponse.model_validate(clinic)


@router.put(
    "/{clinic_id}",
    response_model=ClinicResponse,
    status_code=status.HTTP_200_OK,
    summary="Update clinic",
)
async def update_clinic(
    clinic_id: UUID,
    data: ClinicUpdate,
    db: DatabaseSession,
    cache: Cache,
    current_user: StaffUser,
) -> ClinicResponse:
    """Update a clinic (staff only)."""
    clinic = await ClinicService(cache).update_clinic(db, clinic_id, data)
    return ClinicResponse.model_validate(clinic)


@router.delete(
    "/{clinic_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete clinic",
)
async def delete_clinic(
    clinic_id: UUID,
    db: DatabaseSession,
    cache: Cache,
    current_user: StaffUser,
) -> None:
    """
    Soft delete a clinic (staff only).

    Refused while the clinic has active doctors or upcoming appointments.
    """
    await ClinicService(cache).delete_clinic(db, clinic_id)


@router.get(
    "/{clinic_id}/stats",
    response_model=ClinicStats,
    status_code=status.HTTP_200_OK,
    summary="Clinic statistics",
)
async def get_clinic_stats(
    clinic_id: UUID,
    db: DatabaseSession,
    cache: Cache,
    current_user: StaffUser,
) -> ClinicStats:
    """Activity counters of a clinic (staff only)."""
    return ClinicStats.model_validate(await ClinicService(cache).get_clinic_stats(db, clinic_id))
