"""Doctor service for business logic."""

from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from app.core.permissions import DOCTOR_PUBLIC_FIELDS, is_staff, project_for_role
from app.core.redis_client import CacheManager
from app.models.appointments import appointments
from app.models.clinics import clinics
from app.models.doctor_schedules import doctor_schedules
from app.models.doctors import doctors
from app.models.specialties import specialties
from app.models.users import users
from app.schemas.doctors import DoctorCreate, DoctorUpdate
from app.schemas.schedules import ScheduleEntryCreate
from app.scheduling.schedule import ScheduleWindow
from app.scheduling.state_machine import AppointmentStatus

logger = structlog.get_logger(__name__)

OPEN_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)


def _doctor_details_query():
    """Doctor row joined with the display fields of its user, specialty and clinic."""
    return (
        select(
            doctors,
            users.c.first_name,
            users.c.last_name,
            users.c.email,
            users.c.phone,
            specialties.c.name.label("specialty_name"),
            clinics.c.name.label("clinic_name"),
        )
        .join(users, users.c.id == doctors.c.user_id)
        .join(specialties, specialties.c.id == doctors.c.specialty_id)
        .join(clinics, clinics.c.id == doctors.c.clinic_id)
    )


class DoctorService:
    """Service for doctor operations."""

    # Cache TTL in seconds
    DOCTOR_CACHE_TTL = 900  # 15 minutes for individual doctors

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    def _invalidate(self, doctor_id: UUID) -> None:
        if self.cache:
            self.cache.delete(self._get_doctor_cache_key(doctor_id))

    async def _ensure_unique_license(
        self, db: AsyncSession, license_number: str, exclude_id: UUID | None = None
    ) -> None:
        conditions: list = [
            doctors.c.license_number == license_number,
            doctors.c.is_active.is_(True),
        ]
        if exclude_id is not None:
            conditions.append(doctors.c.id != exclude_id)
        result = await db.execute(select(doctors.c.id).where(and_(*conditions)).limit(1))
        if result.first():
            raise ConflictException("License number is already registered")

    async def _ensure_references(
        self, db: AsyncSession, clinic_id: UUID | None, specialty_id: UUID | None
    ) -> None:
        if clinic_id is not None:
            result = await db.execute(
                select(clinics.c.id).where(
                    clinics.c.id == clinic_id,
                    clinics.c.is_active.is_(True),
                    clinics.c.deleted_at.is_(None),
                )
            )
            if not result.first():
                raise NotFoundException("Clinic not found")
        if specialty_id is not None:
            result = await db.execute(
                select(specialties.c.id).where(
                    specialties.c.id == specialty_id, specialties.c.is_active.is_(True)
                )
            )
            if not result.first():
                raise NotFoundException("Specialty not found")

    async def create_doctor(self, db: AsyncSession, doctor_data: DoctorCreate) -> dict:
        """
        Create a doctor profile for an existing user.

        Raises:
            NotFoundException: If the user, clinic or specialty does not exist
            ConflictException: If the user already has a doctor profile or the license is taken
        """
        user_result = await db.execute(select(users.c.id).where(users.c.id == doctor_data.user_id))
        if not user_result.first():
            raise NotFoundException("User not found")

        existing = await db.execute(
            select(doctors.c.id).where(doctors.c.user_id == doctor_data.user_id)
        )
        if existing.first():
            raise ConflictException("User already has a doctor profile")

        await self._ensure_references(db, doctor_data.clinic_id, doctor_data.specialty_id)
        await self._ensure_unique_license(db, doctor_data.license_number)

        query = doctors.insert().values(**doctor_data.model_dump()).returning(doctors)
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            raise ValueError("Failed to create doctor")

        await db.commit()
        return dict(doctor)

    async def get_doctor_by_id(self, db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get doctor by ID with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return cached

        query = _doctor_details_query().where(doctors.c.id == doctor_id)
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id), doctor_dict, ttl=self.DOCTOR_CACHE_TTL
            )

        return doctor_dict

    async def _doctor_stats(self, db: AsyncSession, doctor_id: UUID) -> dict[str, int]:
        active = and_(appointments.c.doctor_id == doctor_id, appointments.c.is_active.is_(True))
        query = select(
            func.count().label("total_appointments"),
            func.count()
            .filter(appointments.c.status == AppointmentStatus.COMPLETED.value)
            .label("completed_appointments"),
            func.count()
            .filter(appointments.c.status == AppointmentStatus.CANCELLED.value)
            .label("cancelled_appointments"),
            func.count()
            .filter(
                appointments.c.appointment_date >= date.today(),
                appointments.c.status.in_(OPEN_STATUSES),
            )
            .label("upcoming_appointments"),
        ).where(active)
        result = await db.execute(query)
        return dict(result.mappings().one())

    async def get_doctor(self, db: AsyncSession, doctor_id: UUID, role: str | None) -> dict:
        """
        Get a doctor masked for the caller's role.

        Staff additionally receive the weekly schedule and appointment counters.

        Raises:
            NotFoundException: If the doctor does not exist or is hidden from the caller
        """
        doctor = await self.get_doctor_by_id(db, doctor_id)
        if not doctor or (not doctor["is_active"] and not is_staff(role)):
            raise NotFoundException("Doctor not found")

        if is_staff(role):
            doctor["schedules"] = await self.get_schedules(db, doctor_id)
            doctor["stats"] = await self._doctor_stats(db, doctor_id)

        return project_for_role(doctor, role, DOCTOR_PUBLIC_FIELDS)

    async def list_doctors(
        self,
        db: AsyncSession,
        role: str | None,
        clinic_id: UUID | None = None,
        specialty_id: UUID | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[int, list[dict]]:
        """
        List doctors with filtering and pagination.

        Returns:
            Tuple of (total count, projected doctors of the page)
        """
        conditions: list = []
        if not is_staff(role):
            conditions.append(doctors.c.is_active.is_(True))
        if clinic_id:
            conditions.append(doctors.c.clinic_id == clinic_id)
        if specialty_id:
            conditions.append(doctors.c.specialty_id == specialty_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(users.c.first_name.ilike(pattern), users.c.last_name.ilike(pattern))
            )

        where = and_(*conditions) if conditions else True
        total_result = await db.execute(
            select(func.count())
            .select_from(doctors.join(users, users.c.id == doctors.c.user_id))
            .where(where)
        )
        total = total_result.scalar_one()

        query = (
            _doctor_details_query()
            .where(where)
            .order_by(users.c.last_name, users.c.first_name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(query)
        items = [
            project_for_role(dict(row), role, DOCTOR_PUBLIC_FIELDS)
            for row in result.mappings().all()
        ]
        return total, items

    async def update_doctor(
        self, db: AsyncSession, doctor_id: UUID, doctor_data: DoctorUpdate
    ) -> dict:
        """
        Update doctor information.

        Raises:
            NotFoundException: If the doctor, clinic or specialty does not exist
            ConflictException: If the new license number is taken
        """
        existing = await db.execute(select(doctors.c.id).where(doctors.c.id == doctor_id))
        if not existing.first():
            raise NotFoundException("Doctor not found")

        update_values: dict[str, Any] = doctor_data.model_dump(exclude_unset=True)
        await self._ensure_references(
            db, update_values.get("clinic_id"), update_values.get("specialty_id")
        )
        if update_values.get("license_number"):
            await self._ensure_unique_license(
                db, update_values["license_number"], exclude_id=doctor_id
            )

        if update_values:
            update_values["updated_at"] = datetime.now(UTC)
            await db.execute(
                update(doctors).where(doctors.c.id == doctor_id).values(**update_values)
            )
            await db.commit()
            self._invalidate(doctor_id)

        doctor = await self.get_doctor_by_id(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")
        return doctor

    async def delete_doctor(self, db: AsyncSession, doctor_id: UUID) -> None:
        """
        Deactivate a doctor.

        Raises:
            NotFoundException: If the doctor does not exist
            BadRequestException: If the doctor still has upcoming appointments
        """
        existing = await db.execute(select(doctors.c.id).where(doctors.c.id == doctor_id))
        if not existing.first():
            raise NotFoundException("Doctor not found")

        future = await db.execute(
            select(func.count()).where(
                appointments.c.doctor_id == doctor_id,
                appointments.c.appointment_date >= date.today(),
                appointments.c.status.in_(OPEN_STATUSES),
                appointments.c.is_active.is_(True),
            )
        )
        if future.scalar_one():
            raise BadRequestException("Cannot delete a doctor with upcoming appointments")

        await db.execute(
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
        )
        await db.commit()
        self._invalidate(doctor_id)

    async def get_schedules(self, db: AsyncSession, doctor_id: UUID) -> list[dict]:
        """Get all weekly schedule entries of a doctor ordered by weekday and start."""
        query = (
            select(
                doctor_schedules.c.day_of_week,
                doctor_schedules.c.start_time,
                doctor_schedules.c.end_time,
                doctor_schedules.c.is_active,
            )
            .where(doctor_schedules.c.doctor_id == doctor_id)
            .order_by(doctor_schedules.c.day_of_week, doctor_schedules.c.start_time)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def replace_schedules(
        self, db: AsyncSession, doctor_id: UUID, entries: Sequence[ScheduleEntryCreate]
    ) -> list[dict]:
        """
        Replace the whole weekly schedule of a doctor.

        The old entries are deleted and the new ones inserted in a single
        transaction, so readers see either the old or the new schedule.

        Args:
            db: Database session
            doctor_id: Doctor ID
            entries: New schedule entries (may be empty to clear the schedule)

        Returns:
            Stored schedule entries

        Raises:
            NotFoundException: If the doctor does not exist
            ValidationException: If an entry has an invalid weekday or range
        """
        existing = await db.execute(select(doctors.c.id).where(doctors.c.id == doctor_id))
        if not existing.first():
            raise NotFoundException("Doctor not found")

        windows = [
            ScheduleWindow(
                day_of_week=entry.day_of_week,
                start_time=entry.start_time,
                end_time=entry.end_time,
                is_active=entry.is_active,
            )
            for entry in entries
        ]
        if any(
            moment.second or moment.microsecond
            for window in windows
            for moment in (window.start_time, window.end_time)
        ):
            raise ValidationException("Schedule times must be whole minutes")

        try:
            await db.execute(
                delete(doctor_schedules).where(doctor_schedules.c.doctor_id == doctor_id)
            )
            if windows:
                await db.execute(
                    doctor_schedules.insert(),
                    [
                        {
                            "doctor_id": doctor_id,
                            "day_of_week": window.day_of_week,
                            "start_time": window.start_time,
                            "end_time": window.end_time,
                            "is_active": window.is_active,
                        }
                        for window in windows
                    ],
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        self._invalidate(doctor_id)
        logger.info("schedule_replaced", doctor_id=str(doctor_id), entries=len(windows))
        return await self.get_schedules(db, doctor_id)

    async def get_specialties(self, db: AsyncSession) -> list[dict]:
        """List active specialties."""
        query = (
            select(specialties.c.id, specialties.c.name, specialties.c.description)
            .where(specialties.c.is_active.is_(True))
            .order_by(specialties.c.name)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]
