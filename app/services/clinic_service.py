"""Clinic service for business logic."""

from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.core.permissions import CLINIC_PUBLIC_FIELDS, is_staff, project_for_role
from app.core.redis_client import CacheManager
from app.models.appointments import appointments
from app.models.clinics import clinics
from app.models.doctors import doctors
from app.models.specialties import specialties
from app.models.users import users
from app.schemas.clinics import ClinicCreate, ClinicUpdate
from app.scheduling.state_machine import AppointmentStatus

OPEN_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)


class ClinicService:
    """Service for clinic operations."""

    # Cache TTL in seconds
    CLINIC_CACHE_TTL = 900  # 15 minutes for individual clinics

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_clinic_cache_key(clinic_id: UUID) -> str:
        """Generate cache key for clinic."""
        return f"clinic:{clinic_id}"

    def _invalidate(self, clinic_id: UUID) -> None:
        if self.cache:
            self.cache.delete(self._get_clinic_cache_key(clinic_id))

    async def _ensure_unique_name(
        self, db: AsyncSession, name: str, city: str | None, exclude_id: UUID | None = None
    ) -> None:
        """Reject a second clinic with the same name in the same city."""
        conditions: list = [
            func.lower(clinics.c.name) == name.lower(),
            clinics.c.deleted_at.is_(None),
        ]
        if city is None:
            conditions.append(clinics.c.city.is_(None))
        else:
            conditions.append(func.lower(clinics.c.city) == city.lower())
        if exclude_id is not None:
            conditions.append(clinics.c.id != exclude_id)

        result = await db.execute(select(clinics.c.id).where(and_(*conditions)).limit(1))
        if result.first():
            raise ConflictException("A clinic with this name already exists in this city")

    async def create_clinic(self, db: AsyncSession, clinic_data: ClinicCreate) -> dict:
        """
        Create a new clinic.

        Raises:
            ConflictException: If a clinic with the same name exists in the city
        """
        await self._ensure_unique_name(db, clinic_data.name, clinic_data.city)

        query = clinics.insert().values(**clinic_data.model_dump()).returning(clinics)
        result = await db.execute(query)
        clinic = result.mappings().first()

        if not clinic:
            raise ValueError("Failed to create clinic")

        await db.commit()
        return dict(clinic)

    async def get_clinic_by_id(self, db: AsyncSession, clinic_id: UUID) -> dict | None:
        """Get clinic by ID with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_clinic_cache_key(clinic_id))
            if cached:
                return cached

        query = select(clinics).where(clinics.c.id == clinic_id, clinics.c.deleted_at.is_(None))
        result = await db.execute(query)
        clinic = result.mappings().first()

        if not clinic:
            return None

        clinic_dict = dict(clinic)

        if self.cache:
            self.cache.set_json(
                self._get_clinic_cache_key(clinic_id), clinic_dict, ttl=self.CLINIC_CACHE_TTL
            )

        return clinic_dict

    async def _clinic_doctors(self, db: AsyncSession, clinic_id: UUID) -> list[dict]:
        query = (
            select(
                doctors.c.id,
                users.c.first_name,
                users.c.last_name,
                specialties.c.name.label("specialty_name"),
                doctors.c.consultation_duration_minutes,
            )
            .join(users, users.c.id == doctors.c.user_id)
            .join(specialties, specialties.c.id == doctors.c.specialty_id)
            .where(doctors.c.clinic_id == clinic_id, doctors.c.is_active.is_(True))
            .order_by(users.c.last_name, users.c.first_name)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def _appointments_on(self, db: AsyncSession, clinic_id: UUID, day: date) -> int:
        query = select(func.count()).where(
            appointments.c.clinic_id == clinic_id,
            appointments.c.appointment_date == day,
            appointments.c.is_active.is_(True),
        )
        result = await db.execute(query)
        return result.scalar_one()

    async def get_clinic(self, db: AsyncSession, clinic_id: UUID, role: str | None) -> dict:
        """
        Get a clinic with its doctors, masked for the caller's role.

        Raises:
            NotFoundException: If the clinic does not exist or is hidden from the caller
        """
        clinic = await self.get_clinic_by_id(db, clinic_id)
        if not clinic or (not clinic["is_active"] and not is_staff(role)):
            raise NotFoundException("Clinic not found")

        doctor_list = await self._clinic_doctors(db, clinic_id)
        entity = {**clinic, "doctors": doctor_list, "total_doctors": len(doctor_list)}
        if is_staff(role):
            entity["appointments_today"] = await self._appointments_on(db, clinic_id, date.today())

        return project_for_role(entity, role, CLINIC_PUBLIC_FIELDS)

    async def list_clinics(
        self,
        db: AsyncSession,
        role: str | None,
        city: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[int, list[dict]]:
        """
        List clinics with filtering and pagination.

        Non-staff callers only see active clinics and public fields.

        Returns:
            Tuple of (total count, projected clinics of the page)
        """
        conditions: list = [clinics.c.deleted_at.is_(None)]
        if not is_staff(role):
            conditions.append(clinics.c.is_active.is_(True))
        if city:
            conditions.append(func.lower(clinics.c.city) == city.lower())
        if search:
            conditions.append(clinics.c.name.ilike(f"%{search}%"))

        total_result = await db.execute(
            select(func.count()).select_from(clinics).where(and_(*conditions))
        )
        total = total_result.scalar_one()

        doctor_count = (
            select(func.count())
            .where(doctors.c.clinic_id == clinics.c.id, doctors.c.is_active.is_(True))
            .scalar_subquery()
            .label("total_doctors")
        )
        query = (
            select(clinics, doctor_count)
            .where(and_(*conditions))
            .order_by(clinics.c.name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(query)
        items = [
            project_for_role(dict(row), role, CLINIC_PUBLIC_FIELDS)
            for row in result.mappings().all()
        ]
        return total, items

    async def update_clinic(
        self, db: AsyncSession, clinic_id: UUID, clinic_data: ClinicUpdate
    ) -> dict:
        """
        Update clinic information.

        Raises:
            NotFoundException: If the clinic does not exist
            ConflictException: If the new name clashes with another clinic in the city
        """
        existing = await self.get_clinic_by_id(db, clinic_id)
        if not existing:
            raise NotFoundException("Clinic not found")

        update_values: dict[str, Any] = clinic_data.model_dump(exclude_unset=True)
        if not update_values:
            return existing

        if "name" in update_values or "city" in update_values:
            await self._ensure_unique_name(
                db,
                update_values.get("name", existing["name"]),
                update_values.get("city", existing["city"]),
                exclude_id=clinic_id,
            )

        update_values["updated_at"] = datetime.now(UTC)
        query = (
            update(clinics)
            .where(clinics.c.id == clinic_id)
            .values(**update_values)
            .returning(clinics)
        )
        result = await db.execute(query)
        updated_clinic = result.mappings().first()
        await db.commit()

        self._invalidate(clinic_id)

        if not updated_clinic:
            raise NotFoundException("Clinic not found")
        return dict(updated_clinic)

    async def delete_clinic(self, db: AsyncSession, clinic_id: UUID) -> None:
        """
        Soft delete a clinic.

        Raises:
            NotFoundException: If the clinic does not exist
            BadRequestException: If active doctors or future appointments still reference it
        """
        if not await self.get_clinic_by_id(db, clinic_id):
            raise NotFoundException("Clinic not found")

        active_doctors = await db.execute(
            select(func.count()).where(
                doctors.c.clinic_id == clinic_id, doctors.c.is_active.is_(True)
            )
        )
        if active_doctors.scalar_one():
            raise BadRequestException("Cannot delete a clinic with active doctors")

        future = await db.execute(
            select(func.count()).where(
                appointments.c.clinic_id == clinic_id,
                appointments.c.appointment_date >= date.today(),
                appointments.c.status.in_(OPEN_STATUSES),
                appointments.c.is_active.is_(True),
            )
        )
        if future.scalar_one():
            raise BadRequestException("Cannot delete a clinic with upcoming appointments")

        now = datetime.now(UTC)
        await db.execute(
            update(clinics)
            .where(clinics.c.id == clinic_id)
            .values(is_active=False, deleted_at=now, updated_at=now)
        )
        await db.commit()
        self._invalidate(clinic_id)

    async def get_clinic_stats(self, db: AsyncSession, clinic_id: UUID) -> dict:
        """Get activity counters of a clinic."""
        if not await self.get_clinic_by_id(db, clinic_id):
            raise NotFoundException("Clinic not found")

        today = date.today()
        active = and_(appointments.c.clinic_id == clinic_id, appointments.c.is_active.is_(True))
        query = select(
            select(func.count())
            .where(doctors.c.clinic_id == clinic_id, doctors.c.is_active.is_(True))
            .scalar_subquery()
            .label("total_doctors"),
            select(func.count(func.distinct(appointments.c.patient_id)))
            .where(active)
            .scalar_subquery()
            .label("total_patients"),
            select(func.count())
            .where(active, appointments.c.appointment_date == today)
            .scalar_subquery()
            .label("appointments_today"),
            select(func.count())
            .where(
                active,
                appointments.c.appointment_date >= today,
                appointments.c.status.in_(OPEN_STATUSES),
            )
            .scalar_subquery()
            .label("upcoming_appointments"),
            select(func.count())
            .where(active, appointments.c.status == AppointmentStatus.COMPLETED.value)
            .scalar_subquery()
            .label("completed_appointments"),
            select(func.count())
            .where(active, appointments.c.status == AppointmentStatus.CANCELLED.value)
            .scalar_subquery()
            .label("cancelled_appointments"),
        )
        result = await db.execute(query)
        return {"clinic_id": clinic_id, **dict(result.mappings().one())}

    async def get_cities(self, db: AsyncSession) -> list[str]:
        """Distinct cities that have an active clinic."""
        query = (
            select(clinics.c.city)
            .where(
                clinics.c.is_active.is_(True),
                clinics.c.deleted_at.is_(None),
                clinics.c.city.isnot(None),
            )
            .distinct()
            .order_by(clinics.c.city)
        )
        result = await db.execute(query)
        return list(result.scalars().all())
