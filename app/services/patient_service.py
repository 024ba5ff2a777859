"""Patient service for business logic."""

from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.core.permissions import is_staff
from app.models.appointment_history import appointment_history
from app.models.appointments import appointments
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.users import users
from app.schemas.patients import PatientCreate, PatientUpdate
from app.scheduling.state_machine import AppointmentStatus

OPEN_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)


def _patient_details_query():
    return select(
        patients,
        users.c.first_name,
        users.c.last_name,
        users.c.email,
        users.c.phone,
    ).join(users, users.c.id == patients.c.user_id)


class PatientService:
    """Service for patient operations."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _ensure_unique_insurance(
        self, insurance_number: str, exclude_id: UUID | None = None
    ) -> None:
        conditions: list = [
            patients.c.insurance_number == insurance_number,
            patients.c.is_active.is_(True),
        ]
        if exclude_id is not None:
            conditions.append(patients.c.id != exclude_id)
        result = await self.db.execute(select(patients.c.id).where(and_(*conditions)).limit(1))
        if result.first():
            raise ConflictException("Insurance number is already registered")

    async def create_patient(self, patient_data: PatientCreate) -> dict:
        """
        Create a patient profile for an existing user.

        Raises:
            NotFoundException: If the user does not exist
            ConflictException: If the user already is a patient or the insurance number is taken
        """
        user_result = await self.db.execute(
            select(users.c.id).where(users.c.id == patient_data.user_id)
        )
        if not user_result.first():
            raise NotFoundException("User not found")

        if await self.get_patient_by_user_id(patient_data.user_id):
            raise ConflictException("User already has a patient profile")

        if patient_data.insurance_number:
            await self._ensure_unique_insurance(patient_data.insurance_number)

        result = await self.db.execute(
            patients.insert().values(**patient_data.model_dump()).returning(patients.c.id)
        )
        patient_id = result.scalar_one()
        await self.db.commit()

        patient = await self.get_patient_by_id(patient_id)
        if not patient:
            raise ValueError("Failed to create patient")
        return patient

    async def get_patient_by_id(self, patient_id: UUID) -> dict | None:
        """Get patient by ID, including the user's contact fields."""
        result = await self.db.execute(_patient_details_query().where(patients.c.id == patient_id))
        patient = result.mappings().first()
        return dict(patient) if patient else None

    async def get_patient_by_user_id(self, user_id: UUID) -> dict | None:
        """Get the patient profile of a user."""
        result = await self.db.execute(
            _patient_details_query().where(patients.c.user_id == user_id)
        )
        patient = result.mappings().first()
        return dict(patient) if patient else None

    async def get_accessible_patient(self, patient_id: UUID, current_user: dict) -> dict:
        """
        Load a patient the caller is allowed to see.

        Staff may see every patient; patients only their own record.

        Raises:
            NotFoundException: If the patient does not exist
            ForbiddenException: If a patient requests another patient's record
        """
        patient = await self.get_patient_by_id(patient_id)
        if not patient:
            raise NotFoundException("Patient not found")
        if not is_staff(current_user["role"]) and patient["user_id"] != current_user["id"]:
            raise ForbiddenException("You can only access your own patient record")
        return patient

    async def list_patients(
        self, search: str | None = None, page: int = 1, page_size: int = 20
    ) -> tuple[int, list[dict]]:
        """List active patients, optionally searching by name, email or insurance number."""
        conditions: list = [patients.c.is_active.is_(True)]
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    users.c.first_name.ilike(pattern),
                    users.c.last_name.ilike(pattern),
                    users.c.email.ilike(pattern),
                    patients.c.insurance_number.ilike(pattern),
                )
            )

        total_result = await self.db.execute(
            select(func.count())
            .select_from(patients.join(users, users.c.id == patients.c.user_id))
            .where(and_(*conditions))
        )
        total = total_result.scalar_one()

        query = (
            _patient_details_query()
            .where(and_(*conditions))
            .order_by(users.c.last_name, users.c.first_name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(query)
        return total, [dict(row) for row in result.mappings().all()]

    async def update_patient(self, patient_id: UUID, patient_data: PatientUpdate) -> dict:
        """
        Update a patient profile.

        Raises:
            NotFoundException: If the patient does not exist
            ConflictException: If the new insurance number is taken
        """
        if not await self.get_patient_by_id(patient_id):
            raise NotFoundException("Patient not found")

        update_values: dict[str, Any] = patient_data.model_dump(exclude_unset=True)
        if update_values.get("insurance_number"):
            await self._ensure_unique_insurance(
                update_values["insurance_number"], exclude_id=patient_id
            )

        if update_values:
            update_values["updated_at"] = datetime.now(UTC)
            await self.db.execute(
                update(patients).where(patients.c.id == patient_id).values(**update_values)
            )
            await self.db.commit()

        patient = await self.get_patient_by_id(patient_id)
        if not patient:
            raise NotFoundException("Patient not found")
        return patient

    async def delete_patient(self, patient_id: UUID) -> None:
        """
        Deactivate a patient.

        Raises:
            NotFoundException: If the patient does not exist
            BadRequestException: If the patient still has upcoming appointments
        """
        if not await self.get_patient_by_id(patient_id):
            raise NotFoundException("Patient not found")

        future = await self.db.execute(
            select(func.count()).where(
                appointments.c.patient_id == patient_id,
                appointments.c.appointment_date >= date.today(),
                appointments.c.status.in_(OPEN_STATUSES),
                appointments.c.is_active.is_(True),
            )
        )
        if future.scalar_one():
            raise BadRequestException("Cannot delete a patient with upcoming appointments")

        await self.db.execute(
            update(patients)
            .where(patients.c.id == patient_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
        )
        await self.db.commit()

    def _appointments_query(self, patient_id: UUID):
        doctor_users = users.alias("doctor_users")
        return (
            select(
                appointments,
                func.concat(doctor_users.c.first_name, " ", doctor_users.c.last_name).label(
                    "doctor_name"
                ),
            )
            .join(doctors, doctors.c.id == appointments.c.doctor_id)
            .join(doctor_users, doctor_users.c.id == doctors.c.user_id)
            .where(appointments.c.patient_id == patient_id, appointments.c.is_active.is_(True))
        )

    async def get_upcoming_appointments(self, patient_id: UUID, limit: int = 10) -> list[dict]:
        """Open appointments from today onwards, soonest first."""
        query = (
            self._appointments_query(patient_id)
            .where(
                appointments.c.appointment_date >= date.today(),
                appointments.c.status.in_(OPEN_STATUSES),
            )
            .order_by(appointments.c.appointment_date, appointments.c.appointment_time)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def get_history(self, patient_id: UUID) -> list[dict]:
        """
        Past and closed appointments of a patient with their status trails.

        Returns:
            Appointments, most recent first, each with a ``history`` list
        """
        query = (
            self._appointments_query(patient_id)
            .where(
                or_(
                    appointments.c.appointment_date < date.today(),
                    appointments.c.status.notin_(OPEN_STATUSES),
                )
            )
            .order_by(
                appointments.c.appointment_date.desc(), appointments.c.appointment_time.desc()
            )
        )
        result = await self.db.execute(query)
        items = [dict(row) for row in result.mappings().all()]
        if not items:
            return items

        history_result = await self.db.execute(
            select(appointment_history)
            .where(appointment_history.c.appointment_id.in_([item["id"] for item in items]))
            .order_by(appointment_history.c.created_at)
        )
        trails: dict[UUID, list[dict]] = {}
        for entry in history_result.mappings().all():
            trails.setdefault(entry["appointment_id"], []).append(dict(entry))

        for item in items:
            item["history"] = trails.get(item["id"], [])
        return items
