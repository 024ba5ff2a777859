"""Appointment service: availability, booking and the appointment lifecycle."""

from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    ConcurrencyConflictException,
    ForbiddenException,
    InvalidRelationshipException,
    InvalidTransitionException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from app.core.permissions import is_staff
from app.models.appointment_history import appointment_history
from app.models.appointments import OVERLAP_CONSTRAINT, appointments
from app.models.clinics import clinics
from app.models.doctor_schedules import doctor_schedules
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.specialties import specialties
from app.models.users import users
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentUpdate,
    StatsPeriod,
)
from app.scheduling.availability import (
    Booking,
    compute_available_slots,
    ensure_positive_duration,
    find_conflict,
    resolve_duration,
)
from app.scheduling.intervals import Interval
from app.scheduling.schedule import ScheduleWindow, weekday_index
from app.scheduling.state_machine import (
    RESCHEDULABLE,
    AppointmentStatus,
    ensure_deletable,
    plan_transition,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Every column except the generated range, which is storage-only
APPOINTMENT_COLUMNS = [column for column in appointments.c if column.name != "slot_range"]

ORDER_COLUMNS = {
    "appointment_date": (appointments.c.appointment_date, appointments.c.appointment_time),
    "created_at": (appointments.c.created_at,),
    "status": (appointments.c.status, appointments.c.appointment_date),
}

STATS_LOOKBACK = {
    StatsPeriod.TODAY: timedelta(0),
    StatsPeriod.WEEK: timedelta(weeks=1),
    StatsPeriod.MONTH: timedelta(days=30),
    StatsPeriod.YEAR: timedelta(days=365),
}

DAILY_STATS_DAYS = 7

patient_users = users.alias("patient_users")
doctor_users = users.alias("doctor_users")


def _details_query():
    """Appointment columns plus the display names of the related entities."""
    return (
        select(
            *APPOINTMENT_COLUMNS,
            func.concat(patient_users.c.first_name, " ", patient_users.c.last_name).label(
                "patient_name"
            ),
            func.concat(doctor_users.c.first_name, " ", doctor_users.c.last_name).label(
                "doctor_name"
            ),
            clinics.c.name.label("clinic_name"),
            specialties.c.name.label("specialty_name"),
        )
        .join(patients, patients.c.id == appointments.c.patient_id)
        .join(patient_users, patient_users.c.id == patients.c.user_id)
        .join(doctors, doctors.c.id == appointments.c.doctor_id)
        .join(doctor_users, doctor_users.c.id == doctors.c.user_id)
        .join(specialties, specialties.c.id == doctors.c.specialty_id)
        .join(clinics, clinics.c.id == appointments.c.clinic_id)
    )


def _is_overlap_violation(exc: IntegrityError) -> bool:
    return OVERLAP_CONSTRAINT in str(exc.orig)


def _requested_interval(start: time, duration: int) -> Interval:
    """Interval of a new booking; appointments must end on the day they start."""
    if start.second or start.microsecond:
        raise ValidationException("Appointment time must be a whole minute")
    interval = Interval.from_start(start, duration)
    if interval.crosses_midnight:
        raise ValidationException("Appointments cannot extend past midnight")
    return interval


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    # ------------------------------------------------------------------
    # Directory lookups
    # ------------------------------------------------------------------

    async def _resolve_patient(self, patient_id: UUID) -> dict:
        result = await self.db.execute(
            select(patients).where(patients.c.id == patient_id, patients.c.is_active.is_(True))
        )
        patient = result.mappings().first()
        if not patient:
            raise NotFoundException("Patient not found")
        return dict(patient)

    async def _resolve_doctor(self, doctor_id: UUID) -> dict:
        result = await self.db.execute(
            select(doctors).where(doctors.c.id == doctor_id, doctors.c.is_active.is_(True))
        )
        doctor = result.mappings().first()
        if not doctor:
            raise NotFoundException("Doctor not found")
        return dict(doctor)

    async def _resolve_clinic(self, clinic_id: UUID) -> dict:
        result = await self.db.execute(
            select(clinics).where(
                clinics.c.id == clinic_id,
                clinics.c.is_active.is_(True),
                clinics.c.deleted_at.is_(None),
            )
        )
        clinic = result.mappings().first()
        if not clinic:
            raise NotFoundException("Clinic not found")
        return dict(clinic)

    async def _patient_of(self, user: dict) -> dict | None:
        result = await self.db.execute(select(patients).where(patients.c.user_id == user["id"]))
        patient = result.mappings().first()
        return dict(patient) if patient else None

    async def _ensure_access(self, appointment: dict, actor: dict) -> None:
        """Staff may act on any appointment, patients only on their own."""
        if is_staff(actor["role"]):
            return
        patient = await self._patient_of(actor)
        if patient is None or patient["id"] != appointment["patient_id"]:
            raise ForbiddenException("You can only access your own appointments")

    # ------------------------------------------------------------------
    # Schedule and appointment store
    # ------------------------------------------------------------------

    async def _load_windows(self, doctor_id: UUID, day: date) -> list[ScheduleWindow]:
        """Active schedule windows of the doctor on the weekday of ``day``."""
        query = (
            select(doctor_schedules)
            .where(
                doctor_schedules.c.doctor_id == doctor_id,
                doctor_schedules.c.day_of_week == weekday_index(day),
                doctor_schedules.c.is_active.is_(True),
            )
            .order_by(doctor_schedules.c.start_time, doctor_schedules.c.end_time)
        )
        result = await self.db.execute(query)
        return [ScheduleWindow.from_row(row) for row in result.mappings().all()]

    async def _load_bookings(self, doctor_id: UUID, day: date) -> list[Booking]:
        """Active, non-cancelled appointments of the doctor on ``day``."""
        query = select(
            appointments.c.id,
            appointments.c.appointment_time,
            appointments.c.duration_minutes,
            appointments.c.status,
        ).where(
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == day,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
            appointments.c.is_active.is_(True),
        )
        result = await self.db.execute(query)
        return [Booking.from_row(row) for row in result.mappings().all()]

    async def _lock_doctor_day(self, doctor_id: UUID, day: date) -> None:
        """Serialize writers on one doctor's day until the transaction ends."""
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
            {"key": f"{doctor_id}:{day.isoformat()}"},
        )

    async def _ensure_slot_free(
        self,
        doctor_id: UUID,
        day: date,
        start: time,
        duration: int,
        exclude_id: UUID | None = None,
    ) -> None:
        """
        Lock the doctor's day and check the requested interval against it.

        Raises:
            SlotUnavailableException: If the interval overlaps another booking
        """
        await self._lock_doctor_day(doctor_id, day)
        bookings = await self._load_bookings(doctor_id, day)
        conflict = find_conflict(start, duration, bookings, exclude_id=exclude_id)
        if conflict is not None:
            logger.info(
                "appointment_slot_unavailable",
                doctor_id=str(doctor_id),
                date=day.isoformat(),
                time=start.isoformat(timespec="minutes"),
                conflicting_appointment_id=str(conflict.appointment_id),
            )
            raise SlotUnavailableException()

    async def _lock_appointment(self, appointment_id: UUID) -> dict:
        result = await self.db.execute(
            select(*APPOINTMENT_COLUMNS)
            .where(appointments.c.id == appointment_id, appointments.c.is_active.is_(True))
            .with_for_update()
        )
        appointment = result.mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")
        return dict(appointment)

    async def _append_history(
        self,
        appointment_id: UUID,
        previous_status: str | None,
        new_status: str,
        changed_by: UUID | None,
        change_reason: str | None = None,
    ) -> None:
        await self.db.execute(
            appointment_history.insert().values(
                appointment_id=appointment_id,
                previous_status=previous_status,
                new_status=new_status,
                change_reason=change_reason,
                changed_by=changed_by,
            )
        )

    async def _write_guarded(
        self, write: Callable[[], Awaitable[T]], doctor_id: UUID, day: date
    ) -> T:
        """
        Run a booking write and commit it.

        When the storage-level overlap constraint rejects the write (a
        concurrent booking won), the transaction is rolled back and the write
        re-run, re-validating from scratch. Once the retries are used up the
        conflict is surfaced as ``ConcurrencyConflictException``.
        """
        attempt = 0
        while True:
            try:
                result = await write()
                await self.db.commit()
                return result
            except IntegrityError as exc:
                await self.db.rollback()
                if not _is_overlap_violation(exc):
                    raise
                if attempt >= settings.booking_conflict_retries:
                    logger.warning(
                        "booking_conflict", doctor_id=str(doctor_id), date=day.isoformat()
                    )
                    raise ConcurrencyConflictException() from exc
                attempt += 1
                logger.info(
                    "booking_conflict_retry",
                    doctor_id=str(doctor_id),
                    date=day.isoformat(),
                    attempt=attempt,
                )
            except Exception:
                await self.db.rollback()
                raise

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def get_availability(
        self, doctor_id: UUID, day: date, duration: int | None = None
    ) -> dict[str, Any]:
        """
        Compute the free slots of a doctor on a date.

        Args:
            doctor_id: Doctor ID
            day: Requested date
            duration: Slot length in minutes; defaults to the doctor's consultation duration

        Returns:
            Availability payload with the free slots

        Raises:
            NotFoundException: If the doctor does not exist
            ValidationException: If the duration is not positive
        """
        if duration is not None:
            ensure_positive_duration(duration)
        doctor = await self._resolve_doctor(doctor_id)
        effective = resolve_duration(
            duration,
            doctor["consultation_duration_minutes"],
            settings.default_consultation_minutes,
        )

        windows = await self._load_windows(doctor_id, day)
        bookings = await self._load_bookings(doctor_id, day) if windows else []
        slots = compute_available_slots(
            windows,
            bookings,
            effective,
            deduplicate=settings.availability_deduplicate_slots,
        )

        return {
            "doctor_id": doctor_id,
            "date": day,
            "day_of_week": weekday_index(day),
            "consultation_duration": effective,
            "available_slots": [
                {"time": slot.time, "end_time": slot.end_time, "duration": slot.duration}
                for slot in slots
            ],
        }

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def _booking_patient_id(self, data: AppointmentCreate, actor: dict) -> UUID:
        if is_staff(actor["role"]):
            if data.patient_id is None:
                raise ValidationException("patient_id is required")
            return data.patient_id

        patient = await self._patient_of(actor)
        if patient is None:
            raise ForbiddenException("Only patients can book appointments for themselves")
        if data.patient_id is not None and data.patient_id != patient["id"]:
            raise ForbiddenException("Patients can only book appointments for themselves")
        return patient["id"]

    async def create_appointment(self, data: AppointmentCreate, actor: dict) -> dict:
        """
        Book an appointment.

        The patient, doctor and clinic must exist and be active, the doctor
        must work at the clinic and the requested interval must be free.

        Args:
            data: Booking request
            actor: User making the booking

        Returns:
            Created appointment

        Raises:
            NotFoundException: If the patient, doctor or clinic does not exist
            InvalidRelationshipException: If the doctor does not work at the clinic
            ValidationException: If the duration is invalid or the appointment crosses midnight
            SlotUnavailableException: If the interval overlaps another booking
            ConcurrencyConflictException: If a concurrent booking kept winning the race
        """
        patient_id = await self._booking_patient_id(data, actor)
        await self._resolve_patient(patient_id)
        doctor = await self._resolve_doctor(data.doctor_id)
        await self._resolve_clinic(data.clinic_id)

        if doctor["clinic_id"] != data.clinic_id:
            raise InvalidRelationshipException()

        duration = resolve_duration(
            data.duration_minutes,
            doctor["consultation_duration_minutes"],
            settings.default_consultation_minutes,
        )
        if duration > settings.max_appointment_duration_minutes:
            raise ValidationException(
                f"Duration cannot exceed {settings.max_appointment_duration_minutes} minutes"
            )
        _requested_interval(data.appointment_time, duration)

        async def write() -> UUID:
            await self._ensure_slot_free(
                data.doctor_id, data.appointment_date, data.appointment_time, duration
            )
            result = await self.db.execute(
                appointments.insert()
                .values(
                    patient_id=patient_id,
                    doctor_id=data.doctor_id,
                    clinic_id=data.clinic_id,
                    appointment_date=data.appointment_date,
                    appointment_time=data.appointment_time,
                    duration_minutes=duration,
                    reason=data.reason or "",
                    notes=data.notes or "",
                    status=AppointmentStatus.SCHEDULED.value,
                    created_by=actor["id"],
                )
                .returning(appointments.c.id)
            )
            appointment_id = result.scalar_one()
            await self._append_history(
                appointment_id,
                None,
                AppointmentStatus.SCHEDULED.value,
                actor["id"],
                "Appointment created",
            )
            return appointment_id

        appointment_id = await self._write_guarded(write, data.doctor_id, data.appointment_date)

        logger.info(
            "appointment_created",
            appointment_id=str(appointment_id),
            doctor_id=str(data.doctor_id),
            patient_id=str(patient_id),
            date=data.appointment_date.isoformat(),
            time=data.appointment_time.isoformat(timespec="minutes"),
            duration_minutes=duration,
        )
        return await self._get_details(appointment_id)

    async def _move(self, appointment_id: UUID, new_date: date, new_time: time) -> dict:
        """
        Lock the appointment and check that it may move to ``new_date`` at ``new_time``.

        Runs inside a guarded write; the caller applies the new date and time.

        Raises:
            InvalidTransitionException: If the appointment is no longer scheduled or confirmed
            SlotUnavailableException: If the new interval overlaps another booking
        """
        current = await self._lock_appointment(appointment_id)
        status = AppointmentStatus(current["status"])
        if status not in RESCHEDULABLE:
            raise InvalidTransitionException(
                status.value,
                status.value,
                f"Cannot reschedule an appointment that is {status.value}",
            )
        _requested_interval(new_time, current["duration_minutes"])
        await self._ensure_slot_free(
            current["doctor_id"],
            new_date,
            new_time,
            current["duration_minutes"],
            exclude_id=appointment_id,
        )
        return current

    async def reschedule_appointment(
        self, appointment_id: UUID, new_date: date, new_time: time, actor: dict
    ) -> dict:
        """
        Move an appointment to another date and time.

        The appointment itself is ignored in the overlap check. Nothing is
        checked or written when neither the date nor the time changes.

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the appointment is no longer scheduled or confirmed
            SlotUnavailableException: If the new interval overlaps another booking
        """
        return await self.update_appointment(
            appointment_id,
            AppointmentUpdate.model_construct(appointment_date=new_date, appointment_time=new_time),
            actor,
        )

    async def update_appointment(
        self, appointment_id: UUID, data: AppointmentUpdate, actor: dict
    ) -> dict:
        """
        Update reason and notes; a changed date or time goes through rescheduling.

        The move and the text changes are committed together.
        """
        appointment = await self._get_active(appointment_id)
        await self._ensure_access(appointment, actor)

        changes = data.model_dump(exclude_unset=True)
        new_date = changes.pop("appointment_date", None) or appointment["appointment_date"]
        new_time = changes.pop("appointment_time", None) or appointment["appointment_time"]
        moving = (new_date, new_time) != (
            appointment["appointment_date"],
            appointment["appointment_time"],
        )

        values = {key: value or "" for key, value in changes.items()}
        if not moving and not values:
            return await self._get_details(appointment_id)

        async def write() -> None:
            if moving:
                await self._move(appointment_id, new_date, new_time)
                values.update(appointment_date=new_date, appointment_time=new_time)
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(**values, updated_at=datetime.now(UTC))
            )

        await self._write_guarded(write, appointment["doctor_id"], new_date)

        if moving:
            logger.info(
                "appointment_rescheduled",
                appointment_id=str(appointment_id),
                from_date=appointment["appointment_date"].isoformat(),
                to_date=new_date.isoformat(),
                to_time=new_time.isoformat(timespec="minutes"),
            )
        return await self._get_details(appointment_id)

    # ------------------------------------------------------------------
    # Status lifecycle
    # ------------------------------------------------------------------

    async def change_status(
        self,
        appointment_id: UUID,
        target: AppointmentStatus,
        actor: dict,
        reason: str | None = None,
        notes: str | None = None,
    ) -> dict:
        """
        Move an appointment through its lifecycle.

        Patients may only cancel their own appointments; every other change
        is reserved to staff. Reopening a cancelled appointment re-validates
        its slot. The status update and its history entry are committed together.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the caller may not perform the change
            InvalidTransitionException: If the transition is not allowed
            SlotUnavailableException: If a reopened slot has been taken meanwhile
        """
        target = AppointmentStatus(target)
        appointment = await self._get_active(appointment_id)
        await self._ensure_access(appointment, actor)
        if not is_staff(actor["role"]) and target != AppointmentStatus.CANCELLED:
            raise ForbiddenException("Patients can only cancel their appointments")

        async def write() -> str:
            current = await self._lock_appointment(appointment_id)
            change = plan_transition(current, target, actor["id"], reason=reason, notes=notes)
            if change.reopens:
                await self._ensure_slot_free(
                    current["doctor_id"],
                    current["appointment_date"],
                    current["appointment_time"],
                    current["duration_minutes"],
                    exclude_id=appointment_id,
                )
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(**change.values)
            )
            await self.db.execute(
                appointment_history.insert().values(**change.history_values(appointment_id))
            )
            return change.previous.value

        previous = await self._write_guarded(
            write, appointment["doctor_id"], appointment["appointment_date"]
        )

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            previous_status=previous,
            new_status=target.value,
            changed_by=str(actor["id"]),
        )
        return await self._get_details(appointment_id)

    async def confirm_appointment(self, appointment_id: UUID, actor: dict) -> dict:
        """Confirm a scheduled appointment."""
        return await self.change_status(appointment_id, AppointmentStatus.CONFIRMED, actor)

    async def complete_appointment(
        self, appointment_id: UUID, actor: dict, notes: str | None = None
    ) -> dict:
        """Complete a confirmed appointment, appending the closing notes."""
        return await self.change_status(
            appointment_id, AppointmentStatus.COMPLETED, actor, notes=notes
        )

    async def cancel_appointment(
        self, appointment_id: UUID, actor: dict, reason: str | None = None
    ) -> dict:
        """Cancel an appointment, releasing its slot."""
        return await self.change_status(
            appointment_id, AppointmentStatus.CANCELLED, actor, reason=reason
        )

    async def delete_appointment(self, appointment_id: UUID, actor: dict) -> None:
        """
        Soft delete an appointment.

        Raises:
            NotFoundException: If the appointment does not exist
            BadRequestException: If the appointment is completed
        """
        appointment = await self._get_active(appointment_id)
        await self._ensure_access(appointment, actor)
        ensure_deletable(appointment["status"])

        now = datetime.now(UTC)
        await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(is_active=False, deleted_at=now, updated_at=now)
        )
        await self.db.commit()
        logger.info("appointment_deleted", appointment_id=str(appointment_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _get_active(self, appointment_id: UUID) -> dict:
        result = await self.db.execute(
            select(*APPOINTMENT_COLUMNS).where(
                appointments.c.id == appointment_id, appointments.c.is_active.is_(True)
            )
        )
        appointment = result.mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")
        return dict(appointment)

    async def _get_details(self, appointment_id: UUID) -> dict:
        result = await self.db.execute(
            _details_query().where(
                appointments.c.id == appointment_id, appointments.c.is_active.is_(True)
            )
        )
        appointment = result.mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")
        return dict(appointment)

    async def get_history(self, appointment_id: UUID) -> list[dict]:
        """Status trail of an appointment, oldest first."""
        result = await self.db.execute(
            select(appointment_history)
            .where(appointment_history.c.appointment_id == appointment_id)
            .order_by(appointment_history.c.created_at, appointment_history.c.id)
        )
        return [dict(row) for row in result.mappings().all()]

    async def get_appointment(self, appointment_id: UUID, actor: dict) -> dict:
        """
        Get an appointment with its history trail.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If a patient requests someone else's appointment
        """
        appointment = await self._get_details(appointment_id)
        await self._ensure_access(appointment, actor)
        appointment["history"] = await self.get_history(appointment_id)
        return appointment

    async def list_appointments(
        self, filters: AppointmentFilters, actor: dict
    ) -> tuple[int, list[dict]]:
        """
        List appointments with filters, ordering and pagination.

        Patients are restricted to their own appointments whatever the filters say.

        Returns:
            Tuple of (total count, appointments of the page)
        """
        conditions: list = [appointments.c.is_active.is_(True)]

        if is_staff(actor["role"]):
            if filters.patient_id:
                conditions.append(appointments.c.patient_id == filters.patient_id)
        else:
            patient = await self._patient_of(actor)
            if patient is None:
                return 0, []
            conditions.append(appointments.c.patient_id == patient["id"])

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)
        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)
        if filters.clinic_id:
            conditions.append(appointments.c.clinic_id == filters.clinic_id)
        if filters.date_from:
            conditions.append(appointments.c.appointment_date >= filters.date_from)
        if filters.date_to:
            conditions.append(appointments.c.appointment_date <= filters.date_to)

        total_result = await self.db.execute(
            select(func.count()).select_from(appointments).where(and_(*conditions))
        )
        total = total_result.scalar_one()

        order = [
            column.desc() if filters.order_dir == "desc" else column.asc()
            for column in ORDER_COLUMNS[filters.order_by]
        ]
        query = (
            _details_query()
            .where(and_(*conditions))
            .order_by(*order)
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
        )
        result = await self.db.execute(query)
        return total, [dict(row) for row in result.mappings().all()]

    async def get_today_appointments(
        self, doctor_id: UUID | None = None, clinic_id: UUID | None = None
    ) -> list[dict]:
        """All active appointments of today in chronological order."""
        conditions: list = [
            appointments.c.is_active.is_(True),
            appointments.c.appointment_date == date.today(),
        ]
        if doctor_id:
            conditions.append(appointments.c.doctor_id == doctor_id)
        if clinic_id:
            conditions.append(appointments.c.clinic_id == clinic_id)

        query = _details_query().where(and_(*conditions)).order_by(appointments.c.appointment_time)
        result = await self.db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def get_stats(
        self,
        period: StatsPeriod = StatsPeriod.MONTH,
        doctor_id: UUID | None = None,
        clinic_id: UUID | None = None,
    ) -> dict[str, Any]:
        """
        Appointment counters over a look-back period.

        Args:
            period: Look-back window ending today (future appointments included)
            doctor_id: Restrict to one doctor
            clinic_id: Restrict to one clinic

        Returns:
            Totals per status, today's and upcoming counts and the last seven days
        """
        today = date.today()
        scope: list = [appointments.c.is_active.is_(True)]
        if doctor_id:
            scope.append(appointments.c.doctor_id == doctor_id)
        if clinic_id:
            scope.append(appointments.c.clinic_id == clinic_id)

        since = today - STATS_LOOKBACK[period]
        in_period = and_(*scope, appointments.c.appointment_date >= since)

        summary_result = await self.db.execute(
            select(
                func.count().label("total"),
                func.count().filter(appointments.c.appointment_date == today).label("today"),
                func.count().filter(appointments.c.appointment_date > today).label("upcoming"),
            ).where(in_period)
        )
        summary = summary_result.mappings().one()

        by_status_result = await self.db.execute(
            select(appointments.c.status, func.count().label("count"))
            .where(in_period)
            .group_by(appointments.c.status)
        )
        counts = {row["status"]: row["count"] for row in by_status_result.mappings().all()}
        by_status = {status: counts.get(status.value, 0) for status in AppointmentStatus}

        daily_result = await self.db.execute(
            select(
                appointments.c.appointment_date.label("date"),
                func.count().label("total"),
                func.count()
                .filter(appointments.c.status == AppointmentStatus.COMPLETED.value)
                .label("completed"),
                func.count()
                .filter(appointments.c.status == AppointmentStatus.CANCELLED.value)
                .label("cancelled"),
            )
            .where(
                *scope,
                appointments.c.appointment_date >= today - timedelta(days=DAILY_STATS_DAYS),
            )
            .group_by(appointments.c.appointment_date)
            .order_by(appointments.c.appointment_date.desc())
        )

        return {
            "period": period,
            "total_appointments": summary["total"],
            "by_status": by_status,
            "today": summary["today"],
            "upcoming": summary["upcoming"],
            "daily_stats": [dict(row) for row in daily_result.mappings().all()],
        }
