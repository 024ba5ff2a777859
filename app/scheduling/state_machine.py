"""Appointment status transitions and their side effects."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from app.core.exceptions import BadRequestException, InvalidTransitionException


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset({AppointmentStatus.SCHEDULED}),
    AppointmentStatus.NO_SHOW: frozenset(),
}

# Statuses from which the date/time may still be moved
RESCHEDULABLE = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})

DEFAULT_CANCELLATION_REASON = "Cancelled by user"
CLOSING_NOTES_SEPARATOR = "\n\nClosing notes: "


def can_transition(source: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    """Check whether ``source -> target`` is in the transition table."""
    return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(source)]


def ensure_transition(source: AppointmentStatus | str, target: AppointmentStatus | str) -> None:
    """
    Validate a status change.

    Raises:
        InvalidTransitionException: If the change is not allowed
    """
    if not can_transition(source, target):
        raise InvalidTransitionException(
            AppointmentStatus(source).value, AppointmentStatus(target).value
        )


def ensure_deletable(status: AppointmentStatus | str) -> None:
    """Completed appointments are part of the medical record and cannot be removed."""
    if AppointmentStatus(status) == AppointmentStatus.COMPLETED:
        raise BadRequestException("Completed appointments cannot be deleted")


def append_closing_notes(existing: str | None, closing: str | None) -> str | None:
    """Append closing notes to the existing notes instead of replacing them."""
    if not closing:
        return existing
    if not existing:
        return closing
    return f"{existing}{CLOSING_NOTES_SEPARATOR}{closing}"


@dataclass(frozen=True)
class StatusChange:
    """Result of planning a transition: the column updates and the audit entry."""

    previous: AppointmentStatus
    new: AppointmentStatus
    actor_id: UUID | None
    reason: str | None
    values: dict[str, Any] = field(default_factory=dict)

    @property
    def reopens(self) -> bool:
        """True for cancelled -> scheduled, which needs the slot re-validated."""
        return (
            self.previous == AppointmentStatus.CANCELLED
            and self.new == AppointmentStatus.SCHEDULED
        )

    def history_values(self, appointment_id: UUID) -> dict[str, Any]:
        """Row values for the ``appointment_history`` entry."""
        return {
            "appointment_id": appointment_id,
            "previous_status": self.previous.value,
            "new_status": self.new.value,
            "change_reason": self.reason,
            "changed_by": self.actor_id,
        }


def plan_transition(
    appointment: Mapping[str, Any],
    target: AppointmentStatus | str,
    actor_id: UUID | None,
    reason: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> StatusChange:
    """
    Validate a transition and compute the column updates it implies.

    Args:
        appointment: Current appointment row
        target: Requested status
        actor_id: User performing the change
        reason: Cancellation or change reason
        notes: Closing notes (only used when completing)
        now: Timestamp of the change

    Returns:
        Planned status change

    Raises:
        InvalidTransitionException: If the transition is not allowed
    """
    source = AppointmentStatus(appointment["status"])
    target = AppointmentStatus(target)
    ensure_transition(source, target)
    now = now or datetime.now(UTC)

    values: dict[str, Any] = {"status": target.value, "updated_at": now}

    if target == AppointmentStatus.CANCELLED:
        reason = reason or DEFAULT_CANCELLATION_REASON
        values["cancellation_reason"] = reason
        values["cancelled_by"] = actor_id
        values["cancelled_at"] = now
    elif target == AppointmentStatus.COMPLETED and notes:
        values["notes"] = append_closing_notes(appointment.get("notes"), notes)
    elif source == AppointmentStatus.CANCELLED:
        values["cancellation_reason"] = None
        values["cancelled_by"] = None
        values["cancelled_at"] = None

    return StatusChange(
        previous=source,
        new=target,
        actor_id=actor_id,
        reason=reason,
        values=values,
    )
