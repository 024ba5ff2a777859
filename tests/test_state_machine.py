"""Tests for appointment status transitions."""

from datetime import UTC, datetime
from itertools import product
from uuid import uuid4

import pytest

from app.core.exceptions import BadRequestException, InvalidTransitionException
from app.scheduling.state_machine import (
    ALLOWED_TRANSITIONS,
    DEFAULT_CANCELLATION_REASON,
    AppointmentStatus,
    append_closing_notes,
    can_transition,
    ensure_deletable,
    plan_transition,
)

S = AppointmentStatus

ALLOWED = {
    (S.SCHEDULED, S.CONFIRMED),
    (S.SCHEDULED, S.CANCELLED),
    (S.CONFIRMED, S.COMPLETED),
    (S.CONFIRMED, S.CANCELLED),
    (S.CONFIRMED, S.NO_SHOW),
    (S.CANCELLED, S.SCHEDULED),
}


@pytest.mark.parametrize(("source", "target"), list(product(S, S)))
def test_transition_table_is_closed(source, target):
    assert can_transition(source, target) == ((source, target) in ALLOWED)


def test_terminal_statuses_have_no_exits():
    assert ALLOWED_TRANSITIONS[S.COMPLETED] == frozenset()
    assert ALLOWED_TRANSITIONS[S.NO_SHOW] == frozenset()


def test_scheduled_cannot_jump_to_completed():
    with pytest.raises(InvalidTransitionException) as exc_info:
        plan_transition({"status": "scheduled"}, "completed", uuid4())

    assert exc_info.value.status_code == 400
    assert exc_info.value.source == "scheduled"
    assert exc_info.value.target == "completed"


def test_cancel_without_reason_uses_default():
    actor = uuid4()
    now = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)

    change = plan_transition({"status": "scheduled"}, S.CANCELLED, actor, now=now)

    assert change.values["status"] == "cancelled"
    assert change.values["cancellation_reason"] == DEFAULT_CANCELLATION_REASON
    assert change.values["cancelled_by"] == actor
    assert change.values["cancelled_at"] == now
    assert change.reason == DEFAULT_CANCELLATION_REASON


def test_cancel_keeps_given_reason():
    change = plan_transition({"status": "confirmed"}, S.CANCELLED, uuid4(), reason="Ill")

    assert change.values["cancellation_reason"] == "Ill"


def test_complete_appends_closing_notes():
    change = plan_transition(
        {"status": "confirmed", "notes": "Bring lab results"},
        S.COMPLETED,
        uuid4(),
        notes="Prescribed rest",
    )

    assert change.values["notes"] == "Bring lab results\n\nClosing notes: Prescribed rest"


def test_complete_without_notes_leaves_notes_alone():
    change = plan_transition({"status": "confirmed", "notes": "x"}, S.COMPLETED, uuid4())

    assert "notes" not in change.values


def test_reopen_clears_cancellation_fields():
    change = plan_transition({"status": "cancelled"}, S.SCHEDULED, uuid4())

    assert change.reopens
    assert change.values["cancellation_reason"] is None
    assert change.values["cancelled_by"] is None
    assert change.values["cancelled_at"] is None


def test_history_values():
    actor = uuid4()
    appointment_id = uuid4()
    change = plan_transition({"status": "scheduled"}, S.CONFIRMED, actor, reason="Phoned")

    assert not change.reopens
    assert change.history_values(appointment_id) == {
        "appointment_id": appointment_id,
        "previous_status": "scheduled",
        "new_status": "confirmed",
        "change_reason": "Phoned",
        "changed_by": actor,
    }


@pytest.mark.parametrize(
    ("existing", "closing", "expected"),
    [
        ("a", None, "a"),
        ("a", "", "a"),
        (None, "b", "b"),
        ("", "b", "b"),
        ("a", "b", "a\n\nClosing notes: b"),
    ],
)
def test_append_closing_notes(existing, closing, expected):
    assert append_closing_notes(existing, closing) == expected


def test_completed_appointments_are_not_deletable():
    with pytest.raises(BadRequestException):
        ensure_deletable("completed")

    for status in (S.SCHEDULED, S.CONFIRMED, S.CANCELLED, S.NO_SHOW):
        ensure_deletable(status)
