"""Roles and role-based field visibility."""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any


class Role(str, Enum):
    """User role enumeration."""

    ADMIN = "admin"
    SECRETARY = "secretary"
    PATIENT = "patient"


STAFF_ROLES = frozenset({Role.ADMIN, Role.SECRETARY})


def is_staff(role: Role | str | None) -> bool:
    """Admins and secretaries are staff."""
    if role is None:
        return False
    return Role(role) in STAFF_ROLES


# Fields every caller (including anonymous ones) may see
CLINIC_PUBLIC_FIELDS = frozenset(
    {"id", "name", "address", "phone", "city", "state", "opening_hours", "total_doctors", "doctors"}
)

DOCTOR_PUBLIC_FIELDS = frozenset(
    {
        "id",
        "clinic_id",
        "specialty_id",
        "specialty_name",
        "first_name",
        "last_name",
        "consultation_duration_minutes",
    }
)


def project_for_role(
    entity: Mapping[str, Any],
    role: Role | str | None,
    public_fields: Iterable[str],
) -> dict[str, Any]:
    """
    Mask an entity down to the fields the caller's role may see.

    Staff receive the full entity; everybody else only ``public_fields``.

    Args:
        entity: Fully loaded entity
        role: Role of the caller, None for anonymous callers
        public_fields: Fields visible to non-staff callers

    Returns:
        Projected copy of the entity
    """
    if is_staff(role):
        return dict(entity)
    visible = frozenset(public_fields)
    return {key: value for key, value in entity.items() if key in visible}
