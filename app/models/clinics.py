"""Clinic model definition using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.metadata import metadata

clinics = Table(
    "clinics",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Basic Information
    Column("name", String(255), nullable=False, index=True),
    Column("address", Text, nullable=False),
    Column("city", String(100), index=True),
    Column("state", String(100)),
    Column("postal_code", String(20)),
    # Contact Information
    Column("phone", String(20)),
    Column("email", String(255)),
    # Opening Hours
    Column("opening_hours", JSON),
    # Example: {"monday": {"open": "09:00", "close": "18:00"}, "sunday": null}
    # Status
    Column("is_active", Boolean, nullable=False, server_default=text("true"), index=True),
    # Metadata
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("NOW()"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("NOW()"),
    ),
    Column("deleted_at", DateTime(timezone=True)),  # Soft delete
)

Index("idx_clinics_name_city", clinics.c.name, clinics.c.city)
