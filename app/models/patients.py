"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.metadata import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    # Personal health information
    Column("birth_date", Date),
    Column("gender", String(20)),
    Column("blood_type", String(10)),
    # Emergency contact
    Column("emergency_contact_name", Text),
    Column("emergency_contact_phone", String(20)),
    # Insurance information
    Column("insurance_provider", Text),
    Column("insurance_number", String(100), index=True),
    # Medical information
    Column("medical_history", Text),
    # Status
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)
