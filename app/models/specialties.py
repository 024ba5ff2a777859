"""Medical specialty catalogue."""

from sqlalchemy import Boolean, Column, String, Table, Text, text
from sqlalchemy.dialects.postgresql import UUID

from app.models.metadata import metadata

specialties = Table(
    "specialties",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("name", String(200), nullable=False, unique=True),
    Column("description", Text),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
)
