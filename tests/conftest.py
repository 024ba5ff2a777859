import os
import sys
from collections.abc import AsyncGenerator
from datetime import date, time, timedelta
from uuid import UUID

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from app.config import settings
from app.core.security import create_access_token, get_password_hash
from app.database import get_db
from app.dependencies import get_cache_manager
from app.main import app
from app.models import (
    clinics,
    doctor_schedules,
    doctors,
    metadata,
    patients,
    specialties,
    users,
)

TEST_PASSWORD = "Secret123!"  # pragma: allowlist secret

# Test database URL - MUST be different from production
# Set TEST_DATABASE_URL in .env or use environment variable
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

# Safety check: prevent running tests against production database
if not TEST_DATABASE_URL:
    # Fallback to settings but add _test suffix to database name
    prod_url = settings.database_url
    if "?" in prod_url:
        base_url, params = prod_url.rsplit("?", 1)
        db_name = base_url.rsplit("/", 1)[1]
        base_path = base_url.rsplit("/", 1)[0]
        TEST_DATABASE_URL = f"{base_path}/{db_name}_test?{params}"
    else:
        db_name = prod_url.rsplit("/", 1)[1]
        base_path = prod_url.rsplit("/", 1)[0]
        TEST_DATABASE_URL = f"{base_path}/{db_name}_test"

# Additional safety: ensure we're not using production database
if settings.database_url == TEST_DATABASE_URL:
    print("\nCRITICAL ERROR: Test database URL is same as production database!")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

# Ensure we're using asyncpg driver for async operations
if not TEST_DATABASE_URL.startswith("postgresql+asyncpg://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

# Use NullPool to avoid event loop issues between tests
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def next_weekday(isoweekday: int) -> date:
    """Next calendar date (strictly after today) falling on ``isoweekday``."""
    today = date.today()
    days_ahead = (isoweekday - today.isoweekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def auth_headers_for(user: dict) -> dict:
    """Bearer headers carrying the user's id and role."""
    token = create_access_token(
        data={"sub": str(user["id"]), "role": user["role"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


async def insert_user(
    db: AsyncSession,
    email: str,
    role: str,
    first_name: str = "Test",
    last_name: str = "User",
) -> dict:
    """Insert a user with the shared test password."""
    values = {
        "email": email,
        "password_hash": get_password_hash(TEST_PASSWORD),
        "first_name": first_name,
        "last_name": last_name,
        "role": role,
    }
    result = await db.execute(insert(users).values(**values).returning(users.c.id))
    user_id: UUID = result.scalar_one()
    await db.commit()
    return {"id": user_id, **values}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh schema and yield a session bound to it."""
    try:
        async with test_engine.begin() as conn:
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "btree_gist"'))
            await conn.run_sync(metadata.drop_all)
            await conn.run_sync(metadata.create_all)
    except (OSError, SQLAlchemyError) as exc:
        pytest.skip(f"Test database unavailable: {exc}")

    async with TestSessionLocal() as session:
        yield session

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Factory for extra sessions on the test schema, each on its own connection."""
    return TestSessionLocal


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with the cache disabled."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> dict:
    return await insert_user(db_session, "admin@example.com", "admin", "Ada", "Admin")


@pytest_asyncio.fixture
async def secretary_user(db_session: AsyncSession) -> dict:
    return await insert_user(db_session, "desk@example.com", "secretary", "Sam", "Desk")


@pytest_asyncio.fixture
async def patient_user(db_session: AsyncSession) -> dict:
    """A patient account together with its ``patients`` row."""
    user = await insert_user(db_session, "pat@example.com", "patient", "Pat", "Smith")
    result = await db_session.execute(
        insert(patients).values(user_id=user["id"]).returning(patients.c.id)
    )
    user["patient_id"] = result.scalar_one()
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_patient_user(db_session: AsyncSession) -> dict:
    user = await insert_user(db_session, "other@example.com", "patient", "Olga", "Other")
    result = await db_session.execute(
        insert(patients).values(user_id=user["id"]).returning(patients.c.id)
    )
    user["patient_id"] = result.scalar_one()
    await db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user: dict) -> dict:
    return auth_headers_for(admin_user)


@pytest.fixture
def staff_headers(secretary_user: dict) -> dict:
    return auth_headers_for(secretary_user)


@pytest.fixture
def patient_headers(patient_user: dict) -> dict:
    return auth_headers_for(patient_user)


@pytest_asyncio.fixture
async def specialty(db_session: AsyncSession) -> dict:
    result = await db_session.execute(
        insert(specialties).values(name="Cardiology").returning(specialties.c.id)
    )
    specialty_id = result.scalar_one()
    await db_session.commit()
    return {"id": specialty_id, "name": "Cardiology"}


async def insert_clinic(db: AsyncSession, name: str, city: str = "Springfield") -> dict:
    values = {
        "name": name,
        "address": "742 Evergreen Terrace",
        "city": city,
        "postal_code": "12345",
        "phone": "+15550001",
    }
    result = await db.execute(insert(clinics).values(**values).returning(clinics.c.id))
    clinic_id = result.scalar_one()
    await db.commit()
    return {"id": clinic_id, **values}


@pytest_asyncio.fixture
async def clinic(db_session: AsyncSession) -> dict:
    return await insert_clinic(db_session, "Central Clinic")


@pytest_asyncio.fixture
async def other_clinic(db_session: AsyncSession) -> dict:
    return await insert_clinic(db_session, "Northside Clinic")


@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession, clinic: dict, specialty: dict) -> dict:
    """Doctor working at ``clinic`` with a 30 minute consultation."""
    user = await insert_user(db_session, "house@example.com", "secretary", "Greg", "House")
    values = {
        "user_id": user["id"],
        "clinic_id": clinic["id"],
        "specialty_id": specialty["id"],
        "license_number": "LIC-001",
        "consultation_duration_minutes": 30,
    }
    result = await db_session.execute(insert(doctors).values(**values).returning(doctors.c.id))
    doctor_id = result.scalar_one()
    await db_session.commit()
    return {"id": doctor_id, **values}


@pytest_asyncio.fixture
async def monday_schedule(db_session: AsyncSession, doctor: dict) -> dict:
    """Monday 09:00-12:00 window (Monday is weekday index 2)."""
    values = {
        "doctor_id": doctor["id"],
        "day_of_week": 2,
        "start_time": time(9, 0),
        "end_time": time(12, 0),
    }
    await db_session.execute(insert(doctor_schedules).values(**values))
    await db_session.commit()
    return values


@pytest.fixture
def next_monday() -> date:
    return next_weekday(1)


@pytest.fixture
def booking_payload(patient_user: dict, doctor: dict, clinic: dict, next_monday: date) -> dict:
    """Staff booking payload for 10:00 next Monday."""
    return {
        "patient_id": str(patient_user["patient_id"]),
        "doctor_id": str(doctor["id"]),
        "clinic_id": str(clinic["id"]),
        "appointment_date": next_monday.isoformat(),
        "appointment_time": "10:00",
        "reason": "Regular checkup",
    }
