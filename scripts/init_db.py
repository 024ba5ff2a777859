"""Script to initialize the database."""

import asyncio
import sys

from sqlalchemy import select, text

from app.database import engine
from app.models import metadata, specialties

# Extensions required by the schema: UUID defaults and the overlap constraint
EXTENSIONS = ("pgcrypto", "btree_gist")

DEFAULT_SPECIALTIES = (
    ("General Medicine", "Primary care and general consultations"),
    ("Cardiology", "Heart and circulatory system"),
    ("Dermatology", "Skin, hair and nails"),
    ("Pediatrics", "Medical care of children"),
    ("Gynecology", "Female reproductive health"),
)


async def init_db(seed: bool = False) -> None:
    """Create extensions and all tables, optionally seeding the specialty catalogue."""
    async with engine.begin() as conn:
        for extension in EXTENSIONS:
            await conn.execute(text(f'CREATE EXTENSION IF NOT EXISTS "{extension}"'))

        await conn.run_sync(metadata.create_all)

        if seed:
            existing = set((await conn.execute(select(specialties.c.name))).scalars().all())
            rows = [
                {"name": name, "description": description}
                for name, description in DEFAULT_SPECIALTIES
                if name not in existing
            ]
            if rows:
                await conn.execute(specialties.insert(), rows)
            print(f"✓ Seeded {len(rows)} specialties")

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db(seed="--seed" in sys.argv[1:]))
