"""Script to run database migrations."""

import sys

from alembic import command
from alembic.config import Config

USAGE = (
    "Usage: python scripts/migrate.py [upgrade | downgrade <revision> | current | create <message>]"
)


def _config() -> Config:
    return Config("alembic.ini")


def run_migrations() -> None:
    """Upgrade the database to the latest revision."""
    try:
        print("Running database migrations...")
        command.upgrade(_config(), "head")
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def downgrade(revision: str) -> None:
    """Downgrade the database to ``revision`` (``base`` drops the schema)."""
    try:
        command.downgrade(_config(), revision)
        print(f"✓ Downgraded to {revision}")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a new migration from the table definitions in app.models."""
    try:
        print(f"Creating migration: {message}")
        command.revision(_config(), message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args or args[0] == "upgrade":
        run_migrations()
    elif args[0] == "downgrade" and len(args) == 2:
        downgrade(args[1])
    elif args[0] == "current":
        command.current(_config(), verbose=True)
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    else:
        print(USAGE)
