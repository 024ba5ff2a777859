#!/usr/bin/env python3
"""
Verify the test database configuration.

Tests drop and recreate every table, so they must never point at the
application database.
"""

import os
import sys

from dotenv import load_dotenv


def main() -> int:
    """Check test database configuration."""
    load_dotenv()

    app_db = os.getenv("DATABASE_URL")
    test_db = os.getenv("TEST_DATABASE_URL")

    print(f"Application DB: {app_db}")
    print(f"Test DB:        {test_db or '(derived: <DATABASE_URL>_test)'}")

    if test_db and test_db == app_db:
        print("✗ TEST_DATABASE_URL must not equal DATABASE_URL", file=sys.stderr)
        return 1

    if test_db and "test" not in test_db.lower():
        print("⚠ Test database name does not contain 'test'")

    print("✓ Test database configuration looks good")
    print("  The test database needs the pgcrypto and btree_gist extensions available.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
