#!/usr/bin/env python3
"""
Reset database - Drop the submissions table and clear alembic version history.
WARNING: This will delete ALL grading data!
"""

import os
import sys

from sqlalchemy import create_engine, text

TABLES = ("submissions", "alembic_version")


def get_database_url():
    """Get database URL from environment."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        sys.exit(1)
    return database_url


def reset_database():
    """Drop grading tables and clear alembic version."""
    database_url = get_database_url()
    engine = create_engine(database_url)

    print("WARNING: This will drop ALL tables and delete ALL data!")
    print(f"Database: {database_url.split('@')[-1]}")

    with engine.begin() as conn:
        for table in TABLES:
            conn.execute(text(f"DROP TABLE IF EXISTS {table}"))
            print(f"   ✓ Dropped {table}")

    engine.dispose()

    print("\n✓ Database reset complete!")
    print("\nNext steps:")
    print("  1. Apply migrations: alembic upgrade head")


if __name__ == "__main__":
    try:
        reset_database()
    except Exception as e:
        print(f"\nERROR: {e}")
        sys.exit(1)
