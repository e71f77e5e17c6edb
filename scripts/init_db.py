#!/usr/bin/env python
"""Create the compensation engine tables.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --database-url postgresql+asyncpg://...
    python scripts/init_db.py --dry-run
"""

import argparse
import asyncio
import sys

from compensation_engine.config import get_settings
from compensation_engine.database import Database
from compensation_engine.models import Base


async def create_tables(database_url: str) -> None:
    database = Database(database_url)
    try:
        await database.create_all()
    finally:
        await database.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create compensation engine tables")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: DATABASE_URL from the environment)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the tables that would be created without connecting",
    )
    args = parser.parse_args()

    tables = sorted(Base.metadata.tables)
    if args.dry_run:
        print(f"Would create {len(tables)} tables:")
        for name in tables:
            print(f"  {name}")
        return 0

    database_url = args.database_url or get_settings().database_url
    print(f"Creating {len(tables)} tables...")
    try:
        asyncio.run(create_tables(database_url))
    except Exception as e:
        print(f"ERROR: {e}")
        return 1
    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
