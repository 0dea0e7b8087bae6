"""Fail if the migrated pacer schema has drifted from the SQLAlchemy models.

Upgrades the target database to head first, so it can run against a scratch
SQLite file in CI:

    python scripts/check_migrations.py --database-url sqlite+aiosqlite:///./drift.db
"""

from __future__ import annotations

import argparse
import asyncio

from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from sqlalchemy.ext.asyncio import create_async_engine

from pacer import models  # noqa: F401  # Ensure models are registered
from pacer.config import settings
from pacer.database import Base, migrate_db


def _diff(connection) -> list[object]:
    context = MigrationContext.configure(connection, opts={"compare_type": True})
    return compare_metadata(context, Base.metadata)


async def check(database_url: str, *, upgrade: bool) -> int:
    if upgrade:
        await migrate_db("head", database_url)

    engine = create_async_engine(database_url)
    try:
        async with engine.connect() as conn:
            diffs = await conn.run_sync(_diff)
    finally:
        await engine.dispose()

    if not diffs:
        print(f"Schema matches models ({len(Base.metadata.tables)} tables).")
        return 0

    print("Models and migrated schema differ:")
    for diff in diffs:
        print(f"  {diff}")
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument(
        "--no-upgrade",
        action="store_true",
        help="Compare the database as-is instead of upgrading it to head first",
    )
    args = parser.parse_args(argv)
    return asyncio.run(check(args.database_url, upgrade=not args.no_upgrade))


if __name__ == "__main__":
    raise SystemExit(main())
