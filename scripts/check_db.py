#!/usr/bin/env python
"""Check database connectivity and schema.

Usage:
    uv run python scripts/check_db.py
"""

import asyncio
import sys

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

import app.features.alias.models  # noqa: F401
import app.features.fx.models  # noqa: F401
import app.features.inventory.models  # noqa: F401
import app.features.market.models  # noqa: F401
import app.features.stockx.models  # noqa: F401
import app.features.sync_queue.models  # noqa: F401
from app.core.config import get_settings
from app.core.database import Base


async def check_database() -> int:
    """Verify the connection and that every ledger table exists."""
    settings = get_settings()

    print("ResaleLedger - Database Check")
    print("=" * 30)
    print(f"Database: {settings.database_url.rsplit('@', 1)[-1]}")
    print()

    engine = create_async_engine(settings.database_url)

    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT version()"))
            print(f"[OK] PostgreSQL: {result.scalar()[:50]}")

            existing = set(await conn.run_sync(lambda c: inspect(c).get_table_names()))

        missing = sorted(set(Base.metadata.tables) - existing)
        for table in sorted(Base.metadata.tables):
            print(f"[{'OK' if table in existing else 'MISSING'}] {table}")

        print()
        if missing:
            print("Run migrations: uv run alembic upgrade head")
            return 1
        print("Database check completed successfully!")
        return 0

    except (SQLAlchemyError, OSError) as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Ensure PostgreSQL is running: docker-compose up -d")
        print("  2. Check DATABASE_URL in .env")
        return 1

    finally:
        await engine.dispose()


def main():
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
