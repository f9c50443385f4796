#!/usr/bin/env python
"""Drain the market sync queue.

Each batch claims due jobs with FOR UPDATE SKIP LOCKED, so several workers can
run side by side. Jobs a crashed worker left processing are put back on the
queue after `SYNC_STALE_AFTER_MINUTES`.

Usage:
    # Process one batch and exit (cron)
    uv run python scripts/run_sync_worker.py --once

    # Poll every 60 seconds
    uv run python scripts/run_sync_worker.py --interval 60 --limit 20
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from app.core.config import get_settings
from app.core.database import session_scope
from app.core.logging import configure_logging, get_logger
from app.features.alias.client import close_alias_client
from app.features.stockx.client import close_stockx_clients
from app.features.sync_queue.service import process_sync_batch

logger = get_logger("scripts.run_sync_worker")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Process market sync jobs.")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.sync_batch_limit,
        help="Jobs to claim per batch (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=30.0,
        help="Seconds to wait between batches (default: %(default)s)",
    )
    parser.add_argument("--once", action="store_true", help="Process one batch and exit")
    return parser.parse_args(argv)


async def run(limit: int, interval: float, once: bool) -> int:
    try:
        while True:
            async with session_scope() as session:
                result = await process_sync_batch(session, limit)

            print(
                f"processed={result.processed} successful={result.successful} "
                f"failed={result.failed} recovered={result.recovered}"
            )
            for error in result.errors:
                print(
                    f"  [FAIL] job {error.job_id} {error.provider} {error.style_id}: {error.error}"
                )

            if once:
                return 1 if result.failed else 0
            # Drain quickly while work remains
            if result.processed < limit:
                await asyncio.sleep(interval)
    finally:
        await close_stockx_clients()
        await close_alias_client()


def main() -> None:
    args = parse_args()
    configure_logging()
    logger.info("sync_worker.started", limit=args.limit, interval=args.interval, once=args.once)
    try:
        sys.exit(asyncio.run(run(args.limit, args.interval, args.once)))
    except KeyboardInterrupt:
        logger.info("sync_worker.stopped")
        sys.exit(0)


if __name__ == "__main__":
    main()
