#!/usr/bin/env python3
"""Reclassify legacy booking statuses and report strict-mode readiness.

Dry run unless --apply is given.
"""

import asyncio
import json

from app.core.logging import setup_logging
from app.database import close_db, get_db_context
from app.services.backfill_service import backfill_service


async def run_backfill(apply: bool, baseline: bool, limit: int | None) -> dict:
    async with get_db_context() as db:
        report = await backfill_service.backfill_and_validate(
            db,
            dry_run=not apply,
            append_baseline_events=baseline,
            limit=limit,
        )
    await close_db()
    return report.to_dict()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Backfill legacy booking statuses")
    parser.add_argument("--apply", action="store_true", help="Write changes (default: dry run)")
    parser.add_argument(
        "--baseline-events",
        action="store_true",
        help="Seed a baseline lifecycle event for bookings without history",
    )
    parser.add_argument("--limit", type=int, default=None, help="Bookings to scan, newest first")

    args = parser.parse_args()

    setup_logging("INFO", json_format=False)
    report = asyncio.run(run_backfill(args.apply, args.baseline_events, args.limit))
    print(json.dumps(report, indent=2))
    if not report["ready_for_strict_mode"]:
        raise SystemExit(1)
