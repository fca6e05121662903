"""Celery background tasks for the booking lifecycle engine."""

import asyncio
import logging

from celery import shared_task
from sqlalchemy.exc import OperationalError

from app.database import engine, get_db_context
from app.services.backfill_service import backfill_service
from app.services.customer_stats import customer_stats_service

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""

    async def _run():
        try:
            return await coro
        finally:
            # Pooled connections are bound to this task's event loop
            await engine.dispose()

    return asyncio.run(_run())


# ==================== LIFECYCLE TASKS ====================


@shared_task(bind=True, max_retries=3)
def run_lifecycle_backfill(
    self,
    dry_run: bool = True,
    append_baseline_events: bool = False,
    limit: int | None = None,
):
    """Reclassify legacy booking statuses and report strict-mode readiness.

    Dry run by default; the nightly beat entry only reports.
    """
    try:
        report = run_async(_run_lifecycle_backfill(dry_run, append_baseline_events, limit))
    except OperationalError as exc:
        raise self.retry(exc=exc, countdown=300)

    if not report["ready_for_strict_mode"]:
        logger.warning(
            f"Booking lifecycle not ready for strict mode: "
            f"{report['invalid_status_count']} invalid, "
            f"{report['unresolved_legacy_failed_count']} unresolved failed, "
            f"{report['schedule_gate_violation_count']} schedule gate violations"
        )
    return report


async def _run_lifecycle_backfill(
    dry_run: bool, append_baseline_events: bool, limit: int | None
) -> dict:
    async with get_db_context() as db:
        report = await backfill_service.backfill_and_validate(
            db,
            dry_run=dry_run,
            append_baseline_events=append_baseline_events,
            limit=limit,
        )
        return report.to_dict()


@shared_task(bind=True, max_retries=3)
def recompute_customer_stats(self, dry_run: bool = False):
    """Recompute booking counters for every customer."""
    try:
        count = run_async(_recompute_customer_stats(dry_run))
    except OperationalError as exc:
        raise self.retry(exc=exc, countdown=300)
    return {"status": "success", "customers": count, "dry_run": dry_run}


async def _recompute_customer_stats(dry_run: bool) -> int:
    async with get_db_context() as db:
        stats = await customer_stats_service.recompute_all(db, dry_run=dry_run)
        return len(stats)
