"""Legacy status backfill and strict-mode readiness validator."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.booking_state import BACKFILL_SOURCE, is_known_booking_status
from app.domain.pagination import clamp_limit
from app.models.booking import Booking
from app.models.payment import PaymentIntent
from app.services.lifecycle_log import lifecycle_log
from app.services.state_machine import booking_state_machine

logger = logging.getLogger(__name__)

# Payment intent statuses that prove a legacy ``failed`` booking failed at payment
PAYMENT_FAILURE_EVIDENCE = ("failed", "requires_action", "canceled", "requires_payment_method")


@dataclass
class BackfillReport:
    """Result of one backfill / validation sweep."""

    dry_run: bool
    strict_mode: bool
    scanned: int = 0
    converted_legacy_failed: int = 0
    baseline_events_created: int = 0
    invalid_statuses: list[dict[str, str]] = field(default_factory=list)
    unresolved_legacy_failed: list[str] = field(default_factory=list)
    schedule_gate_violations: list[str] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def ready_for_strict_mode(self) -> bool:
        return not (
            self.invalid_statuses or self.unresolved_legacy_failed or self.schedule_gate_violations
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.update(
            invalid_status_count=len(self.invalid_statuses),
            unresolved_legacy_failed_count=len(self.unresolved_legacy_failed),
            schedule_gate_violation_count=len(self.schedule_gate_violations),
            ready_for_strict_mode=self.ready_for_strict_mode,
        )
        return data


class BackfillService:
    """Reclassify legacy statuses and report what still blocks strict mode."""

    async def backfill_and_validate(
        self,
        db: AsyncSession,
        dry_run: bool = True,
        append_baseline_events: bool = False,
        limit: int | None = None,
    ) -> BackfillReport:
        """Scan the newest bookings and repair what can be repaired.

        Args:
            db: Database session
            dry_run: Count only, write nothing
            append_baseline_events: Seed a ``baseline`` event for bookings with no history
            limit: Number of bookings to scan (newest first)

        Returns:
            BackfillReport; per-row failures are collected in ``errors``
        """
        limit = clamp_limit(limit, settings.backfill_default_limit, settings.backfill_max_limit)
        report = BackfillReport(dry_run=dry_run, strict_mode=settings.booking_state_machine_strict)

        result = await db.execute(select(Booking).order_by(Booking.created_at.desc()).limit(limit))
        bookings = list(result.scalars().all())
        report.scanned = len(bookings)

        for booking in bookings:
            booking_id = booking.id
            try:
                if dry_run:
                    await self._process(db, booking, report, dry_run, append_baseline_events)
                else:
                    async with db.begin_nested():
                        await self._process(db, booking, report, dry_run, append_baseline_events)
            except Exception as e:
                logger.exception(f"Backfill failed for booking {booking_id}")
                report.errors.append({"booking_id": str(booking_id), "error": str(e)})

        logger.info(
            f"Backfill sweep (dry_run={dry_run}): scanned={report.scanned} "
            f"converted={report.converted_legacy_failed} "
            f"unresolved={len(report.unresolved_legacy_failed)} "
            f"invalid={len(report.invalid_statuses)} "
            f"gate_violations={len(report.schedule_gate_violations)} "
            f"errors={len(report.errors)}"
        )
        return report

    async def _process(
        self,
        db: AsyncSession,
        booking: Booking,
        report: BackfillReport,
        dry_run: bool,
        append_baseline_events: bool,
    ) -> None:
        status = booking.status

        if not is_known_booking_status(status):
            report.invalid_statuses.append({"booking_id": str(booking.id), "status": status})

        if status == "failed":
            if await self._has_payment_failure_evidence(db, booking.id):
                if not dry_run:
                    await booking_state_machine.transition(
                        db,
                        booking.id,
                        "payment_failed",
                        BACKFILL_SOURCE,
                        reason="migrate_legacy_failed_status",
                        metadata={"previous_status": "failed"},
                    )
                report.converted_legacy_failed += 1
            else:
                report.unresolved_legacy_failed.append(str(booking.id))

        if status == "scheduled":
            gate = await booking_state_machine.schedule_gate_state(db, booking.id)
            if not gate.eligible:
                report.schedule_gate_violations.append(str(booking.id))

        if append_baseline_events and not dry_run:
            if await lifecycle_log.count_for_booking(db, booking.id) == 0:
                await lifecycle_log.append(
                    db,
                    booking.id,
                    "baseline",
                    BACKFILL_SOURCE,
                    from_status=booking.status,
                    to_status=booking.status,
                    reason="baseline_event_seed",
                    from_service_date=booking.service_date,
                    to_service_date=booking.service_date,
                    metadata={"backfill": True},
                )
                report.baseline_events_created += 1

    async def _has_payment_failure_evidence(self, db: AsyncSession, booking_id: UUID) -> bool:
        result = await db.execute(
            select(PaymentIntent.id)
            .where(
                PaymentIntent.booking_id == booking_id,
                PaymentIntent.status.in_(PAYMENT_FAILURE_EVIDENCE),
            )
            .limit(1)
        )
        return result.first() is not None


backfill_service = BackfillService()
