"""
Integration tests for the legacy status backfill and strict-mode validator.
"""
from datetime import UTC, datetime

import pytest

from app.services.backfill_service import backfill_service
from app.services.lifecycle_log import lifecycle_log


@pytest.fixture
def legacy_dataset(make_booking, make_payment_intent, make_assignment):
    """A mix of healthy and problematic bookings."""

    async def _seed() -> dict:
        with_evidence = await make_booking(status="failed", amount=8000)
        await make_payment_intent(with_evidence, status="requires_payment_method")
        without_evidence = await make_booking(status="failed")
        await make_payment_intent(without_evidence, status="succeeded")
        unknown = await make_booking(status="archived")
        unassigned = await make_booking(status="scheduled", service_date="2026-03-02")
        healthy = await make_booking(status="scheduled", service_date="2026-03-03")
        await make_assignment(healthy)
        return {
            "with_evidence": with_evidence,
            "without_evidence": without_evidence,
            "unknown": unknown,
            "unassigned": unassigned,
            "healthy": healthy,
        }

    return _seed


@pytest.mark.integration
@pytest.mark.asyncio
async def test_dry_run_reports_without_writing(db, legacy_dataset):
    bookings = await legacy_dataset()

    report = await backfill_service.backfill_and_validate(db, dry_run=True)

    assert report.scanned == 5
    assert report.converted_legacy_failed == 1
    assert report.unresolved_legacy_failed == [str(bookings["without_evidence"].id)]
    assert report.invalid_statuses == [
        {"booking_id": str(bookings["unknown"].id), "status": "archived"}
    ]
    assert report.schedule_gate_violations == [str(bookings["unassigned"].id)]
    assert report.errors == []
    assert report.ready_for_strict_mode is False

    assert bookings["with_evidence"].status == "failed"
    assert await lifecycle_log.count_for_booking(db, bookings["with_evidence"].id) == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_apply_converts_only_bookings_with_payment_evidence(db, legacy_dataset):
    bookings = await legacy_dataset()

    dry = await backfill_service.backfill_and_validate(db, dry_run=True)
    applied = await backfill_service.backfill_and_validate(db, dry_run=False)

    assert applied.converted_legacy_failed == dry.converted_legacy_failed == 1
    assert applied.unresolved_legacy_failed == dry.unresolved_legacy_failed
    assert bookings["with_evidence"].status == "payment_failed"
    assert bookings["without_evidence"].status == "failed"

    events = await lifecycle_log.list_for_booking(db, bookings["with_evidence"].id)
    assert len(events) == 1
    assert events[0].from_status == "failed"
    assert events[0].to_status == "payment_failed"
    assert events[0].source == "backfill_and_validate"
    assert events[0].reason == "migrate_legacy_failed_status"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_baseline_events_seed_empty_histories_once(db, legacy_dataset):
    bookings = await legacy_dataset()

    report = await backfill_service.backfill_and_validate(
        db, dry_run=False, append_baseline_events=True
    )
    assert report.baseline_events_created == 4

    events = await lifecycle_log.list_for_booking(db, bookings["healthy"].id)
    assert len(events) == 1
    assert events[0].event_type == "baseline"
    assert events[0].from_status == events[0].to_status == "scheduled"
    assert events[0].to_service_date == "2026-03-03"

    again = await backfill_service.backfill_and_validate(
        db, dry_run=False, append_baseline_events=True
    )
    assert again.baseline_events_created == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_clean_dataset_is_ready_for_strict_mode(db, make_booking, make_assignment):
    booking = await make_booking(status="scheduled", service_date="2026-03-02")
    await make_assignment(booking)
    await make_booking(status="charged")

    report = await backfill_service.backfill_and_validate(db)

    assert report.ready_for_strict_mode is True
    assert report.to_dict()["ready_for_strict_mode"] is True
    assert report.to_dict()["invalid_status_count"] == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_limit_scans_newest_bookings_first(db, make_booking):
    older = await make_booking(status="failed", created_at=datetime(2025, 1, 1, tzinfo=UTC))
    newer = await make_booking(status="failed", created_at=datetime(2026, 1, 1, tzinfo=UTC))

    report = await backfill_service.backfill_and_validate(db, limit=1)

    assert report.scanned == 1
    assert report.unresolved_legacy_failed == [str(newer.id)]
    assert str(older.id) not in report.unresolved_legacy_failed


@pytest.mark.integration
@pytest.mark.asyncio
async def test_row_failures_are_collected_not_raised(db, make_booking, monkeypatch):
    booking = await make_booking(status="failed")
    healthy = await make_booking(status="charged")

    async def _boom(db, booking_id):
        raise RuntimeError("payment lookup unavailable")

    monkeypatch.setattr(backfill_service, "_has_payment_failure_evidence", _boom)

    report = await backfill_service.backfill_and_validate(db, dry_run=True)

    assert report.scanned == 2
    assert report.errors == [
        {"booking_id": str(booking.id), "error": "payment lookup unavailable"}
    ]
    assert healthy.status == "charged"
