"""
Integration tests for the schedule gate, the assignment workflow and the rollup.
"""
import uuid

import pytest
from sqlalchemy import select

from app.core.exceptions import ChecklistIncomplete, InvalidAssignmentTransition, ValidationError
from app.models.booking import BookingChecklistItem
from app.services.assignment_service import assignment_service
from app.services.booking_service import booking_service
from app.services.lifecycle_log import lifecycle_log
from app.services.state_machine import booking_state_machine


async def _start(db, assignment):
    """Walk a fresh assignment to in_progress."""
    await assignment_service.respond(db, assignment.id, "accepted")
    await assignment_service.confirm(db, assignment.id)
    await assignment_service.clock_in(db, assignment.id)


async def _checklist(db, assignment):
    result = await db.execute(
        select(BookingChecklistItem).where(BookingChecklistItem.booking_assignment_id == assignment.id)
    )
    return list(result.scalars().all())


# ============ Schedule gate ============


@pytest.mark.integration
@pytest.mark.asyncio
async def test_assigning_a_cleaner_promotes_card_saved(db, make_booking):
    booking = await make_booking(status="card_saved", service_date="2026-03-02")

    await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())

    assert booking.status == "scheduled"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert events[-1].reason == "schedule_requirements_met"
    assert events[-1].source == "assignments.assign"
    assert events[-1].event_metadata["has_qualifying_assignment"] is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_gate_waits_for_a_service_date(db, make_booking):
    booking = await make_booking(status="card_saved")

    await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())
    assert booking.status == "card_saved"

    await booking_service.update_schedule(db, booking.id, service_date="2026-03-02")
    assert booking.status == "scheduled"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_declined_only_assignment_demotes_scheduled(db, make_booking):
    """A scheduled booking whose only cleaner declines falls back to card_saved."""
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    assignment = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())
    assert booking.status == "scheduled"

    await assignment_service.respond(db, assignment.id, "declined")

    assert assignment.status == "declined"
    assert booking.status == "card_saved"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert events[-1].reason == "schedule_requirements_missing"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_gate_ignores_locked_statuses(db, make_booking):
    for status in ("cancelled", "in_progress", "completed", "payment_failed", "charged"):
        booking = await make_booking(status=status)
        result = await booking_state_machine.recompute_scheduled_state(db, booking.id)

        assert result.changed is False
        assert result.reason == "status_locked"
        assert booking.status == status


@pytest.mark.integration
@pytest.mark.asyncio
async def test_gate_never_touches_pending_card(db, make_booking, make_assignment):
    booking = await make_booking(status="pending_card", service_date="2026-03-02")
    await make_assignment(booking)

    result = await booking_state_machine.recompute_scheduled_state(db, booking.id)

    assert result.reason == "no_transition"
    assert result.gate.eligible is True
    assert booking.status == "pending_card"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_mark_card_on_file_schedules_ready_booking(db, make_booking, make_assignment):
    booking = await make_booking(status="pending_card", service_date="2026-03-02")
    await make_assignment(booking)

    await booking_service.mark_card_on_file(db, booking.id, "cus_123")

    assert booking.stripe_customer_id == "cus_123"
    assert booking.status == "scheduled"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert [e.to_status for e in events] == ["card_saved", "scheduled"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_mark_card_on_file_leaves_scheduled_booking_alone(db, make_booking, make_assignment):
    booking = await make_booking(status="scheduled", service_date="2026-03-02")
    await make_assignment(booking)

    await booking_service.mark_card_on_file(db, booking.id, "cus_999")

    assert booking.stripe_customer_id == "cus_999"
    assert booking.status == "scheduled"
    assert await lifecycle_log.count_for_booking(db, booking.id) == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_reschedule_records_event_and_keeps_status(db, make_booking, make_assignment, make_user):
    actor = await make_user()
    booking = await make_booking(
        status="scheduled",
        service_date="2026-03-02",
        service_window_start="09:00",
        service_window_end="11:00",
    )
    await make_assignment(booking)

    await booking_service.reschedule(
        db,
        booking.id,
        "2026-03-09",
        "customer travelling",
        new_window_start="13:00",
        new_window_end="15:00",
        actor_user_id=actor.id,
    )

    assert booking.status == "scheduled"
    assert booking.service_date == "2026-03-09"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert len(events) == 1
    event = events[0]
    assert event.event_type == "rescheduled"
    assert event.from_service_date == "2026-03-02"
    assert event.to_service_date == "2026-03-09"
    assert event.reason == "customer travelling"
    assert event.actor_user_id == actor.id
    assert event.event_metadata["from_window_start"] == "09:00"
    assert event.event_metadata["to_window_end"] == "15:00"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_reschedule_requires_reason(db, make_booking):
    booking = await make_booking(status="scheduled", service_date="2026-03-02")

    with pytest.raises(ValidationError):
        await booking_service.reschedule(db, booking.id, "2026-03-09", "  ")


# ============ Assignment workflow ============


@pytest.mark.integration
@pytest.mark.asyncio
async def test_assign_requires_cleaner_or_crew(db, make_booking):
    booking = await make_booking(status="card_saved")

    with pytest.raises(ValidationError):
        await assignment_service.assign(db, booking.id)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_cannot_assign_to_closed_booking(db, make_booking):
    booking = await make_booking(status="charged")

    with pytest.raises(ValidationError):
        await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())


@pytest.mark.integration
@pytest.mark.asyncio
async def test_clock_in_requires_confirmation(db, make_booking):
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    assignment = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())
    await assignment_service.respond(db, assignment.id, "accepted")

    with pytest.raises(InvalidAssignmentTransition):
        await assignment_service.clock_in(db, assignment.id)

    assert assignment.status == "accepted"
    assert booking.status == "scheduled"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_invalid_response_rejected(db, make_booking):
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    assignment = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())

    with pytest.raises(ValidationError):
        await assignment_service.respond(db, assignment.id, "maybe")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_clock_out_blocked_by_open_checklist(db, make_booking):
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    assignment = await assignment_service.assign(
        db, booking.id, cleaner_id=uuid.uuid4(), checklist=["Kitchen", "Bathrooms"]
    )
    await _start(db, assignment)
    events_before = await lifecycle_log.count_for_booking(db, booking.id)

    with pytest.raises(ChecklistIncomplete) as exc_info:
        await assignment_service.clock_out(db, assignment.id)
    assert exc_info.value.remaining == 2
    assert assignment.status == "in_progress"
    assert assignment.clocked_out_at is None
    assert booking.status == "in_progress"
    assert await lifecycle_log.count_for_booking(db, booking.id) == events_before


@pytest.mark.integration
@pytest.mark.asyncio
async def test_single_assignment_rolls_booking_to_completed(db, make_booking):
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    assignment = await assignment_service.assign(
        db, booking.id, cleaner_id=uuid.uuid4(), checklist=["Kitchen"]
    )

    await _start(db, assignment)
    assert booking.status == "in_progress"

    for item in await _checklist(db, assignment):
        await assignment_service.toggle_checklist_item(db, item.id, True)
    await assignment_service.clock_out(db, assignment.id)

    assert assignment.status == "completed"
    assert assignment.actual_duration_minutes is not None
    assert booking.status == "completed"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert [e.reason for e in events[-2:]] == ["assignment_started", "all_active_assignments_completed"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_booking_completes_only_when_every_active_assignment_is_done(db, make_booking):
    """in_progress after the first clock-out, completed after the second."""
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    first = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())
    second = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4(), role="secondary")

    await _start(db, first)
    assert booking.status == "in_progress"
    await _start(db, second)
    assert first.status == second.status == "in_progress"
    assert booking.status == "in_progress"

    await assignment_service.clock_out(db, first.id)
    assert first.status == "completed"
    assert booking.status == "in_progress"

    await assignment_service.clock_out(db, second.id)
    assert booking.status == "completed"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert [e.to_status for e in events] == ["scheduled", "in_progress", "completed"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_cancelled_assignment_does_not_block_completion(db, make_booking):
    booking = await make_booking(status="card_saved", service_date="2026-03-02")
    first = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())
    second = await assignment_service.assign(db, booking.id, cleaner_id=uuid.uuid4())

    await _start(db, first)
    await assignment_service.cancel(db, second.id, reason="sick")
    await assignment_service.clock_out(db, first.id)

    assert second.status == "cancelled"
    assert second.cancellation_reason == "sick"
    assert booking.status == "completed"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_rollup_skips_bookings_without_assignments(db, make_booking):
    booking = await make_booking(status="scheduled", service_date="2026-03-02")

    result = await booking_state_machine.sync_from_assignments(db, booking.id)

    assert result.changed is False
    assert result.reason == "no_transition"
    assert result.all_active_completed is False
    assert booking.status == "scheduled"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_rollup_moves_scheduled_straight_through_when_work_is_done(db, make_booking, make_assignment):
    """Completed assignments on a scheduled booking roll up in two recorded steps."""
    booking = await make_booking(status="scheduled", service_date="2026-03-02")
    await make_assignment(booking, status="completed")

    result = await booking_state_machine.sync_from_assignments(db, booking.id)

    assert result.changed is True
    assert result.reason == "assignment_rollup_transitioned"
    assert result.status == "completed"
    assert [e.to_status for e in result.events] == ["in_progress", "completed"]
    assert result.events[0].reason == "assignment_completion_rollup"
