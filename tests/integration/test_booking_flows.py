"""
Integration tests for booking creation, cancellation, completion and payment outcomes.
"""
import pytest
from sqlalchemy import select

from app.core.exceptions import (
    AuthorizationError,
    CancellationNotAllowed,
    InvalidTransition,
    ValidationError,
)
from app.models.customer import Customer
from app.models.intake import QuoteRequest
from app.models.payment import PaymentIntent
from app.services.booking_service import booking_service
from app.services.lifecycle_log import lifecycle_log


# ============ Creation ============


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_booking_starts_pending_card_with_created_event(db, make_user):
    actor = await make_user()

    booking = await booking_service.create_booking(
        db,
        email="new.client@example.com",
        source="bookings.create",
        customer_name="New Client",
        service_date="2026-04-01",
        amount=15000,
        actor_user_id=actor.id,
    )

    assert booking.status == "pending_card"
    events = await lifecycle_log.list_for_booking(db, booking.id)
    assert len(events) == 1
    assert events[0].event_type == "created"
    assert events[0].to_status == "pending_card"
    assert events[0].actor_user_id == actor.id

    customer = await db.get(Customer, booking.customer_id)
    assert customer.email == "new.client@example.com"
    assert customer.total_bookings == 1
    assert customer.total_spent == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_booking_reuses_customer_by_email(db, make_customer):
    customer = await make_customer(email="casey@example.com")

    booking = await booking_service.create_booking(
        db, email="Casey@Example.com", source="bookings.create"
    )

    assert booking.customer_id == customer.id
    result = await db.execute(select(Customer))
    assert len(result.scalars().all()) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_booking_rejects_negative_amount(db):
    with pytest.raises(ValidationError):
        await booking_service.create_booking(
            db, email="casey@example.com", source="bookings.create", amount=-1
        )


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_from_request_is_idempotent(db, make_booking_request):
    request = await make_booking_request(status="confirmed", quote_request_status="confirmed")

    first = await booking_service.create_from_request(db, request.id)
    second = await booking_service.create_from_request(db, request.id)

    assert first.id == second.id
    assert request.booking_id == first.id
    assert first.booking_request_id == request.id
    assert first.customer_name == "Jordan Lee"
    quote_request = await db.get(QuoteRequest, request.quote_request_id)
    assert quote_request.booking_request_id == request.id
    assert await lifecycle_log.count_for_booking(db, first.id) == 1


# ============ Cancellation ============


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["pending_card", "card_saved", "scheduled"])
async def test_cancel_allowed_before_work_starts(db, make_booking, status):
    booking = await make_booking(status=status)

    result = await booking_service.cancel(db, booking.id, "client moved")

    assert result.changed is True
    assert booking.status == "cancelled"
    assert booking.cancellation_reason == "client moved"
    assert result.event.source == "bookings.cancel"


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["in_progress", "completed", "payment_failed", "charged"])
async def test_cancel_rejected_once_work_started(db, make_booking, status):
    booking = await make_booking(status=status)

    with pytest.raises(CancellationNotAllowed) as exc_info:
        await booking_service.cancel(db, booking.id, "client moved")

    assert exc_info.value.status_code == 409
    assert booking.status == status
    assert await lifecycle_log.count_for_booking(db, booking.id) == 0


# ============ Admin override ============


@pytest.mark.integration
@pytest.mark.asyncio
async def test_admin_override_requires_admin_role(db, make_booking, make_user):
    dispatcher = await make_user(role="dispatcher")
    booking = await make_booking(status="charged")

    with pytest.raises(AuthorizationError):
        await booking_service.admin_override_status(
            db, booking.id, "cancelled", "refund issued", dispatcher
        )

    assert booking.status == "charged"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_admin_override_records_actor(db, make_booking, make_user):
    owner = await make_user(email="owner@example.com", role="acme:owner")
    booking = await make_booking(status="completed")

    result = await booking_service.admin_override_status(
        db, booking.id, "scheduled", "cleaner must redo the job", owner
    )

    assert booking.status == "scheduled"
    assert result.event.event_type == "override_transition"
    assert result.event.actor_user_id == owner.id
    assert result.event.source == "bookings.admin_override_status"


# ============ Completion and payment ============


@pytest.mark.integration
@pytest.mark.asyncio
async def test_mark_job_completed_requires_in_progress(db, make_booking):
    booking = await make_booking(status="scheduled")

    with pytest.raises(ValidationError) as exc_info:
        await booking_service.mark_job_completed(db, booking.id)

    assert "current: scheduled" in exc_info.value.detail


@pytest.mark.integration
@pytest.mark.asyncio
async def test_mark_job_completed_sets_final_amount_and_spend(db, make_booking, make_customer):
    customer = await make_customer()
    booking = await make_booking(status="in_progress", customer=customer, amount=10000)

    await booking_service.mark_job_completed(db, booking.id, final_amount=12500)

    assert booking.status == "completed"
    assert booking.amount == 12500
    assert customer.total_spent == 12500


@pytest.mark.integration
@pytest.mark.asyncio
async def test_failed_payment_then_retry_charges(db, make_booking):
    booking = await make_booking(status="completed", amount=9000)

    await booking_service.record_payment_outcome(
        db, booking.id, False, payment_intent_id="pi_1", error_message="card_declined"
    )
    assert booking.status == "payment_failed"

    await booking_service.record_payment_outcome(db, booking.id, True, payment_intent_id="pi_2")
    assert booking.status == "charged"

    result = await db.execute(
        select(PaymentIntent).where(PaymentIntent.booking_id == booking.id).order_by(PaymentIntent.created_at)
    )
    intents = {intent.stripe_payment_intent_id: intent for intent in result.scalars().all()}
    assert intents["pi_1"].status == "failed"
    assert intents["pi_1"].error_message == "card_declined"
    assert intents["pi_2"].status == "succeeded"
    assert intents["pi_2"].amount == 9000


@pytest.mark.integration
@pytest.mark.asyncio
async def test_payment_outcome_before_completion_rejected(db, make_booking):
    booking = await make_booking(status="scheduled")

    with pytest.raises(InvalidTransition):
        await booking_service.record_payment_outcome(db, booking.id, True)

    assert booking.status == "scheduled"
