"""Booking flows: creation, card on file, scheduling, cancellation, completion."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CancellationNotAllowed, NotFoundError, ValidationError
from app.core.permissions import require_admin_role
from app.domain.booking_state import ADMIN_OVERRIDE_SOURCE, CANCELLABLE_STATUSES
from app.models.booking import Booking
from app.models.customer import Customer
from app.models.intake import BookingRequest, QuoteRequest
from app.models.payment import PaymentIntent
from app.models.user import User
from app.services.customer_stats import customer_stats_service
from app.services.lifecycle_log import lifecycle_log
from app.services.state_machine import TransitionResult, booking_state_machine
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class BookingService:
    """Service for booking operations outside the assignment workflow."""

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        booking = await db.get(Booking, booking_id)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def create_booking(
        self,
        db: AsyncSession,
        *,
        email: str,
        source: str,
        customer_name: str | None = None,
        customer_id: UUID | None = None,
        service_type: str | None = None,
        service_date: str | None = None,
        service_window_start: str | None = None,
        service_window_end: str | None = None,
        amount: int | None = None,
        notes: str | None = None,
        booking_request_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> Booking:
        """Insert a ``pending_card`` booking and its ``created`` event.

        The booking is linked to a customer (found or created by email) and the
        customer's counters are recomputed.
        """
        email = email.strip()
        if not email:
            raise ValidationError("Booking email is required")
        if amount is not None and amount < 0:
            raise ValidationError("Booking amount cannot be negative")

        if customer_id:
            if not await db.get(Customer, customer_id):
                raise NotFoundError("Customer", str(customer_id))
        else:
            customer = await self._ensure_customer(db, email, customer_name)
            customer_id = customer.id

        now = utcnow()
        booking = Booking(
            email=email,
            customer_name=customer_name,
            customer_id=customer_id,
            booking_request_id=booking_request_id,
            status="pending_card",
            service_type=service_type,
            service_date=service_date,
            service_window_start=service_window_start,
            service_window_end=service_window_end,
            amount=amount,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        db.add(booking)
        await db.flush()

        await lifecycle_log.append(
            db,
            booking.id,
            "created",
            source,
            to_status="pending_card",
            actor_user_id=actor_user_id,
        )

        if booking_request_id:
            request = await db.get(BookingRequest, booking_request_id)
            if request:
                request.booking_id = booking.id
                request.customer_id = customer_id
                await db.flush()

        await customer_stats_service.recompute(db, customer_id)

        logger.info(f"Booking created: {booking.id} for {email} (source={source})")
        return booking

    async def create_from_request(
        self,
        db: AsyncSession,
        request_id: UUID,
        actor_user_id: UUID | None = None,
    ) -> Booking:
        """Convert a confirmed pre-booking request into a booking.

        Returns the existing booking when the request was already converted.
        """
        request = await db.get(BookingRequest, request_id, with_for_update=True)
        if not request:
            raise NotFoundError("Booking request", str(request_id))

        if request.booking_id:
            existing = await db.get(Booking, request.booking_id)
            if existing:
                return existing

        if not request.email:
            raise ValidationError("Booking request is missing email")

        booking = await self.create_booking(
            db,
            email=request.email,
            source="bookings.create_from_request",
            customer_name=request.contact_details,
            customer_id=request.customer_id,
            notes=request.additional_notes,
            booking_request_id=request.id,
            actor_user_id=actor_user_id,
        )

        if request.quote_request_id:
            quote_request = await db.get(QuoteRequest, request.quote_request_id)
            if quote_request and not quote_request.booking_request_id:
                quote_request.booking_request_id = request.id
                await db.flush()

        return booking

    async def mark_card_on_file(
        self, db: AsyncSession, booking_id: UUID, stripe_customer_id: str
    ) -> Booking:
        booking = await booking_state_machine.lock_booking(db, booking_id)
        booking.stripe_customer_id = stripe_customer_id
        await db.flush()

        if booking.status == "pending_card":
            await booking_state_machine.transition(
                db, booking_id, "card_saved", "bookings.mark_card_on_file"
            )
        await booking_state_machine.recompute_scheduled_state(
            db, booking_id, source="bookings.mark_card_on_file"
        )
        return booking

    async def update_schedule(
        self,
        db: AsyncSession,
        booking_id: UUID,
        *,
        service_date: str | None = None,
        service_window_start: str | None = None,
        service_window_end: str | None = None,
        estimated_duration_minutes: int | None = None,
        actor_user_id: UUID | None = None,
    ) -> Booking:
        """Patch the given schedule fields, then re-run the schedule gate."""
        booking = await booking_state_machine.lock_booking(db, booking_id)
        if service_date is not None:
            booking.service_date = service_date
        if service_window_start is not None:
            booking.service_window_start = service_window_start
        if service_window_end is not None:
            booking.service_window_end = service_window_end
        if estimated_duration_minutes is not None:
            booking.estimated_duration_minutes = estimated_duration_minutes
        booking.updated_at = utcnow()
        await db.flush()

        await booking_state_machine.recompute_scheduled_state(
            db, booking_id, source="bookings.update_schedule", actor_user_id=actor_user_id
        )
        return booking

    async def reschedule(
        self,
        db: AsyncSession,
        booking_id: UUID,
        new_service_date: str,
        reason: str,
        *,
        new_window_start: str | None = None,
        new_window_end: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> Booking:
        """Move a booking to a new date and record a ``rescheduled`` event.

        The status is only touched by the schedule gate that runs afterwards.
        """
        if not new_service_date or not new_service_date.strip():
            raise ValidationError("A new service date is required")
        if not reason or not reason.strip():
            raise ValidationError("A reschedule reason is required")

        booking = await booking_state_machine.lock_booking(db, booking_id)
        previous = {
            "date": booking.service_date,
            "window_start": booking.service_window_start,
            "window_end": booking.service_window_end,
        }

        booking.service_date = new_service_date
        booking.service_window_start = new_window_start
        booking.service_window_end = new_window_end
        booking.updated_at = utcnow()
        await db.flush()

        await lifecycle_log.append(
            db,
            booking_id,
            "rescheduled",
            "bookings.reschedule",
            from_status=booking.status,
            to_status=booking.status,
            reason=reason,
            actor_user_id=actor_user_id,
            from_service_date=previous["date"],
            to_service_date=new_service_date,
            metadata={
                "from_window_start": previous["window_start"],
                "from_window_end": previous["window_end"],
                "to_window_start": new_window_start,
                "to_window_end": new_window_end,
            },
        )

        if booking.customer_id:
            await customer_stats_service.recompute(db, booking.customer_id)

        await booking_state_machine.recompute_scheduled_state(
            db, booking_id, source="bookings.reschedule", actor_user_id=actor_user_id
        )

        logger.info(f"Booking {booking_id} rescheduled {previous['date']} -> {new_service_date}")
        return booking

    async def cancel(
        self,
        db: AsyncSession,
        booking_id: UUID,
        reason: str,
        actor_user_id: UUID | None = None,
    ) -> TransitionResult:
        booking = await booking_state_machine.lock_booking(db, booking_id)
        if booking.status not in CANCELLABLE_STATUSES:
            raise CancellationNotAllowed(booking.status)

        return await booking_state_machine.transition(
            db,
            booking_id,
            "cancelled",
            "bookings.cancel",
            reason=reason,
            actor_user_id=actor_user_id,
        )

    async def admin_override_status(
        self,
        db: AsyncSession,
        booking_id: UUID,
        to_status: str,
        reason: str,
        actor: User,
    ) -> TransitionResult:
        """Force a status outside the edge table (admin-equivalent roles only)."""
        require_admin_role(actor.role)

        result = await booking_state_machine.transition(
            db,
            booking_id,
            to_status,
            ADMIN_OVERRIDE_SOURCE,
            reason=reason,
            actor_user_id=actor.id,
            allow_override=True,
        )
        if result.changed:
            logger.warning(
                f"Admin override by {actor.email}: booking {booking_id} "
                f"{result.from_status} -> {result.to_status} ({reason})"
            )
        return result

    async def mark_job_completed(
        self,
        db: AsyncSession,
        booking_id: UUID,
        final_amount: int | None = None,
        actor_user_id: UUID | None = None,
    ) -> TransitionResult:
        booking = await booking_state_machine.lock_booking(db, booking_id)
        if booking.status != "in_progress":
            raise ValidationError(
                f"Booking must be in_progress before completion (current: {booking.status})"
            )
        if final_amount is not None:
            if final_amount < 0:
                raise ValidationError("Booking amount cannot be negative")
            booking.amount = final_amount
            await db.flush()

        return await booking_state_machine.transition(
            db,
            booking_id,
            "completed",
            "bookings.mark_job_completed",
            actor_user_id=actor_user_id,
        )

    async def record_payment_outcome(
        self,
        db: AsyncSession,
        booking_id: UUID,
        succeeded: bool,
        *,
        payment_intent_id: str | None = None,
        amount: int | None = None,
        error_message: str | None = None,
    ) -> TransitionResult:
        """Apply a payment processor result: ``charged`` or ``payment_failed``."""
        booking = await booking_state_machine.lock_booking(db, booking_id)

        if payment_intent_id:
            result = await db.execute(
                select(PaymentIntent).where(
                    PaymentIntent.stripe_payment_intent_id == payment_intent_id
                )
            )
            intent = result.scalar_one_or_none()
            if not intent:
                intent = PaymentIntent(
                    booking_id=booking_id,
                    stripe_payment_intent_id=payment_intent_id,
                    amount=amount if amount is not None else booking.amount or 0,
                )
                db.add(intent)
            intent.status = "succeeded" if succeeded else "failed"
            intent.error_message = error_message
            await db.flush()

        return await booking_state_machine.transition(
            db,
            booking_id,
            "charged" if succeeded else "payment_failed",
            "payments.record_outcome",
            reason=error_message,
            metadata={"payment_intent_id": payment_intent_id},
        )

    async def _ensure_customer(
        self, db: AsyncSession, email: str, full_name: str | None
    ) -> Customer:
        normalized = email.strip().lower()
        result = await db.execute(
            select(Customer)
            .where(func.lower(Customer.email) == normalized)
            .order_by(Customer.created_at)
            .limit(1)
        )
        customer = result.scalar_one_or_none()
        if customer:
            if customer.status == "lead":
                customer.status = "active"
            if not customer.full_name and full_name:
                customer.full_name = full_name
            await db.flush()
            return customer

        customer = Customer(email=email, full_name=full_name, status="active")
        db.add(customer)
        await db.flush()
        logger.info(f"Customer created for {email}")
        return customer


booking_service = BookingService()
