"""Booking lifecycle event log (append-only)."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.models.booking import BookingLifecycleEvent
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

EVENT_TYPES = frozenset(
    {
        "created",
        "transition",
        "override_transition",
        "legacy_transition",
        "rescheduled",
        "baseline",
    }
)

# Event types that record the status the booking holds after the event
STATUS_EVENT_TYPES = frozenset(
    {"created", "transition", "override_transition", "legacy_transition", "baseline"}
)


class LifecycleLogService:
    """Insert-only access to ``booking_lifecycle_events``."""

    async def append(
        self,
        db: AsyncSession,
        booking_id: UUID,
        event_type: str,
        source: str,
        *,
        to_status: str | None = None,
        from_status: str | None = None,
        reason: str | None = None,
        actor_user_id: UUID | None = None,
        from_service_date: str | None = None,
        to_service_date: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BookingLifecycleEvent:
        """Append one event for a booking.

        Args:
            db: Database session
            booking_id: Booking the event belongs to
            event_type: One of ``EVENT_TYPES``
            source: Free-text origin of the change (e.g. "bookings.cancel")
            to_status: Status after the event (required for status events)
            from_status: Status before the event
            reason: Human reason (required for override transitions)
            actor_user_id: User who triggered the change
            from_service_date: Service date before a reschedule
            to_service_date: Service date after a reschedule (required for reschedules)
            metadata: Opaque key/value bag

        Returns:
            The flushed event row
        """
        if event_type not in EVENT_TYPES:
            raise ValidationError(f"Unknown lifecycle event type: {event_type}")
        if not source:
            raise ValidationError("Lifecycle events require a source")
        if event_type in STATUS_EVENT_TYPES and not to_status:
            raise ValidationError(f"{event_type} events require to_status")
        if event_type == "override_transition" and not reason:
            raise ValidationError("override_transition events require a reason")
        if event_type == "rescheduled" and not to_service_date:
            raise ValidationError("rescheduled events require to_service_date")

        event = BookingLifecycleEvent(
            booking_id=booking_id,
            sequence=await self._next_sequence(db, booking_id),
            event_type=event_type,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            source=source,
            actor_user_id=actor_user_id,
            from_service_date=from_service_date,
            to_service_date=to_service_date,
            event_metadata=metadata,
            created_at=utcnow(),
        )
        db.add(event)
        await db.flush()

        logger.debug(
            f"Lifecycle event {event_type} #{event.sequence} for booking {booking_id} "
            f"({from_status} -> {to_status}, source={source})"
        )
        return event

    async def list_for_booking(
        self, db: AsyncSession, booking_id: UUID
    ) -> list[BookingLifecycleEvent]:
        """All events of a booking, oldest first."""
        result = await db.execute(
            select(BookingLifecycleEvent)
            .where(BookingLifecycleEvent.booking_id == booking_id)
            .order_by(BookingLifecycleEvent.sequence.asc())
        )
        return list(result.scalars().all())

    async def count_for_booking(self, db: AsyncSession, booking_id: UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(BookingLifecycleEvent)
            .where(BookingLifecycleEvent.booking_id == booking_id)
        )
        return result.scalar_one()

    async def _next_sequence(self, db: AsyncSession, booking_id: UUID) -> int:
        result = await db.execute(
            select(func.max(BookingLifecycleEvent.sequence)).where(
                BookingLifecycleEvent.booking_id == booking_id
            )
        )
        return (result.scalar_one_or_none() or 0) + 1


lifecycle_log = LifecycleLogService()
