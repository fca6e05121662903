"""Booking status engine.

Every booking status write goes through ``BookingStateMachine.transition`` so that the
edge check, the status patch, the lifecycle event and the customer stats refresh happen
in the caller's transaction. The schedule gate and the assignment rollup are built on
top of it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.core.exceptions import (
    ConcurrentModification,
    InvalidTransition,
    MissingActor,
    MissingReason,
    NotFoundError,
    OverrideSourceNotAllowed,
    ValidationError,
)
from app.domain.assignment_state import is_active_assignment
from app.domain.booking_state import (
    BACKFILL_SOURCE,
    OVERRIDE_ALLOWED_SOURCES,
    ROLLUP_LOCKED_STATUSES,
    SCHEDULE_LOCKED_STATUSES,
    affects_customer_stats,
    can_transition,
    is_booking_status,
    is_known_booking_status,
)
from app.models.booking import Booking, BookingAssignment, BookingLifecycleEvent
from app.services.customer_stats import customer_stats_service
from app.services.lifecycle_log import lifecycle_log
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

SCHEDULE_GATE_SOURCE = "bookings.recompute_scheduled_state"
ROLLUP_SOURCE = "bookings.sync_from_assignments"


@dataclass
class TransitionResult:
    """Outcome of a single transition request."""

    booking: Booking
    from_status: str
    to_status: str
    changed: bool
    event: BookingLifecycleEvent | None = None


@dataclass
class ScheduleGateState:
    """Schedule readiness snapshot of a booking."""

    booking_id: UUID
    status: str
    has_service_date: bool
    has_service_window: bool
    has_qualifying_assignment: bool
    assignment_count: int

    @property
    def eligible(self) -> bool:
        return self.has_service_date and self.has_qualifying_assignment


@dataclass
class ScheduleGateResult:
    changed: bool
    status: str
    reason: str  # status_locked, promoted_to_scheduled, demoted_to_card_saved, no_transition
    gate: ScheduleGateState | None = None


@dataclass
class RollupResult:
    changed: bool
    status: str
    reason: str  # status_locked, assignment_rollup_transitioned, no_transition
    assignment_count: int = 0
    active_assignment_count: int = 0
    any_in_progress: bool = False
    all_active_completed: bool = False
    events: list[BookingLifecycleEvent] = field(default_factory=list)


class BookingStateMachine:
    """Guarded booking status transitions and the engines derived from them."""

    async def lock_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        """Load a booking with ``SELECT ... FOR UPDATE``."""
        booking = await db.get(Booking, booking_id, with_for_update=True)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def transition(
        self,
        db: AsyncSession,
        booking_id: UUID,
        to_status: str,
        source: str,
        *,
        reason: str | None = None,
        actor_user_id: UUID | None = None,
        allow_override: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Move a booking to ``to_status``.

        Args:
            db: Database session
            booking_id: Booking to move
            to_status: Target status (never a retired value)
            source: Origin of the change, recorded on the event
            reason: Human reason, mandatory for overrides
            actor_user_id: User behind the change
            allow_override: Skip the edge table (allow-listed sources only)
            metadata: Extra data merged into the event metadata

        Returns:
            TransitionResult; ``changed`` is False when the booking already holds ``to_status``

        Raises:
            ValidationError: ``to_status`` is not a current status
            NotFoundError: Unknown booking
            MissingReason: Override without a reason
            OverrideSourceNotAllowed: Override from a source outside the allow-list
            MissingActor: Override without an acting user, outside the backfill
            InvalidTransition: Edge outside the table in strict mode
            ConcurrentModification: The booking row changed underneath us
        """
        if not is_booking_status(to_status):
            raise ValidationError(f"Unknown booking status: {to_status}")

        booking = await self.lock_booking(db, booking_id)
        from_status = booking.status

        if from_status == to_status:
            return TransitionResult(
                booking=booking, from_status=from_status, to_status=to_status, changed=False
            )

        if allow_override:
            if not reason or not reason.strip():
                raise MissingReason(from_status, to_status)
            if source not in OVERRIDE_ALLOWED_SOURCES:
                logger.warning(
                    f"Rejected override of booking {booking_id} from source {source} "
                    f"({from_status} -> {to_status})"
                )
                raise OverrideSourceNotAllowed(source, from_status, to_status)
            if source != BACKFILL_SOURCE and actor_user_id is None:
                raise MissingActor(from_status, to_status)

        strict = settings.booking_state_machine_strict
        valid = can_transition(from_status, to_status)
        known = is_known_booking_status(from_status)

        if not allow_override and not valid and strict:
            logger.warning(
                f"Rejected booking {booking_id} transition {from_status} -> {to_status} "
                f"(source={source})"
            )
            raise InvalidTransition(from_status, to_status, source)

        if allow_override:
            event_type = "override_transition"
        elif valid:
            event_type = "transition"
        else:
            event_type = "legacy_transition"

        now = utcnow()
        booking.status = to_status
        booking.updated_at = now
        if to_status == "cancelled":
            booking.cancelled_at = now
            booking.cancelled_by = actor_user_id
            booking.cancellation_reason = reason
        elif from_status == "cancelled":
            booking.cancelled_at = None
            booking.cancelled_by = None
            booking.cancellation_reason = None

        try:
            await db.flush()
        except StaleDataError as e:
            logger.warning(f"Concurrent write on booking {booking_id}: {e}")
            raise ConcurrentModification() from e

        event = await lifecycle_log.append(
            db,
            booking.id,
            event_type,
            source,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            actor_user_id=actor_user_id,
            metadata={
                **(metadata or {}),
                "strict_mode": strict,
                "valid_transition": valid,
                "known_status": known,
            },
        )

        if booking.customer_id and affects_customer_stats(from_status, to_status):
            await customer_stats_service.recompute(db, booking.customer_id)

        logger.info(
            f"Booking {booking_id} {from_status} -> {to_status} "
            f"({event_type}, source={source})"
        )
        return TransitionResult(
            booking=booking,
            from_status=from_status,
            to_status=to_status,
            changed=True,
            event=event,
        )

    async def schedule_gate_state(self, db: AsyncSession, booking_id: UUID) -> ScheduleGateState:
        booking = await db.get(Booking, booking_id)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return await self._gate_state(db, booking)

    async def recompute_scheduled_state(
        self,
        db: AsyncSession,
        booking_id: UUID,
        *,
        source: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> ScheduleGateResult:
        """Promote or demote a booking between ``card_saved`` and ``scheduled``."""
        booking = await self.lock_booking(db, booking_id)
        if booking.status in SCHEDULE_LOCKED_STATUSES:
            return ScheduleGateResult(changed=False, status=booking.status, reason="status_locked")

        gate = await self._gate_state(db, booking)
        source = source or SCHEDULE_GATE_SOURCE
        metadata = {
            "has_service_date": gate.has_service_date,
            "has_service_window": gate.has_service_window,
            "has_qualifying_assignment": gate.has_qualifying_assignment,
            "assignment_count": gate.assignment_count,
        }

        if booking.status == "card_saved" and gate.eligible:
            await self.transition(
                db,
                booking_id,
                "scheduled",
                source,
                reason="schedule_requirements_met",
                actor_user_id=actor_user_id,
                metadata=metadata,
            )
            return ScheduleGateResult(
                changed=True, status="scheduled", reason="promoted_to_scheduled", gate=gate
            )

        if booking.status == "scheduled" and not gate.eligible:
            await self.transition(
                db,
                booking_id,
                "card_saved",
                source,
                reason="schedule_requirements_missing",
                actor_user_id=actor_user_id,
                metadata=metadata,
            )
            return ScheduleGateResult(
                changed=True, status="card_saved", reason="demoted_to_card_saved", gate=gate
            )

        return ScheduleGateResult(
            changed=False, status=booking.status, reason="no_transition", gate=gate
        )

    async def sync_from_assignments(
        self,
        db: AsyncSession,
        booking_id: UUID,
        *,
        source: str | None = None,
        actor_user_id: UUID | None = None,
        trigger_assignment_id: UUID | None = None,
    ) -> RollupResult:
        """Derive the booking status from its assignments."""
        booking = await self.lock_booking(db, booking_id)
        if booking.status in ROLLUP_LOCKED_STATUSES:
            return RollupResult(changed=False, status=booking.status, reason="status_locked")

        assignments = await self._assignments(db, booking_id)
        active = [a for a in assignments if is_active_assignment(a.status)]
        any_in_progress = any(a.status == "in_progress" for a in active)
        all_active_completed = bool(active) and all(a.status == "completed" for a in active)

        result = RollupResult(
            changed=False,
            status=booking.status,
            reason="no_transition",
            assignment_count=len(assignments),
            active_assignment_count=len(active),
            any_in_progress=any_in_progress,
            all_active_completed=all_active_completed,
        )
        source = source or ROLLUP_SOURCE
        metadata = {
            "assignment_count": len(assignments),
            "active_assignment_count": len(active),
            "any_in_progress": any_in_progress,
            "all_active_completed": all_active_completed,
            "trigger_assignment_id": str(trigger_assignment_id) if trigger_assignment_id else None,
        }

        if result.status == "scheduled" and (any_in_progress or all_active_completed):
            transition = await self.transition(
                db,
                booking_id,
                "in_progress",
                source,
                reason="assignment_started" if any_in_progress else "assignment_completion_rollup",
                actor_user_id=actor_user_id,
                metadata=metadata,
            )
            if transition.event:
                result.events.append(transition.event)
            result.changed = result.changed or transition.changed
            result.status = "in_progress"

        if result.status == "in_progress" and all_active_completed:
            transition = await self.transition(
                db,
                booking_id,
                "completed",
                source,
                reason="all_active_assignments_completed",
                actor_user_id=actor_user_id,
                metadata=metadata,
            )
            if transition.event:
                result.events.append(transition.event)
            result.changed = result.changed or transition.changed
            result.status = "completed"

        if result.changed:
            result.reason = "assignment_rollup_transitioned"
        return result

    async def _gate_state(self, db: AsyncSession, booking: Booking) -> ScheduleGateState:
        assignments = await self._assignments(db, booking.id)
        return ScheduleGateState(
            booking_id=booking.id,
            status=booking.status,
            has_service_date=bool(booking.service_date and booking.service_date.strip()),
            has_service_window=bool(booking.service_window_start and booking.service_window_end),
            has_qualifying_assignment=any(is_active_assignment(a.status) for a in assignments),
            assignment_count=len(assignments),
        )

    async def _assignments(self, db: AsyncSession, booking_id: UUID) -> list[BookingAssignment]:
        result = await db.execute(
            select(BookingAssignment)
            .where(BookingAssignment.booking_id == booking_id)
            .order_by(BookingAssignment.assigned_at)
        )
        return list(result.scalars().all())


booking_state_machine = BookingStateMachine()
