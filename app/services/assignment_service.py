"""Cleaner assignment workflow.

Every assignment status change re-runs the schedule gate and the assignment rollup
for the parent booking in the same transaction.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ChecklistIncomplete, NotFoundError, ValidationError
from app.domain.assignment_state import ASSIGNMENT_RESPONSES, assert_assignment_transition
from app.domain.booking_state import ROLLUP_LOCKED_STATUSES
from app.models.booking import BookingAssignment, BookingChecklistItem
from app.services.state_machine import booking_state_machine
from app.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class AssignmentService:
    """Service for assigning cleaners and tracking their progress on a booking."""

    async def get_assignment(self, db: AsyncSession, assignment_id: UUID) -> BookingAssignment:
        assignment = await db.get(BookingAssignment, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment", str(assignment_id))
        return assignment

    async def list_for_booking(self, db: AsyncSession, booking_id: UUID) -> list[BookingAssignment]:
        result = await db.execute(
            select(BookingAssignment)
            .where(BookingAssignment.booking_id == booking_id)
            .order_by(BookingAssignment.assigned_at)
        )
        return list(result.scalars().all())

    async def assign(
        self,
        db: AsyncSession,
        booking_id: UUID,
        *,
        cleaner_id: UUID | None = None,
        crew_id: UUID | None = None,
        role: str = "primary",
        assigned_by: UUID | None = None,
        checklist: list[str] | None = None,
    ) -> BookingAssignment:
        """Create a pending assignment and its checklist.

        Raises:
            ValidationError: Neither a cleaner nor a crew given, or the booking is closed
            NotFoundError: Unknown booking
        """
        if not cleaner_id and not crew_id:
            raise ValidationError("An assignment needs a cleaner or a crew")

        booking = await booking_state_machine.lock_booking(db, booking_id)
        if booking.status in ROLLUP_LOCKED_STATUSES:
            raise ValidationError(f"Cannot assign cleaners to a {booking.status} booking")

        assignment = BookingAssignment(
            booking_id=booking_id,
            cleaner_id=cleaner_id,
            crew_id=crew_id,
            role=role,
            status="pending",
            assigned_by=assigned_by,
            assigned_at=utcnow(),
        )
        db.add(assignment)
        await db.flush()

        for index, label in enumerate(checklist or []):
            db.add(
                BookingChecklistItem(
                    booking_assignment_id=assignment.id,
                    booking_id=booking_id,
                    label=label,
                    sort_order=index,
                )
            )
        await db.flush()

        logger.info(f"Assignment {assignment.id} created for booking {booking_id}")

        await self._after_status_change(db, assignment, "assignments.assign", assigned_by)
        return assignment

    async def respond(
        self,
        db: AsyncSession,
        assignment_id: UUID,
        response: str,
        actor_user_id: UUID | None = None,
    ) -> BookingAssignment:
        """Record the cleaner's accept/decline answer."""
        if response not in ASSIGNMENT_RESPONSES:
            raise ValidationError(f"Response must be one of: {', '.join(sorted(ASSIGNMENT_RESPONSES))}")

        assignment = await self._lock(db, assignment_id)
        assert_assignment_transition(assignment.status, response)

        assignment.status = response
        assignment.responded_at = utcnow()
        await db.flush()

        await self._after_status_change(db, assignment, "assignments.respond", actor_user_id)
        return assignment

    async def confirm(
        self, db: AsyncSession, assignment_id: UUID, actor_user_id: UUID | None = None
    ) -> BookingAssignment:
        assignment = await self._lock(db, assignment_id)
        assert_assignment_transition(assignment.status, "confirmed")

        assignment.status = "confirmed"
        assignment.confirmed_at = utcnow()
        await db.flush()

        await self._after_status_change(db, assignment, "assignments.confirm", actor_user_id)
        return assignment

    async def clock_in(
        self, db: AsyncSession, assignment_id: UUID, actor_user_id: UUID | None = None
    ) -> BookingAssignment:
        assignment = await self._lock(db, assignment_id)
        assert_assignment_transition(assignment.status, "in_progress")

        assignment.status = "in_progress"
        assignment.clocked_in_at = utcnow()
        await db.flush()

        logger.info(f"Assignment {assignment_id} clocked in")
        await self._after_status_change(db, assignment, "assignments.clock_in", actor_user_id)
        return assignment

    async def clock_out(
        self, db: AsyncSession, assignment_id: UUID, actor_user_id: UUID | None = None
    ) -> BookingAssignment:
        """Finish an assignment; every checklist item must be done first."""
        assignment = await self._lock(db, assignment_id)
        assert_assignment_transition(assignment.status, "completed")

        remaining = await self._incomplete_checklist_count(db, assignment_id)
        if remaining:
            logger.warning(
                f"Clock-out blocked for assignment {assignment_id}: "
                f"{remaining} checklist item(s) open"
            )
            raise ChecklistIncomplete(str(assignment_id), remaining)

        now = utcnow()
        assignment.status = "completed"
        assignment.clocked_out_at = now
        if assignment.clocked_in_at:
            elapsed = now - ensure_utc(assignment.clocked_in_at)
            assignment.actual_duration_minutes = max(0, round(elapsed.total_seconds() / 60))
        await db.flush()

        logger.info(f"Assignment {assignment_id} clocked out")
        await self._after_status_change(db, assignment, "assignments.clock_out", actor_user_id)
        return assignment

    async def cancel(
        self,
        db: AsyncSession,
        assignment_id: UUID,
        cancelled_by: UUID | None = None,
        reason: str | None = None,
    ) -> BookingAssignment:
        assignment = await self._lock(db, assignment_id)
        assert_assignment_transition(assignment.status, "cancelled")

        assignment.status = "cancelled"
        assignment.cancelled_at = utcnow()
        assignment.cancelled_by = cancelled_by
        assignment.cancellation_reason = reason
        await db.flush()

        await self._after_status_change(db, assignment, "assignments.cancel", cancelled_by)
        return assignment

    async def toggle_checklist_item(
        self, db: AsyncSession, item_id: UUID, is_completed: bool
    ) -> BookingChecklistItem:
        item = await db.get(BookingChecklistItem, item_id)
        if not item:
            raise NotFoundError("Checklist item", str(item_id))

        item.is_completed = is_completed
        item.completed_at = utcnow() if is_completed else None
        await db.flush()
        return item

    async def _lock(self, db: AsyncSession, assignment_id: UUID) -> BookingAssignment:
        # Parent booking first so sibling assignments serialize on the same row
        assignment = await self.get_assignment(db, assignment_id)
        await booking_state_machine.lock_booking(db, assignment.booking_id)
        await db.refresh(assignment, with_for_update=True)
        return assignment

    async def _incomplete_checklist_count(self, db: AsyncSession, assignment_id: UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(BookingChecklistItem)
            .where(
                BookingChecklistItem.booking_assignment_id == assignment_id,
                BookingChecklistItem.is_completed.is_(False),
            )
        )
        return result.scalar_one()

    async def _after_status_change(
        self,
        db: AsyncSession,
        assignment: BookingAssignment,
        source: str,
        actor_user_id: UUID | None,
    ) -> None:
        await booking_state_machine.recompute_scheduled_state(
            db, assignment.booking_id, source=source, actor_user_id=actor_user_id
        )
        await booking_state_machine.sync_from_assignments(
            db,
            assignment.booking_id,
            source=source,
            actor_user_id=actor_user_id,
            trigger_assignment_id=assignment.id,
        )


assignment_service = AssignmentService()
