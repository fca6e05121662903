"""Booking assignment state machine.

States: pending → accepted → confirmed → in_progress → completed, with declined as
the only alternative to accepting and cancelled reachable before clock-in.
"""

from app.core.exceptions import InvalidAssignmentTransition

ASSIGNMENT_STATUSES: tuple[str, ...] = (
    "pending",
    "accepted",
    "declined",
    "confirmed",
    "in_progress",
    "completed",
    "cancelled",
)

ASSIGNMENT_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"accepted", "declined", "cancelled"},
    "accepted": {"confirmed", "cancelled"},
    "confirmed": {"in_progress", "cancelled"},
    "in_progress": {"completed"},
    "declined": set(),
    "completed": set(),
    "cancelled": set(),
}

# Assignments in these states no longer hold a claim on the booking
INACTIVE_ASSIGNMENT_STATUSES = frozenset({"declined", "cancelled"})

ASSIGNMENT_RESPONSES = frozenset({"accepted", "declined"})


def assert_assignment_transition(current: str, target: str) -> None:
    allowed = ASSIGNMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidAssignmentTransition(current, target)


def is_active_assignment(status: str) -> bool:
    return status not in INACTIVE_ASSIGNMENT_STATUSES
