"""Booking state machine.

States: pending_card → card_saved → scheduled → in_progress → completed → charged,
with payment_failed and cancelled side exits. ``failed`` is a retired value that may
still be stored; it is never written and may only be reclassified to payment_failed.
"""

from app.core.exceptions import InvalidTransition

BOOKING_STATUSES: tuple[str, ...] = (
    "pending_card",
    "card_saved",
    "scheduled",
    "in_progress",
    "completed",
    "payment_failed",
    "charged",
    "cancelled",
)

LEGACY_BOOKING_STATUSES: tuple[str, ...] = ("failed",)

BOOKING_TRANSITIONS: dict[str, set[str]] = {
    "pending_card": {"card_saved", "cancelled"},
    "card_saved": {"scheduled", "cancelled"},
    "scheduled": {"in_progress", "card_saved", "cancelled"},
    "in_progress": {"completed"},
    "completed": {"charged", "payment_failed"},
    "payment_failed": {"charged"},
    "charged": set(),
    "cancelled": set(),
}

LEGACY_TRANSITIONS: dict[str, set[str]] = {
    "failed": {"payment_failed"},
}

# Statuses whose amount counts toward a customer's total spend
SPEND_STATUSES = frozenset({"completed", "charged"})

CANCELLABLE_STATUSES = frozenset({"pending_card", "card_saved", "scheduled"})

# The schedule gate never moves a booking out of these
SCHEDULE_LOCKED_STATUSES = frozenset(
    {"cancelled", "in_progress", "completed", "payment_failed", "charged"}
)

# The assignment rollup never moves a booking out of these
ROLLUP_LOCKED_STATUSES = frozenset({"cancelled", "completed", "payment_failed", "charged"})

ADMIN_OVERRIDE_SOURCE = "bookings.admin_override_status"
BACKFILL_SOURCE = "backfill_and_validate"
OVERRIDE_ALLOWED_SOURCES = frozenset({ADMIN_OVERRIDE_SOURCE, BACKFILL_SOURCE})


def is_booking_status(status: str) -> bool:
    """Whether ``status`` may be written going forward."""
    return status in BOOKING_STATUSES


def is_known_booking_status(status: str) -> bool:
    """Whether ``status`` may be found in storage, including retired values."""
    return status in BOOKING_STATUSES or status in LEGACY_BOOKING_STATUSES


def can_transition(current: str, target: str) -> bool:
    """Single lookup against the transition table (legacy edges included)."""
    if current in LEGACY_TRANSITIONS:
        return target in LEGACY_TRANSITIONS[current]
    return target in BOOKING_TRANSITIONS.get(current, set())


def assert_booking_transition(current: str, target: str, source: str | None = None) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target, source)


def affects_customer_stats(from_status: str, to_status: str) -> bool:
    """Whether an edge can move spend totals or booking accounting."""
    touched = {from_status, to_status}
    return bool(touched & SPEND_STATUSES) or "cancelled" in touched
