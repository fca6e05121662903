"""
Tests for the booking and assignment transition tables.
"""
import pytest

from app.core.exceptions import InvalidAssignmentTransition, InvalidTransition
from app.domain.assignment_state import (
    ASSIGNMENT_STATUSES,
    ASSIGNMENT_TRANSITIONS,
    assert_assignment_transition,
    is_active_assignment,
)
from app.domain.booking_state import (
    BOOKING_STATUSES,
    BOOKING_TRANSITIONS,
    affects_customer_stats,
    assert_booking_transition,
    can_transition,
    is_booking_status,
    is_known_booking_status,
)

EXPECTED_EDGES = {
    ("pending_card", "card_saved"),
    ("pending_card", "cancelled"),
    ("card_saved", "scheduled"),
    ("card_saved", "cancelled"),
    ("scheduled", "in_progress"),
    ("scheduled", "card_saved"),
    ("scheduled", "cancelled"),
    ("in_progress", "completed"),
    ("completed", "charged"),
    ("completed", "payment_failed"),
    ("payment_failed", "charged"),
}


@pytest.mark.unit
def test_transition_table_has_exactly_the_documented_edges():
    """Every status has a row and only the documented edges exist."""
    assert set(BOOKING_TRANSITIONS) == set(BOOKING_STATUSES)

    edges = {(current, target) for current, targets in BOOKING_TRANSITIONS.items() for target in targets}
    assert edges == EXPECTED_EDGES


@pytest.mark.unit
@pytest.mark.parametrize("current", BOOKING_STATUSES)
@pytest.mark.parametrize("target", BOOKING_STATUSES)
def test_can_transition_matches_table(current, target):
    """can_transition is a single lookup against the table."""
    assert can_transition(current, target) == ((current, target) in EXPECTED_EDGES)


@pytest.mark.unit
def test_terminal_statuses_have_no_exits():
    assert BOOKING_TRANSITIONS["charged"] == set()
    assert BOOKING_TRANSITIONS["cancelled"] == set()


@pytest.mark.unit
def test_legacy_failed_only_reclassifies_to_payment_failed():
    """The retired status is readable but only moves to payment_failed."""
    assert is_known_booking_status("failed")
    assert not is_booking_status("failed")
    assert can_transition("failed", "payment_failed")
    assert not can_transition("failed", "charged")
    assert not can_transition("completed", "failed")


@pytest.mark.unit
def test_unknown_status_has_no_edges():
    assert not is_known_booking_status("archived")
    assert not can_transition("archived", "cancelled")


@pytest.mark.unit
def test_assert_booking_transition_carries_state():
    """Rejections carry the current and requested status for diagnostics."""
    with pytest.raises(InvalidTransition) as exc_info:
        assert_booking_transition("pending_card", "charged", "bookings.test")

    exc = exc_info.value
    assert exc.status_code == 409
    assert exc.current == "pending_card"
    assert exc.requested == "charged"
    assert exc.source == "bookings.test"
    assert "pending_card" in exc.detail and "charged" in exc.detail


@pytest.mark.unit
@pytest.mark.parametrize(
    "from_status,to_status,expected",
    [
        ("in_progress", "completed", True),
        ("completed", "charged", True),
        ("charged", "cancelled", True),
        ("scheduled", "cancelled", True),
        ("pending_card", "card_saved", False),
        ("card_saved", "scheduled", False),
    ],
)
def test_affects_customer_stats(from_status, to_status, expected):
    assert affects_customer_stats(from_status, to_status) is expected


@pytest.mark.unit
def test_assignment_table_covers_every_status():
    assert set(ASSIGNMENT_TRANSITIONS) == set(ASSIGNMENT_STATUSES)
    for terminal in ("declined", "completed", "cancelled"):
        assert ASSIGNMENT_TRANSITIONS[terminal] == set()


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        ("pending", "accepted"),
        ("pending", "declined"),
        ("accepted", "confirmed"),
        ("confirmed", "in_progress"),
        ("in_progress", "completed"),
        ("confirmed", "cancelled"),
    ],
)
def test_assignment_allowed_edges(current, target):
    assert_assignment_transition(current, target)


@pytest.mark.unit
def test_assignment_rejects_skipping_confirmation():
    """Clock-in straight from accepted is not allowed."""
    with pytest.raises(InvalidAssignmentTransition) as exc_info:
        assert_assignment_transition("accepted", "in_progress")

    assert exc_info.value.detail == "transition accepted -> in_progress is not allowed"


@pytest.mark.unit
def test_in_progress_assignment_cannot_be_cancelled():
    with pytest.raises(InvalidAssignmentTransition):
        assert_assignment_transition("in_progress", "cancelled")


@pytest.mark.unit
def test_declined_and_cancelled_are_inactive():
    assert not is_active_assignment("declined")
    assert not is_active_assignment("cancelled")
    assert is_active_assignment("pending")
    assert is_active_assignment("completed")
