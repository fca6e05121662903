"""Append-only enforcement for the booking lifecycle log using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an append-only record."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Lifecycle events are append-only."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def register_immutability_enforcement() -> None:
    """Register mapper listeners that reject UPDATE and DELETE of lifecycle events.

    Must be called after models are imported but before session use. Safe to call
    more than once.
    """
    global _registered
    if _registered:
        return

    from app.models.booking import BookingLifecycleEvent

    @event.listens_for(BookingLifecycleEvent, "before_update")
    def prevent_event_update(mapper, connection, target):
        _log_immutability_violation("BookingLifecycleEvent", "UPDATE", str(target.id))
        raise ImmutabilityViolationError("BookingLifecycleEvent", "UPDATE", str(target.id))

    @event.listens_for(BookingLifecycleEvent, "before_delete")
    def prevent_event_delete(mapper, connection, target):
        _log_immutability_violation("BookingLifecycleEvent", "DELETE", str(target.id))
        raise ImmutabilityViolationError("BookingLifecycleEvent", "DELETE", str(target.id))

    _registered = True
    logger.info("Immutability enforcement registered for booking lifecycle events")
