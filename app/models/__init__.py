"""Database models."""

from app.models.booking import (
    Booking,
    BookingAssignment,
    BookingChecklistItem,
    BookingLifecycleEvent,
)
from app.models.customer import Customer
from app.models.intake import BookingRequest, Quote, QuoteRequest
from app.models.payment import PaymentIntent
from app.models.user import User

__all__ = [
    # User
    "User",
    # Customer
    "Customer",
    # Booking
    "Booking",
    "BookingAssignment",
    "BookingChecklistItem",
    "BookingLifecycleEvent",
    # Intake
    "QuoteRequest",
    "Quote",
    "BookingRequest",
    # Payment
    "PaymentIntent",
]
