"""Booking-related Pydantic schemas."""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.utils.timeutils import parse_service_date

WINDOW_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_service_date(value: str | None) -> str | None:
    if value is not None and parse_service_date(value) is None:
        raise ValueError("service_date must be an ISO date")
    return value


def _check_window(value: str | None) -> str | None:
    if value is not None and not WINDOW_PATTERN.match(value):
        raise ValueError("service window must be HH:MM")
    return value


class BookingCreate(BaseModel):
    """Schema for creating a booking directly (staff entry)."""

    email: EmailStr
    customer_name: str | None = Field(None, max_length=200)
    customer_id: UUID | None = None
    service_type: str | None = Field(None, max_length=50)
    service_date: str | None = None
    service_window_start: str | None = None
    service_window_end: str | None = None
    amount: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=2000)

    @field_validator("service_date")
    @classmethod
    def validate_service_date(cls, v: str | None) -> str | None:
        return _check_service_date(v)

    @field_validator("service_window_start", "service_window_end")
    @classmethod
    def validate_window(cls, v: str | None) -> str | None:
        return _check_window(v)


class CardOnFile(BaseModel):
    """Payment method saved for a booking."""

    stripe_customer_id: str = Field(..., min_length=1, max_length=100)


class ScheduleUpdate(BaseModel):
    """Partial update of a booking's schedule fields."""

    service_date: str | None = None
    service_window_start: str | None = None
    service_window_end: str | None = None
    estimated_duration_minutes: int | None = Field(None, ge=1, le=24 * 60)

    @field_validator("service_date")
    @classmethod
    def validate_service_date(cls, v: str | None) -> str | None:
        return _check_service_date(v)

    @field_validator("service_window_start", "service_window_end")
    @classmethod
    def validate_window(cls, v: str | None) -> str | None:
        return _check_window(v)


class RescheduleRequest(BaseModel):
    new_service_date: str
    new_window_start: str | None = None
    new_window_end: str | None = None
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("new_service_date")
    @classmethod
    def validate_service_date(cls, v: str) -> str:
        return _check_service_date(v)

    @field_validator("new_window_start", "new_window_end")
    @classmethod
    def validate_window(cls, v: str | None) -> str | None:
        return _check_window(v)


class BookingCancel(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class BookingComplete(BaseModel):
    final_amount: int | None = Field(None, ge=0)


class StatusOverride(BaseModel):
    """Admin override of a booking status."""

    to_status: str
    reason: str = Field(..., min_length=1, max_length=1000)


class PaymentOutcome(BaseModel):
    """Result reported by the payment processor for a booking charge."""

    booking_id: UUID
    succeeded: bool
    payment_intent_id: str | None = Field(None, max_length=100)
    amount: int | None = Field(None, ge=0)
    error_message: str | None = Field(None, max_length=1000)


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    customer_name: str | None
    customer_id: UUID | None
    booking_request_id: UUID | None
    status: str

    service_type: str | None
    service_date: str | None
    service_window_start: str | None
    service_window_end: str | None
    estimated_duration_minutes: int | None
    notes: str | None
    amount: int | None

    cancelled_at: datetime | None
    cancelled_by: UUID | None
    cancellation_reason: str | None

    created_at: datetime
    updated_at: datetime


class LifecycleEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    sequence: int
    event_type: str
    from_status: str | None
    to_status: str | None
    reason: str | None
    source: str
    actor_user_id: UUID | None
    from_service_date: str | None
    to_service_date: str | None
    metadata: dict[str, Any] | None = Field(None, validation_alias="event_metadata")
    created_at: datetime


class TransitionResponse(BaseModel):
    """Outcome of a status-changing booking operation."""

    model_config = ConfigDict(from_attributes=True)

    booking: BookingResponse
    from_status: str
    to_status: str
    changed: bool
    event: LifecycleEventResponse | None = None
