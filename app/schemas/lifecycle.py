"""Unified funnel feed, timeline and lifecycle admin schemas."""

from datetime import date, datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BookingRow(BaseModel):
    """A booking in the unified feed."""

    row_type: Literal["booking"] = "booking"
    booking_id: UUID
    booking_request_id: UUID | None = None
    quote_request_id: UUID | None = None
    customer_name: str | None = None
    email: str | None = None
    operational_status: str
    funnel_stage: str
    service_date: str | None = None
    amount: int | None = None
    created_at: datetime

    @property
    def row_id(self) -> str:
        return f"booking:{self.booking_id}"


class PreBookingRow(BaseModel):
    """An intake that has not produced a booking yet."""

    row_type: Literal["pre_booking"] = "pre_booking"
    booking_request_id: UUID
    quote_request_id: UUID | None = None
    customer_name: str | None = None
    email: str | None = None
    request_status: str | None = None
    quote_status: str | None = None
    funnel_stage: str
    created_at: datetime

    @property
    def row_id(self) -> str:
        return f"pre_booking:{self.booking_request_id}"


UnifiedRow = Annotated[BookingRow | PreBookingRow, Field(discriminator="row_type")]


class UnifiedRowsPage(BaseModel):
    rows: list[UnifiedRow]
    next_cursor: str | None = None


class FunnelStageResponse(BaseModel):
    """Funnel position of a booking or pre-booking."""

    booking_id: UUID | None = None
    booking_request_id: UUID | None = None
    quote_request_id: UUID | None = None
    operational_status: str | None = None
    funnel_stage: str


class TimelineEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    sequence: int
    event_type: str
    from_status: str | None = None
    to_status: str | None = None
    reason: str | None = None
    source: str
    actor_user_id: UUID | None = None
    actor_name: str | None = None
    from_service_date: str | None = None
    to_service_date: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime


class TimelinePage(BaseModel):
    events: list[TimelineEntry]
    next_cursor: str | None = None


class BackfillRequest(BaseModel):
    dry_run: bool = True
    append_baseline_events: bool = False
    limit: int | None = Field(None, ge=1)


class BackfillReportResponse(BaseModel):
    dry_run: bool
    strict_mode: bool
    scanned: int
    converted_legacy_failed: int
    baseline_events_created: int
    invalid_status_count: int
    unresolved_legacy_failed_count: int
    schedule_gate_violation_count: int
    invalid_statuses: list[dict[str, str]]
    unresolved_legacy_failed: list[str]
    schedule_gate_violations: list[str]
    errors: list[dict[str, str]]
    ready_for_strict_mode: bool


class CustomerStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID
    total_bookings: int
    total_spent: int
    last_booking_date: date | None
