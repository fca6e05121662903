"""Pydantic schemas for API validation."""

from app.schemas.assignment import (
    AssignmentCancel,
    AssignmentCreate,
    AssignmentRespond,
    AssignmentResponse,
    ChecklistItemResponse,
    ChecklistToggle,
)
from app.schemas.booking import (
    BookingCancel,
    BookingComplete,
    BookingCreate,
    BookingResponse,
    CardOnFile,
    LifecycleEventResponse,
    PaymentOutcome,
    RescheduleRequest,
    ScheduleUpdate,
    StatusOverride,
    TransitionResponse,
)
from app.schemas.lifecycle import (
    BackfillReportResponse,
    BackfillRequest,
    BookingRow,
    CustomerStatsResponse,
    FunnelStageResponse,
    PreBookingRow,
    TimelineEntry,
    TimelinePage,
    UnifiedRow,
    UnifiedRowsPage,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingResponse",
    "BookingCancel",
    "BookingComplete",
    "CardOnFile",
    "ScheduleUpdate",
    "RescheduleRequest",
    "StatusOverride",
    "PaymentOutcome",
    "LifecycleEventResponse",
    "TransitionResponse",
    # Assignment
    "AssignmentCreate",
    "AssignmentRespond",
    "AssignmentCancel",
    "AssignmentResponse",
    "ChecklistToggle",
    "ChecklistItemResponse",
    # Lifecycle
    "BookingRow",
    "PreBookingRow",
    "UnifiedRow",
    "UnifiedRowsPage",
    "FunnelStageResponse",
    "TimelineEntry",
    "TimelinePage",
    "BackfillRequest",
    "BackfillReportResponse",
    "CustomerStatsResponse",
]
