"""Assignment-related Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AssignmentCreate(BaseModel):
    """Schema for assigning a cleaner or crew to a booking."""

    booking_id: UUID
    cleaner_id: UUID | None = None
    crew_id: UUID | None = None
    role: Literal["primary", "secondary"] = "primary"
    checklist: list[str] = Field(default_factory=list, max_length=100)

    @model_validator(mode="after")
    def require_assignee(self) -> "AssignmentCreate":
        if not self.cleaner_id and not self.crew_id:
            raise ValueError("cleaner_id or crew_id is required")
        return self


class AssignmentRespond(BaseModel):
    response: Literal["accepted", "declined"]


class AssignmentCancel(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class ChecklistToggle(BaseModel):
    is_completed: bool


class ChecklistItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_assignment_id: UUID
    booking_id: UUID
    label: str
    sort_order: int
    is_completed: bool
    completed_at: datetime | None


class AssignmentResponse(BaseModel):
    """Schema for assignment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    cleaner_id: UUID | None
    crew_id: UUID | None
    role: str
    status: str

    assigned_by: UUID | None
    assigned_at: datetime
    responded_at: datetime | None
    confirmed_at: datetime | None
    clocked_in_at: datetime | None
    clocked_out_at: datetime | None
    actual_duration_minutes: int | None

    cancelled_at: datetime | None
    cancellation_reason: str | None
