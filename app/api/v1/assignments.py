"""Cleaner assignment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_staff, get_db
from app.models.booking import BookingAssignment, BookingChecklistItem
from app.models.user import User
from app.schemas.assignment import (
    AssignmentCancel,
    AssignmentCreate,
    AssignmentRespond,
    AssignmentResponse,
    ChecklistItemResponse,
    ChecklistToggle,
)
from app.services.assignment_service import assignment_service

router = APIRouter()


@router.post("/", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def assign_cleaner(
    data: AssignmentCreate,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingAssignment:
    """Assign a cleaner or crew; may promote the booking to scheduled."""
    return await assignment_service.assign(
        db,
        data.booking_id,
        cleaner_id=data.cleaner_id,
        crew_id=data.crew_id,
        role=data.role,
        assigned_by=current_user.id,
        checklist=data.checklist,
    )


@router.get("/booking/{booking_id}", response_model=list[AssignmentResponse])
async def list_booking_assignments(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[BookingAssignment]:
    return await assignment_service.list_for_booking(db, booking_id)


@router.post("/{assignment_id}/respond", response_model=AssignmentResponse)
async def respond_to_assignment(
    assignment_id: UUID,
    data: AssignmentRespond,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingAssignment:
    return await assignment_service.respond(
        db, assignment_id, data.response, actor_user_id=current_user.id
    )


@router.post("/{assignment_id}/confirm", response_model=AssignmentResponse)
async def confirm_assignment(
    assignment_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingAssignment:
    return await assignment_service.confirm(db, assignment_id, actor_user_id=current_user.id)


@router.post("/{assignment_id}/clock-in", response_model=AssignmentResponse)
async def clock_in(
    assignment_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingAssignment:
    return await assignment_service.clock_in(db, assignment_id, actor_user_id=current_user.id)


@router.post("/{assignment_id}/clock-out", response_model=AssignmentResponse)
async def clock_out(
    assignment_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingAssignment:
    """Finish an assignment; rejected while checklist items remain open."""
    return await assignment_service.clock_out(db, assignment_id, actor_user_id=current_user.id)


@router.post("/{assignment_id}/cancel", response_model=AssignmentResponse)
async def cancel_assignment(
    assignment_id: UUID,
    data: AssignmentCancel,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingAssignment:
    return await assignment_service.cancel(
        db, assignment_id, cancelled_by=current_user.id, reason=data.reason
    )


@router.patch("/checklist/{item_id}", response_model=ChecklistItemResponse)
async def toggle_checklist_item(
    item_id: UUID,
    data: ChecklistToggle,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingChecklistItem:
    return await assignment_service.toggle_checklist_item(db, item_id, data.is_completed)
