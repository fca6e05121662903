"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_staff, get_db
from app.models.booking import Booking
from app.models.user import User
from app.schemas.booking import (
    BookingCancel,
    BookingComplete,
    BookingCreate,
    BookingResponse,
    CardOnFile,
    RescheduleRequest,
    ScheduleUpdate,
    TransitionResponse,
)
from app.schemas.lifecycle import FunnelStageResponse, TimelinePage
from app.services.booking_service import booking_service
from app.services.funnel_service import funnel_service

router = APIRouter()


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Create a booking awaiting a card on file."""
    return await booking_service.create_booking(
        db,
        source="bookings.create",
        actor_user_id=current_user.id,
        **data.model_dump(),
    )


@router.post(
    "/from-request/{request_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking_from_request(
    request_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Convert a booking request into a booking (idempotent)."""
    return await booking_service.create_from_request(db, request_id, actor_user_id=current_user.id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_service.get_booking(db, booking_id)


@router.post("/{booking_id}/card-on-file", response_model=BookingResponse)
async def mark_card_on_file(
    booking_id: UUID,
    data: CardOnFile,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_service.mark_card_on_file(db, booking_id, data.stripe_customer_id)


@router.patch("/{booking_id}/schedule", response_model=BookingResponse)
async def update_schedule(
    booking_id: UUID,
    data: ScheduleUpdate,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Patch schedule fields; the booking is promoted or demoted by the schedule gate."""
    return await booking_service.update_schedule(
        db, booking_id, actor_user_id=current_user.id, **data.model_dump()
    )


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: UUID,
    data: RescheduleRequest,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    return await booking_service.reschedule(
        db,
        booking_id,
        data.new_service_date,
        data.reason,
        new_window_start=data.new_window_start,
        new_window_end=data.new_window_end,
        actor_user_id=current_user.id,
    )


@router.post("/{booking_id}/cancel", response_model=TransitionResponse)
async def cancel_booking(
    booking_id: UUID,
    data: BookingCancel,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TransitionResponse:
    result = await booking_service.cancel(db, booking_id, data.reason, actor_user_id=current_user.id)
    return TransitionResponse.model_validate(result)


@router.post("/{booking_id}/complete", response_model=TransitionResponse)
async def complete_booking(
    booking_id: UUID,
    data: BookingComplete,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TransitionResponse:
    """Mark an in-progress job completed, optionally fixing the final amount."""
    result = await booking_service.mark_job_completed(
        db, booking_id, data.final_amount, actor_user_id=current_user.id
    )
    return TransitionResponse.model_validate(result)


@router.get("/{booking_id}/funnel-stage", response_model=FunnelStageResponse)
async def get_booking_funnel_stage(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> FunnelStageResponse:
    return await funnel_service.funnel_stage(db, booking_id=booking_id)


@router.get("/{booking_id}/timeline", response_model=TimelinePage)
async def get_booking_timeline(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int | None = Query(None, ge=1),
    cursor: str | None = None,
) -> TimelinePage:
    """Lifecycle events, most recent first."""
    return await funnel_service.timeline(db, booking_id, limit=limit, cursor=cursor)
