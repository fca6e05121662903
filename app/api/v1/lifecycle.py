"""Unified lifecycle feed endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_staff, get_db
from app.models.user import User
from app.schemas.lifecycle import FunnelStageResponse, UnifiedRowsPage
from app.services.funnel_service import funnel_service

router = APIRouter()


@router.get("/rows", response_model=UnifiedRowsPage)
async def list_unified_rows(
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
    row_type: str | None = None,
    funnel_stage: str | None = None,
    operational_status: str | None = None,
    search: str | None = Query(None, max_length=200),
    service_date: str | None = None,
    limit: int | None = Query(None, ge=1),
    cursor: str | None = None,
) -> UnifiedRowsPage:
    """Bookings and unconverted requests in one newest-first feed."""
    return await funnel_service.list_unified_rows(
        db,
        row_type=row_type,
        funnel_stage=funnel_stage,
        operational_status=operational_status,
        search=search,
        service_date=service_date,
        limit=limit,
        cursor=cursor,
    )


@router.get("/funnel-stage", response_model=FunnelStageResponse)
async def get_funnel_stage(
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
    booking_id: UUID | None = None,
    request_id: UUID | None = None,
    quote_request_id: UUID | None = None,
) -> FunnelStageResponse:
    """Funnel stage of exactly one booking, booking request or quote request."""
    return await funnel_service.funnel_stage(
        db, booking_id=booking_id, request_id=request_id, quote_request_id=quote_request_id
    )
