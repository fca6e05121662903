"""Admin lifecycle endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user, get_current_admin, get_db
from app.models.user import User
from app.schemas.booking import StatusOverride, TransitionResponse
from app.schemas.lifecycle import BackfillReportResponse, BackfillRequest, CustomerStatsResponse
from app.services.backfill_service import backfill_service
from app.services.booking_service import booking_service
from app.services.customer_stats import customer_stats_service

router = APIRouter()


# ============ STATUS OVERRIDE ============


@router.post("/bookings/{booking_id}/override-status", response_model=TransitionResponse)
async def override_booking_status(
    booking_id: UUID,
    data: StatusOverride,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TransitionResponse:
    """Force a booking status outside the normal edges. A reason is mandatory."""
    result = await booking_service.admin_override_status(
        db, booking_id, data.to_status, data.reason, current_user
    )
    return TransitionResponse.model_validate(result)


# ============ BACKFILL ============


@router.post("/lifecycle/backfill", response_model=BackfillReportResponse)
async def run_backfill(
    data: BackfillRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Reclassify legacy statuses and report strict-mode readiness (dry run by default)."""
    report = await backfill_service.backfill_and_validate(
        db,
        dry_run=data.dry_run,
        append_baseline_events=data.append_baseline_events,
        limit=data.limit,
    )
    return report.to_dict()


# ============ CUSTOMER STATS ============


@router.post("/customers/{customer_id}/recompute-stats", response_model=CustomerStatsResponse)
async def recompute_customer_stats(
    customer_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dry_run: bool = False,
) -> CustomerStatsResponse:
    stats = await customer_stats_service.recompute(db, customer_id, dry_run=dry_run)
    return CustomerStatsResponse.model_validate(stats)
