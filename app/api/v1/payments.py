"""Payment outcome endpoint (called by the payment processor integration)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_db
from app.models.user import User
from app.schemas.booking import PaymentOutcome, TransitionResponse
from app.services.booking_service import booking_service

router = APIRouter()


@router.post("/outcome", response_model=TransitionResponse)
async def record_payment_outcome(
    data: PaymentOutcome,
    service_account: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TransitionResponse:
    """Move a completed booking to charged or payment_failed."""
    result = await booking_service.record_payment_outcome(
        db,
        data.booking_id,
        data.succeeded,
        payment_intent_id=data.payment_intent_id,
        amount=data.amount,
        error_message=data.error_message,
    )
    return TransitionResponse.model_validate(result)
