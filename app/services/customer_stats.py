"""Customer booking counters, always recomputed from scratch."""

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.domain.booking_state import SPEND_STATUSES
from app.models.booking import Booking
from app.models.customer import Customer
from app.utils.timeutils import parse_service_date, utcnow

logger = logging.getLogger(__name__)


@dataclass
class CustomerStats:
    """Recomputed counters for one customer."""

    customer_id: UUID
    total_bookings: int
    total_spent: int
    last_booking_date: date | None


class CustomerStatsService:
    """Recompute ``total_bookings``, ``total_spent`` and ``last_booking_date``.

    A full recompute rather than a running delta: override transitions can move a
    booking in or out of the spend set in either direction, and recomputing keeps
    the counters correct regardless of the path taken.
    """

    async def recompute(
        self,
        db: AsyncSession,
        customer_id: UUID,
        dry_run: bool = False,
    ) -> CustomerStats:
        customer = await db.get(Customer, customer_id)
        if not customer:
            raise NotFoundError("Customer", str(customer_id))

        result = await db.execute(select(Booking).where(Booking.customer_id == customer_id))
        bookings = list(result.scalars().all())

        total_spent = sum(
            booking.amount or 0 for booking in bookings if booking.status in SPEND_STATUSES
        )
        service_dates = [
            parsed
            for parsed in (parse_service_date(booking.service_date) for booking in bookings)
            if parsed is not None
        ]

        stats = CustomerStats(
            customer_id=customer_id,
            total_bookings=len(bookings),
            total_spent=total_spent,
            last_booking_date=max(service_dates) if service_dates else None,
        )

        if not dry_run:
            customer.total_bookings = stats.total_bookings
            customer.total_spent = stats.total_spent
            customer.last_booking_date = stats.last_booking_date
            customer.updated_at = utcnow()
            await db.flush()

        return stats

    async def recompute_all(self, db: AsyncSession, dry_run: bool = False) -> list[CustomerStats]:
        """Recompute every customer (repair sweep)."""
        result = await db.execute(select(Customer.id).order_by(Customer.created_at))
        customer_ids = list(result.scalars().all())

        stats = [await self.recompute(db, customer_id, dry_run=dry_run) for customer_id in customer_ids]
        logger.info(f"Recomputed stats for {len(stats)} customers (dry_run={dry_run})")
        return stats


customer_stats_service = CustomerStatsService()
