"""Unified funnel view over bookings and pre-booking intake."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.domain.funnel import (
    FUNNEL_STAGES,
    OPERATIONAL_TO_FUNNEL,
    ROW_TYPES,
    derive_pre_booking_funnel_stage,
    map_operational_status_to_funnel,
)
from app.domain.pagination import clamp_limit, paginate_desc
from app.models.booking import Booking, BookingLifecycleEvent
from app.models.intake import BookingRequest, Quote, QuoteRequest
from app.models.user import User
from app.schemas.lifecycle import (
    BookingRow,
    FunnelStageResponse,
    PreBookingRow,
    TimelineEntry,
    TimelinePage,
    UnifiedRowsPage,
)
from app.utils.timeutils import ensure_utc

logger = logging.getLogger(__name__)


def _row_key(row: BookingRow | PreBookingRow) -> tuple:
    return ensure_utc(row.created_at), row.row_id


def _event_key(event: BookingLifecycleEvent) -> tuple:
    return ensure_utc(event.created_at), event.sequence


class FunnelService:
    """Read-only funnel stage, unified feed and booking timeline queries."""

    async def funnel_stage(
        self,
        db: AsyncSession,
        *,
        booking_id: UUID | None = None,
        request_id: UUID | None = None,
        quote_request_id: UUID | None = None,
    ) -> FunnelStageResponse:
        """Resolve the funnel stage of exactly one booking, request or quote request."""
        given = [value for value in (booking_id, request_id, quote_request_id) if value]
        if len(given) != 1:
            raise ValidationError("Exactly one of booking_id, request_id or quote_request_id is required")

        if booking_id:
            booking = await db.get(Booking, booking_id)
            if not booking:
                raise NotFoundError("Booking", str(booking_id))
            return await self._booking_stage(db, booking)

        if quote_request_id:
            quote_request = await db.get(QuoteRequest, quote_request_id)
            if not quote_request:
                raise NotFoundError("Quote request", str(quote_request_id))
            if quote_request.booking_request_id:
                return await self.funnel_stage(db, request_id=quote_request.booking_request_id)
            quotes = await self._latest_quotes(db, [quote_request.id])
            quote = quotes.get(quote_request.id)
            return FunnelStageResponse(
                quote_request_id=quote_request.id,
                funnel_stage=derive_pre_booking_funnel_stage(
                    quote_status=quote.status if quote else None,
                    quote_request_status=quote_request.request_status,
                ),
            )

        request = await db.get(BookingRequest, request_id)
        if not request:
            raise NotFoundError("Booking request", str(request_id))
        if request.booking_id:
            booking = await db.get(Booking, request.booking_id)
            if booking:
                return await self._booking_stage(db, booking)

        quote_request = (
            await db.get(QuoteRequest, request.quote_request_id) if request.quote_request_id else None
        )
        quotes = await self._latest_quotes(db, [request.quote_request_id] if request.quote_request_id else [])
        quote = quotes.get(request.quote_request_id)
        return FunnelStageResponse(
            booking_request_id=request.id,
            quote_request_id=request.quote_request_id,
            funnel_stage=derive_pre_booking_funnel_stage(
                request_status=request.status,
                quote_status=quote.status if quote else None,
                quote_request_status=quote_request.request_status if quote_request else None,
            ),
        )

    async def list_unified_rows(
        self,
        db: AsyncSession,
        *,
        row_type: str | None = None,
        funnel_stage: str | None = None,
        operational_status: str | None = None,
        search: str | None = None,
        service_date: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> UnifiedRowsPage:
        """One newest-first feed of bookings and unconverted booking requests.

        Args:
            db: Database session
            row_type: ``booking`` or ``pre_booking``
            funnel_stage: Keep rows in this funnel stage
            operational_status: Keep bookings in this status (excludes pre-bookings)
            search: Case-insensitive match on name, email and ids
            service_date: Keep bookings on this service date (excludes pre-bookings)
            limit: Page size
            cursor: ``next_cursor`` of the previous page

        Returns:
            UnifiedRowsPage with ``next_cursor`` None on the last page
        """
        if row_type and row_type not in ROW_TYPES:
            raise ValidationError(f"Unknown row type: {row_type}")
        if funnel_stage and funnel_stage not in FUNNEL_STAGES:
            raise ValidationError(f"Unknown funnel stage: {funnel_stage}")
        limit = clamp_limit(limit, settings.unified_feed_default_limit, settings.unified_feed_max_limit)
        scan = settings.unified_feed_scan_size

        rows: list[BookingRow | PreBookingRow] = []

        if row_type in (None, "booking"):
            stmt = select(Booking).order_by(Booking.created_at.desc()).limit(scan)
            if operational_status:
                stmt = stmt.where(Booking.status == operational_status)
            if service_date:
                stmt = stmt.where(Booking.service_date == service_date)
            if funnel_stage:
                statuses = [s for s, stage in OPERATIONAL_TO_FUNNEL.items() if stage == funnel_stage]
                stmt = stmt.where(Booking.status.in_(statuses))
            bookings = list((await db.execute(stmt)).scalars().all())

            request_ids = [b.booking_request_id for b in bookings if b.booking_request_id]
            quote_request_by_request: dict[UUID, UUID | None] = {}
            if request_ids:
                result = await db.execute(
                    select(BookingRequest.id, BookingRequest.quote_request_id).where(
                        BookingRequest.id.in_(request_ids)
                    )
                )
                quote_request_by_request = {row.id: row.quote_request_id for row in result}

            rows.extend(
                BookingRow(
                    booking_id=booking.id,
                    booking_request_id=booking.booking_request_id,
                    quote_request_id=quote_request_by_request.get(booking.booking_request_id),
                    customer_name=booking.customer_name,
                    email=booking.email,
                    operational_status=booking.status,
                    funnel_stage=map_operational_status_to_funnel(booking.status) or booking.status,
                    service_date=booking.service_date,
                    amount=booking.amount,
                    created_at=booking.created_at,
                )
                for booking in bookings
            )

        if row_type in (None, "pre_booking") and not operational_status and not service_date:
            result = await db.execute(
                select(BookingRequest)
                .where(BookingRequest.booking_id.is_(None))
                .order_by(BookingRequest.created_at.desc())
                .limit(scan)
            )
            requests = list(result.scalars().all())

            quote_request_ids = [r.quote_request_id for r in requests if r.quote_request_id]
            quotes = await self._latest_quotes(db, quote_request_ids)
            quote_requests: dict[UUID, QuoteRequest] = {}
            if quote_request_ids:
                result = await db.execute(
                    select(QuoteRequest).where(QuoteRequest.id.in_(quote_request_ids))
                )
                quote_requests = {qr.id: qr for qr in result.scalars().all()}

            for request in requests:
                quote = quotes.get(request.quote_request_id)
                quote_request = quote_requests.get(request.quote_request_id)
                stage = derive_pre_booking_funnel_stage(
                    request_status=request.status,
                    quote_status=quote.status if quote else None,
                    quote_request_status=quote_request.request_status if quote_request else None,
                )
                if funnel_stage and stage != funnel_stage:
                    continue
                rows.append(
                    PreBookingRow(
                        booking_request_id=request.id,
                        quote_request_id=request.quote_request_id,
                        customer_name=request.contact_details,
                        email=request.email,
                        request_status=request.status,
                        quote_status=quote.status if quote else None,
                        funnel_stage=stage,
                        created_at=request.created_at,
                    )
                )

        needle = (search or "").strip().lower()
        if needle:
            rows = [row for row in rows if needle in self._haystack(row)]

        page, next_cursor = paginate_desc(rows, _row_key, limit, cursor)
        return UnifiedRowsPage(rows=page, next_cursor=next_cursor)

    async def timeline(
        self,
        db: AsyncSession,
        booking_id: UUID,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> TimelinePage:
        """Lifecycle events of a booking, most recent first."""
        limit = clamp_limit(limit, settings.timeline_default_limit, settings.timeline_max_limit)

        result = await db.execute(
            select(BookingLifecycleEvent).where(BookingLifecycleEvent.booking_id == booking_id)
        )
        events = list(result.scalars().all())
        page, next_cursor = paginate_desc(events, _event_key, limit, cursor)

        actor_ids = {event.actor_user_id for event in page if event.actor_user_id}
        actors: dict[UUID, User] = {}
        if actor_ids:
            result = await db.execute(select(User).where(User.id.in_(actor_ids)))
            actors = {user.id: user for user in result.scalars().all()}

        entries = []
        for event in page:
            actor = actors.get(event.actor_user_id) if event.actor_user_id else None
            entries.append(
                TimelineEntry(
                    id=event.id,
                    booking_id=event.booking_id,
                    sequence=event.sequence,
                    event_type=event.event_type,
                    from_status=event.from_status,
                    to_status=event.to_status,
                    reason=event.reason,
                    source=event.source,
                    actor_user_id=event.actor_user_id,
                    actor_name=actor.display_name if actor else None,
                    from_service_date=event.from_service_date,
                    to_service_date=event.to_service_date,
                    metadata=event.event_metadata,
                    created_at=event.created_at,
                )
            )
        return TimelinePage(events=entries, next_cursor=next_cursor)

    async def _booking_stage(self, db: AsyncSession, booking: Booking) -> FunnelStageResponse:
        quote_request_id = None
        if booking.booking_request_id:
            request = await db.get(BookingRequest, booking.booking_request_id)
            quote_request_id = request.quote_request_id if request else None
        return FunnelStageResponse(
            booking_id=booking.id,
            booking_request_id=booking.booking_request_id,
            quote_request_id=quote_request_id,
            operational_status=booking.status,
            funnel_stage=map_operational_status_to_funnel(booking.status) or booking.status,
        )

    async def _latest_quotes(
        self, db: AsyncSession, quote_request_ids: list[UUID]
    ) -> dict[UUID, Quote]:
        if not quote_request_ids:
            return {}
        result = await db.execute(
            select(Quote)
            .where(Quote.quote_request_id.in_(quote_request_ids))
            .order_by(Quote.created_at.asc())
        )
        # Later quotes overwrite earlier ones
        return {quote.quote_request_id: quote for quote in result.scalars().all()}

    @staticmethod
    def _haystack(row: BookingRow | PreBookingRow) -> str:
        parts = [
            row.customer_name,
            row.email,
            str(row.booking_request_id) if row.booking_request_id else None,
            str(row.quote_request_id) if row.quote_request_id else None,
        ]
        if isinstance(row, BookingRow):
            parts.append(str(row.booking_id))
        return " ".join(part for part in parts if part).lower()


funnel_service = FunnelService()
