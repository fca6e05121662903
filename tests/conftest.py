"""
Shared fixtures: in-memory SQLite database, sessions and record factories.
"""
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.immutability import register_immutability_enforcement
from app.database import Base
from app.models import (
    Booking,
    BookingAssignment,
    BookingChecklistItem,
    BookingRequest,
    Customer,
    PaymentIntent,
    Quote,
    QuoteRequest,
    User,
)
from app.utils.timeutils import utcnow


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests; rolled back afterwards."""
    register_immutability_enforcement()
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def strict_mode(monkeypatch):
    """Toggle the booking state machine strictness for one test."""
    from app.config import settings

    def _set(enabled: bool) -> None:
        monkeypatch.setattr(settings, "booking_state_machine_strict", enabled)

    return _set


# ==================== FACTORIES ====================


@pytest.fixture
def make_user(db: AsyncSession):
    async def _make(
        email: str = "dispatch@example.com",
        role: str = "dispatcher",
        first_name: str | None = "Dana",
        last_name: str | None = "Reyes",
    ) -> User:
        user = User(email=email, role=role, first_name=first_name, last_name=last_name)
        db.add(user)
        await db.flush()
        return user

    return _make


@pytest.fixture
def make_customer(db: AsyncSession):
    async def _make(email: str = "casey@example.com", full_name: str | None = "Casey Fox") -> Customer:
        customer = Customer(email=email, full_name=full_name, status="active")
        db.add(customer)
        await db.flush()
        return customer

    return _make


@pytest.fixture
def make_booking(db: AsyncSession):
    """Insert a booking row directly in a given status (bypasses the state machine)."""

    async def _make(
        status: str = "pending_card",
        customer: Customer | None = None,
        email: str = "casey@example.com",
        amount: int | None = None,
        service_date: str | None = None,
        created_at: datetime | None = None,
        **fields,
    ) -> Booking:
        now = created_at or utcnow()
        booking = Booking(
            email=email,
            status=status,
            customer_id=customer.id if customer else None,
            amount=amount,
            service_date=service_date,
            created_at=now,
            updated_at=now,
            **fields,
        )
        db.add(booking)
        await db.flush()
        return booking

    return _make


@pytest.fixture
def make_assignment(db: AsyncSession):
    """Insert an assignment row directly in a given status."""

    async def _make(
        booking: Booking,
        status: str = "pending",
        checklist: tuple[str, ...] = (),
        **fields,
    ) -> BookingAssignment:
        assignment = BookingAssignment(
            booking_id=booking.id,
            cleaner_id=fields.pop("cleaner_id", uuid.uuid4()),
            status=status,
            assigned_at=utcnow(),
            **fields,
        )
        db.add(assignment)
        await db.flush()
        for index, label in enumerate(checklist):
            db.add(
                BookingChecklistItem(
                    booking_assignment_id=assignment.id,
                    booking_id=booking.id,
                    label=label,
                    sort_order=index,
                )
            )
        await db.flush()
        return assignment

    return _make


@pytest.fixture
def make_payment_intent(db: AsyncSession):
    async def _make(booking: Booking, status: str, amount: int = 15000) -> PaymentIntent:
        intent = PaymentIntent(booking_id=booking.id, amount=amount, status=status)
        db.add(intent)
        await db.flush()
        return intent

    return _make


@pytest.fixture
def make_booking_request(db: AsyncSession):
    """Insert a booking request, optionally behind a quote request and quote."""

    async def _make(
        email: str = "jordan@example.com",
        contact_details: str | None = "Jordan Lee",
        status: str = "requested",
        quote_request_status: str | None = None,
        quote_status: str | None = None,
        created_at: datetime | None = None,
    ) -> BookingRequest:
        quote_request = None
        if quote_request_status is not None or quote_status is not None:
            quote_request = QuoteRequest(
                email=email, request_status=quote_request_status or "requested"
            )
            db.add(quote_request)
            await db.flush()
            if quote_status is not None:
                db.add(Quote(quote_request_id=quote_request.id, status=quote_status, total_cents=18000))
                await db.flush()

        now = created_at or utcnow()
        request = BookingRequest(
            email=email,
            contact_details=contact_details,
            status=status,
            quote_request_id=quote_request.id if quote_request else None,
            created_at=now,
            updated_at=now,
        )
        db.add(request)
        await db.flush()
        return request

    return _make
