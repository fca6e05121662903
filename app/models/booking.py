"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base
from app.utils.timeutils import utcnow

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.user import User


class Booking(Base):
    """A scheduled cleaning engagement."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_name: Mapped[str | None] = mapped_column(String(200))
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("customers.id"), index=True
    )
    booking_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("booking_requests.id"), index=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending_card", index=True
    )  # pending_card, card_saved, scheduled, in_progress, completed, payment_failed, charged, cancelled

    # Service
    service_type: Mapped[str | None] = mapped_column(String(50))
    service_date: Mapped[str | None] = mapped_column(String(32))  # ISO date
    service_window_start: Mapped[str | None] = mapped_column(String(5))  # HH:MM
    service_window_end: Mapped[str | None] = mapped_column(String(5))
    estimated_duration_minutes: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)

    # Payment (minor currency units)
    amount: Mapped[int | None] = mapped_column(Integer)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(100))

    # Cancellation
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Optimistic concurrency: a stale status write fails with StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    customer: Mapped["Customer | None"] = relationship("Customer", back_populates="bookings")
    assignments: Mapped[list["BookingAssignment"]] = relationship(
        "BookingAssignment", back_populates="booking"
    )


class BookingAssignment(Base):
    """A cleaner's or crew's claim on a booking."""

    __tablename__ = "booking_assignments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    cleaner_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)
    crew_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)
    role: Mapped[str] = mapped_column(String(20), default="primary")  # primary, secondary
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, accepted, declined, confirmed, in_progress, completed, cancelled

    assigned_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    clocked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    clocked_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_duration_minutes: Mapped[int | None] = mapped_column(Integer)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cleaner_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="assignments")
    checklist_items: Mapped[list["BookingChecklistItem"]] = relationship(
        "BookingChecklistItem", back_populates="assignment"
    )


class BookingChecklistItem(Base):
    """A task an assignment must finish before clock-out."""

    __tablename__ = "booking_checklist_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_assignment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("booking_assignments.id"), nullable=False, index=True
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    assignment: Mapped["BookingAssignment"] = relationship(
        "BookingAssignment", back_populates="checklist_items"
    )


class BookingLifecycleEvent(Base):
    """Append-only audit record of a booking status change, reschedule or override."""

    __tablename__ = "booking_lifecycle_events"
    __table_args__ = (
        UniqueConstraint("booking_id", "sequence", name="uq_lifecycle_event_booking_sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # per-booking ordinal

    event_type: Mapped[str] = mapped_column(
        String(30), nullable=False, index=True
    )  # created, transition, override_transition, legacy_transition, rescheduled, baseline
    from_status: Mapped[str | None] = mapped_column(String(20))
    to_status: Mapped[str | None] = mapped_column(String(20))
    reason: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True
    )
    from_service_date: Mapped[str | None] = mapped_column(String(32))
    to_service_date: Mapped[str | None] = mapped_column(String(32))
    event_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON().with_variant(JSONB(), "postgresql")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    actor: Mapped["User | None"] = relationship("User")
