"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-02-12

Creates the tables of the booking lifecycle engine:
- Users and customers
- Intake (quote requests, quotes, booking requests)
- Bookings, assignments and checklists
- Append-only booking lifecycle events
- Payment intents
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create all database tables."""

    # ==================== USERS ====================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="member"),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        *_timestamps(),
    )

    # ==================== CUSTOMERS ====================
    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, index=True),
        sa.Column("full_name", sa.String(200)),
        sa.Column("phone", sa.String(30)),
        sa.Column("status", sa.String(20), server_default="lead"),
        sa.Column("total_bookings", sa.Integer, server_default="0"),
        sa.Column("total_spent", sa.Integer, server_default="0"),
        sa.Column("last_booking_date", sa.Date),
        *_timestamps(),
    )

    # ==================== INTAKE ====================
    op.create_table(
        "quote_requests",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), index=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("service_type", sa.String(50)),
        sa.Column("request_status", sa.String(20), server_default="requested"),
        sa.Column("booking_request_id", sa.Uuid, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "quotes",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("quote_request_id", sa.Uuid, sa.ForeignKey("quote_requests.id"), nullable=False, index=True),
        sa.Column("booking_request_id", sa.Uuid, index=True),
        sa.Column("status", sa.String(20), server_default="draft"),
        sa.Column("total_cents", sa.Integer),
        *_timestamps(),
    )

    op.create_table(
        "booking_requests",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), index=True),
        sa.Column("contact_details", sa.String(200)),
        sa.Column("phone_number", sa.String(30)),
        sa.Column("additional_notes", sa.Text),
        sa.Column("status", sa.String(20), server_default="requested"),
        sa.Column("quote_request_id", sa.Uuid, sa.ForeignKey("quote_requests.id"), index=True),
        sa.Column("customer_id", sa.Uuid, sa.ForeignKey("customers.id")),
        sa.Column("booking_id", sa.Uuid, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, index=True),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("customer_id", sa.Uuid, sa.ForeignKey("customers.id"), index=True),
        sa.Column("booking_request_id", sa.Uuid, sa.ForeignKey("booking_requests.id"), index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending_card", index=True),
        sa.Column("service_type", sa.String(50)),
        sa.Column("service_date", sa.String(32)),
        sa.Column("service_window_start", sa.String(5)),
        sa.Column("service_window_end", sa.String(5)),
        sa.Column("estimated_duration_minutes", sa.Integer),
        sa.Column("notes", sa.Text),
        sa.Column("amount", sa.Integer),
        sa.Column("stripe_customer_id", sa.String(100)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.Uuid, sa.ForeignKey("users.id")),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )

    op.create_table(
        "booking_assignments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("booking_id", sa.Uuid, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("cleaner_id", sa.Uuid, index=True),
        sa.Column("crew_id", sa.Uuid, index=True),
        sa.Column("role", sa.String(20), server_default="primary"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("assigned_by", sa.Uuid, sa.ForeignKey("users.id")),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime(timezone=True)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("clocked_in_at", sa.DateTime(timezone=True)),
        sa.Column("clocked_out_at", sa.DateTime(timezone=True)),
        sa.Column("actual_duration_minutes", sa.Integer),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.Uuid, sa.ForeignKey("users.id")),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("cleaner_notes", sa.Text),
        *_timestamps(),
    )

    op.create_table(
        "booking_checklist_items",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "booking_assignment_id",
            sa.Uuid,
            sa.ForeignKey("booking_assignments.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("booking_id", sa.Uuid, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer, server_default="0"),
        sa.Column("is_completed", sa.Boolean, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    # ==================== LIFECYCLE LOG ====================
    op.create_table(
        "booking_lifecycle_events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("booking_id", sa.Uuid, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False, index=True),
        sa.Column("from_status", sa.String(20)),
        sa.Column("to_status", sa.String(20)),
        sa.Column("reason", sa.Text),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column("actor_user_id", sa.Uuid, sa.ForeignKey("users.id"), index=True),
        sa.Column("from_service_date", sa.String(32)),
        sa.Column("to_service_date", sa.String(32)),
        sa.Column("metadata", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.UniqueConstraint("booking_id", "sequence", name="uq_lifecycle_event_booking_sequence"),
    )

    # Append-only at the database level as well as in the ORM
    op.execute(
        """
        CREATE OR REPLACE FUNCTION reject_lifecycle_event_change() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'booking_lifecycle_events is append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER booking_lifecycle_events_append_only
        BEFORE UPDATE OR DELETE ON booking_lifecycle_events
        FOR EACH ROW EXECUTE FUNCTION reject_lifecycle_event_change();
        """
    )

    # ==================== PAYMENTS ====================
    op.create_table(
        "payment_intents",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("booking_id", sa.Uuid, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("stripe_payment_intent_id", sa.String(100), unique=True),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), server_default="usd"),
        sa.Column("status", sa.String(30), nullable=False, index=True),
        sa.Column("error_message", sa.Text),
        *_timestamps(),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("payment_intents")
    op.execute("DROP TRIGGER IF EXISTS booking_lifecycle_events_append_only ON booking_lifecycle_events")
    op.execute("DROP FUNCTION IF EXISTS reject_lifecycle_event_change()")
    op.drop_table("booking_lifecycle_events")
    op.drop_table("booking_checklist_items")
    op.drop_table("booking_assignments")
    op.drop_table("bookings")
    op.drop_table("booking_requests")
    op.drop_table("quotes")
    op.drop_table("quote_requests")
    op.drop_table("customers")
    op.drop_table("users")
