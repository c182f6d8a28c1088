# backend/alembic/versions/001_slot_recovery_schema.py
"""Slot recovery schema - shops, customers, appointments, slot offers, message log

Revision ID: 001_slot_recovery_schema
Revises:
Create Date: 2026-01-12 00:00:00.000000

Creates every table the slot recovery backend reads and writes, including
the partial unique index that allows at most one sent offer per opening.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_slot_recovery_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ulid_pk() -> sa.Column:
    return sa.Column("id", sa.String(26), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create slot recovery schema."""
    print("Creating slot recovery schema...")

    op.create_table(
        "shops",
        _ulid_pk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "shop_policies",
        _ulid_pk(),
        sa.Column(
            "shop_id",
            sa.String(26),
            sa.ForeignKey("shops.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("currency", sa.String(3), nullable=False, server_default="usd"),
        sa.Column("payment_mode", sa.String(20), nullable=False, server_default="deposit"),
        sa.Column("deposit_amount_cents", sa.Integer(), nullable=True),
        sa.Column("risk_payment_mode", sa.String(20), nullable=True),
        sa.Column("risk_deposit_amount_cents", sa.Integer(), nullable=True),
        sa.Column("top_deposit_waived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("top_deposit_amount_cents", sa.Integer(), nullable=True),
        sa.Column("exclude_risk_from_offers", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "exclude_high_no_show_from_offers", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("exclude_top_from_offers", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancel_cutoff_minutes", sa.Integer(), nullable=False, server_default="1440"),
        sa.Column("refund_before_cutoff", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("resolution_grace_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "customers",
        _ulid_pk(),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("shop_id", "phone", name="uq_customers_shop_phone"),
    )
    op.create_index("ix_customers_shop_id", "customers", ["shop_id"])

    op.create_table(
        "customer_contact_prefs",
        sa.Column(
            "customer_id",
            sa.String(26),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("sms_opt_in", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_customer_contact_prefs_sms_opt_in", "customer_contact_prefs", ["sms_opt_in"]
    )

    op.create_table(
        "customer_scores",
        _ulid_pk(),
        sa.Column(
            "customer_id", sa.String(26), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("window_days", sa.Integer(), nullable=False, server_default="180"),
        sa.Column("stats", sa.JSON(), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("customer_id", "shop_id", name="uq_customer_scores_customer_shop"),
    )

    op.create_table(
        "customer_no_show_stats",
        _ulid_pk(),
        sa.Column(
            "customer_id", sa.String(26), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total_appointments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("no_show_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("late_cancel_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("on_time_cancel_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("no_show_score", sa.Integer(), nullable=True),
        sa.Column("no_show_risk", sa.String(10), nullable=True),
        sa.Column("last_no_show_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "customer_id", "shop_id", name="uq_customer_no_show_stats_customer_shop"
        ),
    )

    op.create_table(
        "appointments",
        _ulid_pk(),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "customer_id", sa.String(26), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="booked"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_source", sa.String(20), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("payment_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("financial_outcome", sa.String(20), nullable=False, server_default="unresolved"),
        sa.Column("resolution_reason", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_slot_opening_id", sa.String(26), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "cancellation_source IS NULL OR cancellation_source IN ('customer', 'system', 'admin')",
            name="ck_appointments_cancellation_source",
        ),
    )
    op.create_index("ix_appointments_shop_customer", "appointments", ["shop_id", "customer_id"])
    op.create_index("ix_appointments_financial_outcome", "appointments", ["financial_outcome"])
    op.create_index("ix_appointments_shop_ends", "appointments", ["shop_id", "ends_at"])

    op.create_table(
        "payments",
        _ulid_pk(),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "appointment_id",
            sa.String(26),
            sa.ForeignKey("appointments.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("provider", sa.String(20), nullable=False, server_default="stripe"),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("refunded_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("refund_id", sa.String(255), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "slot_openings",
        _ulid_pk(),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "source_appointment_id",
            sa.String(26),
            sa.ForeignKey("appointments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(10), nullable=False, server_default="open"),
        *_timestamps(),
        sa.UniqueConstraint(
            "shop_id", "starts_at", "ends_at", "source_appointment_id", name="uq_slot_openings_slot"
        ),
        sa.CheckConstraint("status IN ('open', 'filled', 'expired')", name="ck_slot_openings_status"),
    )
    op.create_index("ix_slot_openings_shop_status", "slot_openings", ["shop_id", "status"])

    # appointments <-> slot_openings reference each other
    op.create_foreign_key(
        "fk_appointments_source_slot_opening",
        "appointments",
        "slot_openings",
        ["source_slot_opening_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "slot_offers",
        _ulid_pk(),
        sa.Column(
            "slot_opening_id",
            sa.String(26),
            sa.ForeignKey("slot_openings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "customer_id", sa.String(26), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("channel", sa.String(10), nullable=False, server_default="sms"),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("slot_opening_id", "customer_id", name="uq_slot_offers_customer"),
        sa.CheckConstraint(
            "status IN ('sent', 'accepted', 'expired', 'declined')", name="ck_slot_offers_status"
        ),
        sa.CheckConstraint("channel IN ('sms')", name="ck_slot_offers_channel"),
    )
    op.create_index(
        "uq_slot_offers_one_sent_per_opening",
        "slot_offers",
        ["slot_opening_id"],
        unique=True,
        postgresql_where=sa.text("status = 'sent'"),
    )
    op.create_index("ix_slot_offers_status_expires", "slot_offers", ["status", "expires_at"])
    op.create_index("ix_slot_offers_customer", "slot_offers", ["customer_id"])

    op.create_table(
        "message_log",
        _ulid_pk(),
        sa.Column("shop_id", sa.String(26), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "customer_id", sa.String(26), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "slot_offer_id",
            sa.String(26),
            sa.ForeignKey("slot_offers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("channel", sa.String(10), nullable=False, server_default="sms"),
        sa.Column("purpose", sa.String(40), nullable=False),
        sa.Column("to_phone", sa.String(32), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("provider_message_id", sa.String(64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_message_log_customer", "message_log", ["customer_id"])

    print("Slot recovery schema created")


def downgrade() -> None:
    """Drop slot recovery schema."""
    print("Dropping slot recovery schema...")

    op.drop_index("ix_message_log_customer", table_name="message_log")
    op.drop_table("message_log")

    op.drop_index("ix_slot_offers_customer", table_name="slot_offers")
    op.drop_index("ix_slot_offers_status_expires", table_name="slot_offers")
    op.drop_index("uq_slot_offers_one_sent_per_opening", table_name="slot_offers")
    op.drop_table("slot_offers")

    op.drop_constraint("fk_appointments_source_slot_opening", "appointments", type_="foreignkey")
    op.drop_index("ix_slot_openings_shop_status", table_name="slot_openings")
    op.drop_table("slot_openings")

    op.drop_table("payments")

    op.drop_index("ix_appointments_shop_ends", table_name="appointments")
    op.drop_index("ix_appointments_financial_outcome", table_name="appointments")
    op.drop_index("ix_appointments_shop_customer", table_name="appointments")
    op.drop_table("appointments")

    op.drop_table("customer_no_show_stats")
    op.drop_table("customer_scores")
    op.drop_index("ix_customer_contact_prefs_sms_opt_in", table_name="customer_contact_prefs")
    op.drop_table("customer_contact_prefs")
    op.drop_index("ix_customers_shop_id", table_name="customers")
    op.drop_table("customers")
    op.drop_table("shop_policies")
    op.drop_table("shops")

    print("Slot recovery schema dropped")
