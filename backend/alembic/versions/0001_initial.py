"""initial schema: tours, bookings, ledger, stop-sales

Revision ID: 0001
Revises:
Create Date: 2025-09-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tours",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "availability_type",
            sa.Enum("daily", "date_range", "specific_dates", name="availability_type"),
            nullable=False,
            server_default=sa.text("'daily'"),
        ),
        sa.Column("available_days", sa.Text(), nullable=False),
        sa.Column("slots", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("specific_dates", sa.Text(), nullable=False),
        sa.Column("blocked_dates", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "tour_options",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
    )
    op.create_index("ix_tour_options_tour_id", "tour_options", ["tour_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id"), nullable=False),
        sa.Column("option_id", sa.Integer(), sa.ForeignKey("tour_options.id")),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Text(), nullable=False),
        sa.Column("adult_guests", sa.Integer(), nullable=False),
        sa.Column("child_guests", sa.Integer(), nullable=False),
        sa.Column("infant_guests", sa.Integer(), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("Pending", "Confirmed", "Cancelled", name="booking_status"),
            nullable=False,
        ),
        sa.Column("total_price", sa.Float()),
        sa.Column("customer_email", sa.Text()),
        sa.Column("cancel_reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("guests >= 0", name="ck_bookings_guests"),
    )
    op.create_index("ix_bookings_tour_date", "bookings", ["tour_id", "date"])

    op.create_table(
        "availability_days",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("stop_sale", sa.Boolean(), nullable=False),
        sa.Column("stop_sale_reason", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tour_id", "date", name="uq_availability_days_tour_date"),
    )
    op.create_index("ix_availability_days_tour_id", "availability_days", ["tour_id"])
    op.create_index("ix_availability_days_date", "availability_days", ["date"])

    op.create_table(
        "availability_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "day_id",
            sa.Integer(),
            sa.ForeignKey("availability_days.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("time", sa.Text(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("booked", sa.Integer(), nullable=False),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        sa.Column("block_reason", sa.Text()),
        sa.Column("extra_capacity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Float()),
        sa.UniqueConstraint("day_id", "time", name="uq_availability_slots_day_time"),
        sa.CheckConstraint("booked >= 0", name="ck_availability_slots_booked"),
        sa.CheckConstraint("capacity >= 0", name="ck_availability_slots_capacity"),
    )

    op.create_table(
        "stop_sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("option_ids", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "tour_id", "start_date", "end_date", "option_ids",
            name="uq_stop_sales_tour_range_options",
        ),
        sa.CheckConstraint("start_date <= end_date", name="ck_stop_sales_range"),
    )
    op.create_index("ix_stop_sales_tour_id", "stop_sales", ["tour_id"])
    op.create_index("ix_stop_sales_start_date", "stop_sales", ["start_date"])
    op.create_index("ix_stop_sales_end_date", "stop_sales", ["end_date"])

    op.create_table(
        "stop_sale_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stop_sale_id", sa.Integer()),
        sa.Column("option_id", sa.Text()),
        sa.Column("date_from", sa.Date(), nullable=False),
        sa.Column("date_to", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("applied_by", sa.Text(), nullable=False),
        sa.Column("applied_at", sa.DateTime(), nullable=False),
        sa.Column("removed_by", sa.Text()),
        sa.Column("removed_at", sa.DateTime()),
        sa.Column(
            "status",
            sa.Enum("active", "removed", name="stop_sale_log_status"),
            nullable=False,
        ),
    )
    op.create_index("ix_stop_sale_logs_tour_id", "stop_sale_logs", ["tour_id"])
    op.create_index("ix_stop_sale_logs_stop_sale_id", "stop_sale_logs", ["stop_sale_id"])
    op.create_index("ix_stop_sale_logs_status", "stop_sale_logs", ["status"])


def downgrade() -> None:
    op.drop_table("stop_sale_logs")
    op.drop_table("stop_sales")
    op.drop_table("availability_slots")
    op.drop_table("availability_days")
    op.drop_table("bookings")
    op.drop_table("tour_options")
    op.drop_table("tours")
