"""revenue upload schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "revenue_upload_batches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=True),
        sa.Column("total_invoices", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("months_generated", sa.Integer(), nullable=False),
        sa.Column("date_range_start", sa.Date(), nullable=False),
        sa.Column("date_range_end", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_invoices > 0", name="ck_revenue_upload_batches_total_invoices_positive"),
        sa.CheckConstraint("months_generated > 0", name="ck_revenue_upload_batches_months_positive"),
        sa.CheckConstraint(
            "date_range_end >= date_range_start",
            name="ck_revenue_upload_batches_date_range_ordered",
        ),
    )
    op.create_index("ix_revenue_upload_batches_created_at", "revenue_upload_batches", ["created_at"])

    op.create_table(
        "invoice_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "upload_batch_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("revenue_upload_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("month_reference", sa.String(length=7), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_invoice_entries_amount_positive"),
    )
    op.create_index("ix_invoice_entries_batch", "invoice_entries", ["upload_batch_id"])
    op.create_index("ix_invoice_entries_invoice_date", "invoice_entries", ["invoice_date"])
    op.create_index("ix_invoice_entries_month_reference", "invoice_entries", ["month_reference"])

    op.create_table(
        "monthly_revenue_snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "upload_batch_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("revenue_upload_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("month_label", sa.String(length=32), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month_number", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("invoice_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("month_number >= 1 AND month_number <= 12", name="ck_monthly_revenue_month_range"),
        sa.CheckConstraint("total_amount >= 0", name="ck_monthly_revenue_total_non_negative"),
        sa.CheckConstraint("invoice_count >= 0", name="ck_monthly_revenue_invoice_count_non_negative"),
        sa.UniqueConstraint(
            "upload_batch_id",
            "year",
            "month_number",
            name="uq_monthly_revenue_batch_year_month",
        ),
    )
    op.create_index("ix_monthly_revenue_year_month", "monthly_revenue_snapshots", ["year", "month_number"])

    op.create_table(
        "revenue_snapshot_pointer",
        sa.Column("key", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column(
            "upload_batch_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("revenue_upload_batches.id"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("revenue_snapshot_pointer")
    op.drop_index("ix_monthly_revenue_year_month", table_name="monthly_revenue_snapshots")
    op.drop_table("monthly_revenue_snapshots")
    op.drop_index("ix_invoice_entries_month_reference", table_name="invoice_entries")
    op.drop_index("ix_invoice_entries_invoice_date", table_name="invoice_entries")
    op.drop_index("ix_invoice_entries_batch", table_name="invoice_entries")
    op.drop_table("invoice_entries")
    op.drop_index("ix_revenue_upload_batches_created_at", table_name="revenue_upload_batches")
    op.drop_table("revenue_upload_batches")
