"""ORM entities for revenue uploads and monthly revenue snapshots."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from moniteye.db.base import Base

CURRENT_SNAPSHOT_KEY = "current"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RevenueUploadBatch(Base):
    __tablename__ = "revenue_upload_batches"
    __table_args__ = (
        CheckConstraint("total_invoices > 0", name="ck_revenue_upload_batches_total_invoices_positive"),
        CheckConstraint("months_generated > 0", name="ck_revenue_upload_batches_months_positive"),
        CheckConstraint(
            "date_range_end >= date_range_start",
            name="ck_revenue_upload_batches_date_range_ordered",
        ),
        Index("ix_revenue_upload_batches_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_invoices: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    months_generated: Mapped[int] = mapped_column(Integer, nullable=False)
    date_range_start: Mapped[date] = mapped_column(Date, nullable=False)
    date_range_end: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class InvoiceEntry(Base):
    __tablename__ = "invoice_entries"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_invoice_entries_amount_positive"),
        Index("ix_invoice_entries_batch", "upload_batch_id"),
        Index("ix_invoice_entries_invoice_date", "invoice_date"),
        Index("ix_invoice_entries_month_reference", "month_reference"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    upload_batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("revenue_upload_batches.id", ondelete="CASCADE"), nullable=False
    )
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    month_reference: Mapped[str] = mapped_column(String(7), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class MonthlyRevenueSnapshot(Base):
    __tablename__ = "monthly_revenue_snapshots"
    __table_args__ = (
        CheckConstraint("month_number >= 1 AND month_number <= 12", name="ck_monthly_revenue_month_range"),
        CheckConstraint("total_amount >= 0", name="ck_monthly_revenue_total_non_negative"),
        CheckConstraint("invoice_count >= 0", name="ck_monthly_revenue_invoice_count_non_negative"),
        UniqueConstraint(
            "upload_batch_id",
            "year",
            "month_number",
            name="uq_monthly_revenue_batch_year_month",
        ),
        Index("ix_monthly_revenue_year_month", "year", "month_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    upload_batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("revenue_upload_batches.id", ondelete="CASCADE"), nullable=False
    )
    month_label: Mapped[str] = mapped_column(String(32), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month_number: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    invoice_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class RevenueSnapshotPointer(Base):
    """Single row naming the upload batch whose snapshots are current.

    Repointing this row is the atomic swap that replaces the monthly
    aggregate set; snapshot rows themselves are never deleted in place.
    """

    __tablename__ = "revenue_snapshot_pointer"

    key: Mapped[str] = mapped_column(String(32), primary_key=True, default=CURRENT_SNAPSHOT_KEY)
    upload_batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("revenue_upload_batches.id"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
