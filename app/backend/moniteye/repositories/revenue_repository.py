"""Repository for upload batches, invoice lines and monthly revenue snapshots."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moniteye.ingestion.aggregator import MonthlyRevenueRecord
from moniteye.ingestion.errors import PersistenceError
from moniteye.ingestion.extractor import InvoiceLine
from moniteye.ingestion.orchestrator import UploadBatch
from moniteye.models.entities import (
    CURRENT_SNAPSHOT_KEY,
    InvoiceEntry,
    MonthlyRevenueSnapshot,
    RevenueSnapshotPointer,
    RevenueUploadBatch,
)

logger = logging.getLogger(__name__)


class RevenueRepository:
    """Persistence operations behind the ingestion pipeline and revenue reads.

    Writes are flushed but never committed; the owning service commits or
    rolls back the whole upload as one transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _flush(self, failure: str, action: Callable[[], None]) -> None:
        try:
            action()
            self.db.flush()
        except SQLAlchemyError as exc:
            logger.exception("%s", failure)
            raise PersistenceError(f"{failure}: {exc.__class__.__name__}") from exc

    # ---------- Ingestion writes ----------
    def create_batch(self, batch: UploadBatch) -> None:
        row = RevenueUploadBatch(
            id=batch.id,
            filename=batch.filename,
            total_invoices=batch.total_invoices,
            total_amount=batch.total_amount,
            months_generated=batch.months_generated,
            date_range_start=batch.date_range_start,
            date_range_end=batch.date_range_end,
            created_at=batch.created_at,
        )
        self._flush("Failed to save upload batch", lambda: self.db.add(row))

    def insert_invoice_lines(self, lines: Sequence[InvoiceLine], batch_id: UUID) -> None:
        rows = [
            InvoiceEntry(
                upload_batch_id=batch_id,
                invoice_date=line.invoice_date,
                amount=line.amount,
                month_reference=line.month_reference,
            )
            for line in lines
        ]
        self._flush("Failed to save invoice data", lambda: self.db.add_all(rows))

    def replace_monthly_aggregates(
        self, records: Sequence[MonthlyRevenueRecord], batch_id: UUID
    ) -> None:
        rows = [
            MonthlyRevenueSnapshot(
                upload_batch_id=batch_id,
                month_label=record.label,
                year=record.year,
                month_number=record.month_number,
                total_amount=record.total_amount,
                invoice_count=record.invoice_count,
                computed_at=record.computed_at,
            )
            for record in records
        ]
        self._flush("Failed to save monthly revenue data", lambda: self.db.add_all(rows))
        self._flush("Failed to update current revenue data", lambda: self._repoint(batch_id))
        logger.debug("Current revenue snapshot set now points at batch %s", batch_id)

    def _repoint(self, batch_id: UUID) -> None:
        pointer = self.db.get(RevenueSnapshotPointer, CURRENT_SNAPSHOT_KEY, with_for_update=True)
        if pointer is None:
            self.db.add(RevenueSnapshotPointer(key=CURRENT_SNAPSHOT_KEY, upload_batch_id=batch_id))
            return
        pointer.upload_batch_id = batch_id
        pointer.updated_at = datetime.now(UTC)

    # ---------- Reads ----------
    def get_current_pointer(self) -> RevenueSnapshotPointer | None:
        return self.db.get(RevenueSnapshotPointer, CURRENT_SNAPSHOT_KEY)

    def list_monthly_snapshots(self, batch_id: UUID) -> list[MonthlyRevenueSnapshot]:
        return self.db.scalars(
            select(MonthlyRevenueSnapshot)
            .where(MonthlyRevenueSnapshot.upload_batch_id == batch_id)
            .order_by(MonthlyRevenueSnapshot.year.asc(), MonthlyRevenueSnapshot.month_number.asc())
        ).all()

    def list_upload_batches(self, limit: int) -> list[RevenueUploadBatch]:
        return self.db.scalars(
            select(RevenueUploadBatch).order_by(RevenueUploadBatch.created_at.desc()).limit(limit)
        ).all()

    def get_upload_batch(self, batch_id: UUID) -> RevenueUploadBatch | None:
        return self.db.scalar(select(RevenueUploadBatch).where(RevenueUploadBatch.id == batch_id))

    def list_invoice_entries(self, batch_id: UUID) -> list[InvoiceEntry]:
        return self.db.scalars(
            select(InvoiceEntry)
            .where(InvoiceEntry.upload_batch_id == batch_id)
            .order_by(InvoiceEntry.invoice_date.asc(), InvoiceEntry.created_at.asc())
        ).all()
