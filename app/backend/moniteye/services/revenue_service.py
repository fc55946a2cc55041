"""Revenue upload, inspection and summary service layer."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from http import HTTPStatus
from pathlib import PurePath
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moniteye.core.config import get_settings
from moniteye.ingestion.aggregator import MonthlyRevenueRecord, q2
from moniteye.ingestion.cells import cell_to_json, is_empty
from moniteye.ingestion.decoder import DecodedSheet, TabularDecoder, column_label
from moniteye.ingestion.errors import IngestionError, PersistenceError, SchemaDetectionError
from moniteye.ingestion.metrics import NO_CHANGE, compute_metrics
from moniteye.ingestion.orchestrator import IngestionOrchestrator, IngestionResult, IngestionStage
from moniteye.ingestion.schema import SchemaDetector
from moniteye.models.entities import InvoiceEntry, MonthlyRevenueSnapshot, RevenueUploadBatch
from moniteye.repositories.revenue_repository import RevenueRepository

logger = logging.getLogger(__name__)

INSPECT_SAMPLE_ROWS = 10
INSPECT_COLUMN_ROWS = 5
INSPECT_COLUMN_SAMPLES = 3
INSPECT_HEADER_SAMPLES = 3


def _iso(value: datetime) -> str:
    return value.isoformat()


class RevenueService:
    """Owns the transaction for each revenue operation."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = RevenueRepository(db)
        self.settings = get_settings()

    # ---------- Uploads ----------
    def _validate_upload(self, filename: str | None, content: bytes) -> None:
        if len(content) > self.settings.upload_max_bytes:
            raise HTTPException(
                status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
                detail=f"Uploaded file exceeds the {self.settings.upload_max_bytes} byte limit.",
            )
        if filename:
            extension = PurePath(filename).suffix.lower()
            if extension not in self.settings.upload_allowed_extensions:
                allowed = ", ".join(self.settings.upload_allowed_extensions)
                raise HTTPException(
                    status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                    detail=f"Unsupported file type '{extension or filename}'. Allowed: {allowed}.",
                )

    def ingest_upload(self, *, filename: str | None, content: bytes) -> IngestionResult:
        self._validate_upload(filename, content)
        orchestrator = IngestionOrchestrator(self.repo)
        try:
            result = orchestrator.ingest(content, filename=filename)
            self.db.commit()
        except IngestionError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Commit failed for upload %r", filename)
            error = PersistenceError("Failed to commit uploaded revenue data.")
            error.stage = IngestionStage.PERSISTING
            raise error from exc
        return result

    def inspect_upload(self, *, filename: str | None, content: bytes) -> dict[str, object]:
        """Describe how an upload decodes and what detection makes of it; writes nothing."""

        self._validate_upload(filename, content)
        sheet = TabularDecoder().decode(content, filename=filename)
        try:
            schema = SchemaDetector().detect(sheet)
        except SchemaDetectionError as exc:
            detection: dict[str, object] = {
                "detected": False,
                "error": exc.reason,
                "suggestions": list(exc.suggestions or []),
            }
        else:
            detection = {
                "detected": True,
                "dateColumn": column_label(schema.date_column_index),
                "amountColumn": column_label(schema.amount_column_index),
                "dataStartRow": schema.data_start_row,
                "formatDescription": schema.format_description,
            }

        return {
            "sheetName": sheet.sheet_name,
            "sourceFormat": sheet.source_format,
            "totalRows": len(sheet.grid),
            "totalColumns": sheet.width,
            "sampleRows": [[cell_to_json(cell) for cell in row] for row in sheet.grid[:INSPECT_SAMPLE_ROWS]],
            "columnInfo": self._column_info(sheet),
            "firstRowAsHeaders": list(sheet.header_labels) if sheet.header_labels is not None else None,
            "headerObjectKeys": list(sheet.header_rows[0]) if sheet.header_rows else [],
            "sampleDataWithHeaders": [
                {key: cell_to_json(cell) for key, cell in row.items()}
                for row in sheet.header_rows[:INSPECT_HEADER_SAMPLES]
            ],
            "detection": detection,
        }

    @staticmethod
    def _column_info(sheet: DecodedSheet) -> list[dict[str, object]]:
        start = sheet.data_start_row
        window = sheet.grid[start : start + INSPECT_COLUMN_ROWS]
        columns = []
        for index in range(sheet.width):
            values = [row[index] for row in window if index < len(row) and not is_empty(row[index])]
            header = None
            if sheet.header_labels is not None and index < len(sheet.header_labels):
                header = sheet.header_labels[index] or None
            columns.append(
                {
                    "index": index,
                    "letter": column_label(index),
                    "header": header,
                    "sampleData": [cell_to_json(cell) for cell in values[:INSPECT_COLUMN_SAMPLES]],
                    "totalNonEmptyRows": len(values),
                }
            )
        return columns

    # ---------- Summary ----------
    def _net_of_vat(self, gross: Decimal) -> Decimal:
        return q2(gross / (Decimal(1) + self.settings.revenue_vat_rate))

    def revenue_summary(self) -> dict[str, object]:
        pointer = self.repo.get_current_pointer()
        if pointer is None:
            return {
                "uploadBatchId": None,
                "lastUpdated": _iso(datetime.now(UTC)),
                "monthlyRevenue": [],
                "totalRevenue": 0,
                "revenueChange": NO_CHANGE,
                "revenueData": [],
            }

        snapshots = self.repo.list_monthly_snapshots(pointer.upload_batch_id)
        records = [
            MonthlyRevenueRecord(
                year=row.year,
                month_number=row.month_number,
                label=row.month_label,
                total_amount=self._net_of_vat(row.total_amount),
                invoice_count=row.invoice_count,
                computed_at=row.computed_at,
            )
            for row in snapshots
        ]
        metrics = compute_metrics(records)
        last_updated = records[-1].computed_at if records else pointer.updated_at
        return {
            "uploadBatchId": str(pointer.upload_batch_id),
            "lastUpdated": _iso(last_updated),
            "monthlyRevenue": [
                {
                    "month": record.label,
                    "monthKey": record.month_key,
                    "revenue": float(record.total_amount),
                    "invoiceCount": record.invoice_count,
                    "timestamp": _iso(record.computed_at),
                }
                for record in records
            ],
            "totalRevenue": float(metrics.total_revenue),
            "revenueChange": metrics.change_percent,
            "revenueData": metrics.chart_series,
        }

    # ---------- Upload history ----------
    def list_batches(self, limit: int | None = None) -> list[RevenueUploadBatch]:
        return self.repo.list_upload_batches(limit or self.settings.batch_list_default_limit)

    def current_batch_id(self) -> UUID | None:
        pointer = self.repo.get_current_pointer()
        return pointer.upload_batch_id if pointer is not None else None

    def get_batch_detail(self, batch_id: UUID) -> dict[str, object]:
        batch = self.repo.get_upload_batch(batch_id)
        if batch is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload batch not found.")

        payload = self.serialize_batch(batch, current_batch_id=self.current_batch_id())
        payload["invoices"] = [self.serialize_invoice(row) for row in self.repo.list_invoice_entries(batch.id)]
        payload["monthlyRevenue"] = [
            self.serialize_snapshot(row) for row in self.repo.list_monthly_snapshots(batch.id)
        ]
        return payload

    @staticmethod
    def serialize_batch(row: RevenueUploadBatch, *, current_batch_id: UUID | None = None) -> dict[str, object]:
        return {
            "id": str(row.id),
            "filename": row.filename,
            "totalInvoices": row.total_invoices,
            "totalAmount": float(row.total_amount),
            "monthsGenerated": row.months_generated,
            "dateRange": f"{row.date_range_start.isoformat()} to {row.date_range_end.isoformat()}",
            "createdAt": _iso(row.created_at),
            "isCurrent": row.id == current_batch_id,
        }

    @staticmethod
    def serialize_invoice(row: InvoiceEntry) -> dict[str, object]:
        return {
            "id": str(row.id),
            "invoiceDate": row.invoice_date.isoformat(),
            "amount": float(row.amount),
            "monthReference": row.month_reference,
        }

    @staticmethod
    def serialize_snapshot(row: MonthlyRevenueSnapshot) -> dict[str, object]:
        return {
            "month": row.month_label,
            "monthKey": f"{row.year}-{row.month_number:02d}",
            "totalAmount": float(row.total_amount),
            "invoiceCount": row.invoice_count,
            "computedAt": _iso(row.computed_at),
        }
