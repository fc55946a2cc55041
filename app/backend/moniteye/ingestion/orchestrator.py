"""Sequence one upload through decode, detect, extract, aggregate and persist."""

from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Protocol

from moniteye.core.logging_config import bind_log_context
from moniteye.ingestion.aggregator import MonthlyRevenueRecord, aggregate_monthly_revenue
from moniteye.ingestion.amounts import MAX_AMOUNT
from moniteye.ingestion.decoder import TabularDecoder
from moniteye.ingestion.errors import FileFormatError, IngestionError, NoValidLinesError, TotalTooLargeError
from moniteye.ingestion.extractor import InvoiceLine, extract_invoice_lines
from moniteye.ingestion.metrics import RevenueMetrics, compute_metrics
from moniteye.ingestion.schema import DetectedSchema, SchemaDetector

logger = logging.getLogger(__name__)

MIN_ROWS = 2


class IngestionStage(str, enum.Enum):
    DECODING = "decoding"
    DETECTING = "detecting"
    EXTRACTING = "extracting"
    AGGREGATING = "aggregating"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class UploadBatch:
    id: uuid.UUID
    filename: str | None
    total_invoices: int
    total_amount: Decimal
    months_generated: int
    date_range_start: date
    date_range_end: date
    created_at: datetime


class RevenueStore(Protocol):
    """Persistence collaborator. Each call raises ``PersistenceError`` on failure."""

    def create_batch(self, batch: UploadBatch) -> None: ...

    def insert_invoice_lines(self, lines: Sequence[InvoiceLine], batch_id: uuid.UUID) -> None: ...

    def replace_monthly_aggregates(
        self, records: Sequence[MonthlyRevenueRecord], batch_id: uuid.UUID
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class IngestionResult:
    batch: UploadBatch
    schema: DetectedSchema
    records: list[MonthlyRevenueRecord]
    metrics: RevenueMetrics

    @property
    def date_range(self) -> str:
        return f"{self.batch.date_range_start.isoformat()} to {self.batch.date_range_end.isoformat()}"

    def to_payload(self) -> dict[str, object]:
        return {
            "uploadBatchId": str(self.batch.id),
            "recordsProcessed": self.batch.total_invoices,
            "monthsGenerated": self.batch.months_generated,
            "totalRevenue": float(self.metrics.total_revenue),
            "dateRange": self.date_range,
            "formatDescription": self.schema.format_description,
        }


class IngestionOrchestrator:
    """Runs a single upload end to end. Keeps no state between ``ingest`` calls."""

    def __init__(
        self,
        store: RevenueStore,
        *,
        decoder: TabularDecoder | None = None,
        detector: SchemaDetector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.decoder = decoder or TabularDecoder()
        self.detector = detector or SchemaDetector()
        self.clock = clock or (lambda: datetime.now(UTC))

    def ingest(self, content: bytes, *, filename: str | None = None) -> IngestionResult:
        batch_id = uuid.uuid4()
        stage = IngestionStage.DECODING
        with bind_log_context(upload_batch_id=batch_id, upload_filename=filename):
            try:
                sheet = self.decoder.decode(content, filename=filename)
                if len(sheet.grid) < MIN_ROWS:
                    raise FileFormatError("File appears to be empty or has insufficient data")

                stage = IngestionStage.DETECTING
                schema = self.detector.detect(sheet)

                stage = IngestionStage.EXTRACTING
                lines = extract_invoice_lines(sheet.grid, schema)
                if not lines:
                    raise NoValidLinesError(schema.format_description)

                stage = IngestionStage.AGGREGATING
                now = self.clock()
                records = aggregate_monthly_revenue(lines, computed_at=now)
                metrics = compute_metrics(records)
                if metrics.total_revenue >= MAX_AMOUNT:
                    raise TotalTooLargeError()
                batch = UploadBatch(
                    id=batch_id,
                    filename=filename,
                    total_invoices=len(lines),
                    total_amount=metrics.total_revenue,
                    months_generated=len(records),
                    date_range_start=min(line.invoice_date for line in lines),
                    date_range_end=max(line.invoice_date for line in lines),
                    created_at=now,
                )

                stage = IngestionStage.PERSISTING
                self.store.create_batch(batch)
                self.store.insert_invoice_lines(lines, batch.id)
                self.store.replace_monthly_aggregates(records, batch.id)
            except IngestionError as exc:
                exc.stage = stage
                logger.warning(
                    "Ingestion failed while %s: %s",
                    stage.value,
                    exc.message,
                    extra={"ingestion_stage": IngestionStage.FAILED.value},
                )
                raise

            logger.info(
                "Ingested %d invoices into %d months (%s)",
                batch.total_invoices,
                batch.months_generated,
                f"{batch.date_range_start.isoformat()} to {batch.date_range_end.isoformat()}",
                extra={"ingestion_stage": IngestionStage.DONE.value},
            )
        return IngestionResult(batch=batch, schema=schema, records=records, metrics=metrics)
