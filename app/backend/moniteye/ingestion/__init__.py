"""Invoice spreadsheet ingestion core (no web or database dependencies)."""

from moniteye.ingestion.aggregator import MonthlyRevenueRecord, aggregate_monthly_revenue
from moniteye.ingestion.amounts import parse_amount
from moniteye.ingestion.cells import Cell, EmptyCell, NumberCell, RawCellGrid, TextCell
from moniteye.ingestion.dates import parse_invoice_date
from moniteye.ingestion.decoder import DecodedSheet, TabularDecoder
from moniteye.ingestion.errors import (
    FileFormatError,
    IngestionError,
    NoValidLinesError,
    PersistenceError,
    SchemaDetectionError,
)
from moniteye.ingestion.extractor import InvoiceLine, extract_invoice_lines
from moniteye.ingestion.metrics import RevenueMetrics, compute_metrics
from moniteye.ingestion.orchestrator import (
    IngestionOrchestrator,
    IngestionResult,
    IngestionStage,
    RevenueStore,
    UploadBatch,
)
from moniteye.ingestion.schema import DetectedSchema, SchemaDetector

__all__ = [
    "Cell",
    "DecodedSheet",
    "DetectedSchema",
    "EmptyCell",
    "FileFormatError",
    "IngestionError",
    "IngestionOrchestrator",
    "IngestionResult",
    "IngestionStage",
    "InvoiceLine",
    "MonthlyRevenueRecord",
    "NoValidLinesError",
    "NumberCell",
    "PersistenceError",
    "RawCellGrid",
    "RevenueMetrics",
    "RevenueStore",
    "SchemaDetectionError",
    "SchemaDetector",
    "TabularDecoder",
    "TextCell",
    "UploadBatch",
    "aggregate_monthly_revenue",
    "compute_metrics",
    "extract_invoice_lines",
    "parse_amount",
    "parse_invoice_date",
]
