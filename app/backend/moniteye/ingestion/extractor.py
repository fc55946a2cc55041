"""Pull (date, amount) invoice lines out of a decoded grid."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from moniteye.ingestion.amounts import parse_amount
from moniteye.ingestion.cells import RawCellGrid, is_empty
from moniteye.ingestion.dates import MAX_YEAR, MIN_YEAR, parse_invoice_date
from moniteye.ingestion.schema import DetectedSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InvoiceLine:
    invoice_date: date
    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("invoice amount must be positive")
        if not MIN_YEAR <= self.invoice_date.year <= MAX_YEAR:
            raise ValueError(f"invoice year must be within {MIN_YEAR}..{MAX_YEAR}")

    @property
    def month_reference(self) -> str:
        return f"{self.invoice_date.year}-{self.invoice_date.month:02d}"


def extract_invoice_lines(grid: RawCellGrid, schema: DetectedSchema) -> list[InvoiceLine]:
    """Parse every data row; rows failing either parse are dropped without error."""
    date_index = schema.date_column_index
    amount_index = schema.amount_column_index
    required_width = max(date_index, amount_index) + 1

    lines: list[InvoiceLine] = []
    dropped = 0
    for row in grid[schema.data_start_row :]:
        if len(row) < required_width or is_empty(row[date_index]) or is_empty(row[amount_index]):
            dropped += 1
            continue

        invoice_date = parse_invoice_date(row[date_index])
        amount = parse_amount(row[amount_index])
        if invoice_date is None or amount is None:
            dropped += 1
            continue
        lines.append(InvoiceLine(invoice_date=invoice_date, amount=amount))

    logger.debug("Extracted %d invoice lines, dropped %d rows", len(lines), dropped)
    return lines
