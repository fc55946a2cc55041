"""Infer which columns of an uploaded sheet hold invoice dates and amounts.

Detection is an ordered cascade of strategies. Each strategy receives the
decoded sheet and the partial ``ColumnMatch`` built so far and returns an
updated match, or ``None`` when it has nothing to contribute:

  1. header keywords (tiered, most specific first)
  2. content sampling of still-unassigned columns
  3. positional layout of a known partner export (C = date, G = amount)

The result is validated last; failures carry role-specific suggestions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from moniteye.ingestion.amounts import parse_amount
from moniteye.ingestion.cells import Cell, cell_at, is_empty
from moniteye.ingestion.dates import parse_invoice_date
from moniteye.ingestion.decoder import DecodedSheet, column_label
from moniteye.ingestion.errors import SchemaDetectionError

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 10
DATE_SAMPLE_THRESHOLD = 0.5
AMOUNT_SAMPLE_THRESHOLD = 0.7

PARTNER_LAYOUT_MIN_COLUMNS = 7
PARTNER_DATE_COLUMN = 2
PARTNER_AMOUNT_COLUMN = 6

INVOICE_DATE_PHRASES = (
    "invoice date",
    "invoice_date",
    "invoicedate",
    "bill date",
    "bill_date",
    "billdate",
    "date invoice",
    "date_invoice",
    "transaction date",
    "transaction_date",
)
GENERIC_DATE_WORDS = ("date", "created", "issued", "fecha", "datum", "time", "when", "day")

GROSS_SOURCE_PHRASES = (
    "gross (source)",
    "gross(source)",
    "gross source",
    "gross_source",
    "gross-source",
    "grosssource",
)
GENERIC_AMOUNT_WORDS = (
    "amount",
    "value",
    "total",
    "sum",
    "revenue",
    "sales",
    "income",
    "price",
    "cost",
    "money",
    "valor",
    "monto",
    "importe",
)

HeaderTier = Callable[[str], bool]


def _contains_any(header: str, words: Sequence[str]) -> bool:
    return any(word in header for word in words)


def _is_invoice_date_phrase(header: str) -> bool:
    return _contains_any(header, INVOICE_DATE_PHRASES)


def _is_invoice_or_bill_date(header: str) -> bool:
    return ("invoice" in header or "bill" in header) and "date" in header


def _is_generic_date(header: str) -> bool:
    return _contains_any(header, GENERIC_DATE_WORDS)


def _is_gross_source(header: str) -> bool:
    return _contains_any(header, GROSS_SOURCE_PHRASES)


def _is_gross_amount(header: str) -> bool:
    return "gross" in header and _contains_any(header, ("amount", "value", "total"))


def _is_generic_amount(header: str) -> bool:
    return _contains_any(header, GENERIC_AMOUNT_WORDS)


DATE_HEADER_TIERS: tuple[HeaderTier, ...] = (
    _is_invoice_date_phrase,
    _is_invoice_or_bill_date,
    _is_generic_date,
)
AMOUNT_HEADER_TIERS: tuple[HeaderTier, ...] = (
    _is_gross_source,
    _is_gross_amount,
    _is_generic_amount,
)

NO_COLUMNS_SUGGESTIONS = (
    'Ensure your Excel file has a column with invoice dates (e.g., "2025-01-15", "15/01/2025", "January 15, 2025")',
    "Ensure your Excel file has a column with invoice amounts/values",
    'Try using headers like "Date", "Invoice Date", "Amount", "Value", "Total"',
    "Make sure data starts from row 2 if row 1 contains headers",
)
SAME_COLUMN_SUGGESTIONS = (
    "Ensure your Excel file has separate columns for dates and amounts",
    "Check that your date column only contains dates, not mixed date/amount data",
    "Check that your amount column only contains numeric values",
    "Your file should have at least 2 columns: one for dates, one for amounts",
)
NO_DATE_SUGGESTIONS = (
    'Ensure you have a column with invoice dates in formats like "2025-01-15", "15/01/2025", "January 15, 2025"',
    'Try adding a header like "Date", "Invoice Date", or "Transaction Date"',
    "Check that your date column contains recognizable date formats",
)
NO_AMOUNT_SUGGESTIONS = (
    "Ensure you have a column with numeric values representing invoice amounts",
    'Try using headers like "Gross (Source)", "Gross Amount", "Amount", "Value", "Total", or "Revenue"',
    'For best results, use "Gross (Source)" as your amount column header',
    "Check that your numeric column contains positive numbers without currency symbols",
)


@dataclass(frozen=True, slots=True)
class DetectedSchema:
    date_column_index: int
    amount_column_index: int
    data_start_row: int
    header_labels: tuple[str, ...] | None
    format_description: str

    def __post_init__(self) -> None:
        if self.date_column_index == self.amount_column_index:
            raise ValueError("date and amount columns must differ")
        if self.date_column_index < 0 or self.amount_column_index < 0:
            raise ValueError("column indices must be non-negative")


@dataclass(frozen=True, slots=True)
class ColumnMatch:
    """Partial detection state threaded through the strategies."""

    date_column: int | None = None
    amount_column: int | None = None
    labels: tuple[str, ...] | None = None
    date_source: str | None = None
    amount_source: str | None = None


DetectionStrategy = Callable[[DecodedSheet, ColumnMatch], ColumnMatch | None]


def _first_tiered_match(labels: Sequence[str], tiers: Sequence[HeaderTier]) -> int | None:
    normalized = [label.strip().lower() for label in labels]
    for tier in tiers:
        for index, header in enumerate(normalized):
            if header and tier(header):
                return index
    return None


def match_header_keywords(sheet: DecodedSheet, match: ColumnMatch) -> ColumnMatch | None:
    """Resolve roles from header text; the most specific keyword tier wins."""
    if not sheet.has_header:
        return None

    labels = sheet.header_labels or ()
    updates: dict[str, object] = {}
    if match.date_column is None:
        index = _first_tiered_match(labels, DATE_HEADER_TIERS)
        if index is not None:
            updates.update(date_column=index, date_source="header")
    if match.amount_column is None:
        index = _first_tiered_match(labels, AMOUNT_HEADER_TIERS)
        if index is not None:
            updates.update(amount_column=index, amount_source="header")

    if not updates:
        return None
    return replace(match, **updates)


def _sample_cells(sheet: DecodedSheet, column: int) -> list[Cell]:
    sample: list[Cell] = []
    for row in sheet.grid[sheet.data_start_row :]:
        cell = cell_at(row, column)
        if is_empty(cell):
            continue
        sample.append(cell)
        if len(sample) >= SAMPLE_SIZE:
            break
    return sample


def _share_parsed(sample: Sequence[Cell], parser: Callable[[Cell], object]) -> float:
    parsed = sum(1 for cell in sample if parser(cell) is not None)
    return parsed / len(sample)


def sample_column_contents(sheet: DecodedSheet, match: ColumnMatch) -> ColumnMatch | None:
    """Fill unresolved roles by parsing up to ten non-empty cells per free column."""
    if match.date_column is not None and match.amount_column is not None:
        return None

    date_column = match.date_column
    amount_column = match.amount_column
    for column in range(sheet.width):
        if column in (date_column, amount_column):
            continue
        sample = _sample_cells(sheet, column)
        if not sample:
            continue
        if date_column is None and _share_parsed(sample, parse_invoice_date) > DATE_SAMPLE_THRESHOLD:
            date_column = column
            continue
        if amount_column is None and _share_parsed(sample, parse_amount) > AMOUNT_SAMPLE_THRESHOLD:
            amount_column = column

    if date_column == match.date_column and amount_column == match.amount_column:
        return None
    return replace(
        match,
        date_column=date_column,
        amount_column=amount_column,
        date_source=match.date_source if date_column == match.date_column else "content",
        amount_source=match.amount_source if amount_column == match.amount_column else "content",
    )


def _partner_layout_labels(width: int) -> tuple[str, ...]:
    labels = [f"Column {column_label(index)}" for index in range(width)]
    labels[PARTNER_DATE_COLUMN] = "Invoice Date (Column C)"
    labels[PARTNER_AMOUNT_COLUMN] = "Gross Amount (Column G)"
    return tuple(labels)


def apply_partner_layout(sheet: DecodedSheet, match: ColumnMatch) -> ColumnMatch | None:
    """Force C/G for wide sheets whose header pass was inconclusive."""
    labels = sheet.header_labels or ()
    single_header = sheet.has_header and sum(1 for label in labels if label) == 1
    collided = match.date_column is not None and match.date_column == match.amount_column
    if not (single_header or collided):
        return None
    if sheet.width < PARTNER_LAYOUT_MIN_COLUMNS:
        return None

    return replace(
        match,
        date_column=PARTNER_DATE_COLUMN,
        amount_column=PARTNER_AMOUNT_COLUMN,
        labels=_partner_layout_labels(sheet.width) if single_header else match.labels,
        date_source="partner layout",
        amount_source="partner layout",
    )


DEFAULT_STRATEGIES: tuple[DetectionStrategy, ...] = (
    match_header_keywords,
    sample_column_contents,
    apply_partner_layout,
)


def _label_for(labels: Sequence[str] | None, index: int) -> str:
    if labels is None or index >= len(labels):
        return ""
    return labels[index]


def describe_format(date_column: int, amount_column: int, labels: Sequence[str] | None) -> str:
    description = f"Detected invoice dates in column {column_label(date_column)}"
    date_label = _label_for(labels, date_column)
    if date_label:
        description += f' ("{date_label}")'
    description += f" and invoice amounts in column {column_label(amount_column)}"
    amount_label = _label_for(labels, amount_column)
    if amount_label:
        description += f' ("{amount_label}")'
    return description


class SchemaDetector:
    """Runs the detection cascade; stateless, safe to share between runs."""

    def __init__(self, strategies: Sequence[DetectionStrategy] = DEFAULT_STRATEGIES) -> None:
        self.strategies = tuple(strategies)

    def detect(self, sheet: DecodedSheet) -> DetectedSchema:
        match = ColumnMatch(labels=sheet.header_labels)
        for strategy in self.strategies:
            result = strategy(sheet, match)
            if result is None:
                continue
            logger.debug(
                "%s resolved date=%s amount=%s",
                strategy.__name__,
                result.date_column,
                result.amount_column,
            )
            match = result

        schema = self._validate(sheet, match)
        logger.info(
            "Schema detected: %s",
            schema.format_description,
            extra={"date_source": match.date_source, "amount_source": match.amount_source},
        )
        return schema

    @staticmethod
    def _validate(sheet: DecodedSheet, match: ColumnMatch) -> DetectedSchema:
        if match.date_column is None and match.amount_column is None:
            raise SchemaDetectionError("Could not detect date or value columns", NO_COLUMNS_SUGGESTIONS)
        if match.date_column == match.amount_column:
            raise SchemaDetectionError(
                "Date and amount columns cannot be the same. Both were detected in the same column.",
                SAME_COLUMN_SUGGESTIONS,
            )
        if match.date_column is None:
            raise SchemaDetectionError("Could not detect date column", NO_DATE_SUGGESTIONS)
        if match.amount_column is None:
            raise SchemaDetectionError("Could not detect value/amount column", NO_AMOUNT_SUGGESTIONS)

        return DetectedSchema(
            date_column_index=match.date_column,
            amount_column_index=match.amount_column,
            data_start_row=sheet.data_start_row,
            header_labels=match.labels,
            format_description=describe_format(match.date_column, match.amount_column, match.labels),
        )
