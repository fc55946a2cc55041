"""Decode uploaded spreadsheet bytes into a cell grid.

Supported inputs:
  - .xlsx / .xlsm workbooks (first worksheet only), read with openpyxl
  - UTF-8 CSV, delimiter sniffed among ``, ; TAB |``

Cells become ``EmptyCell`` / ``TextCell`` / ``NumberCell``. Date-formatted
workbook cells are normalized to ISO ``YYYY-MM-DD`` text so the date parser
sees a single representation. Fully empty rows are dropped and trailing empty
cells trimmed; row 0 is exposed as header labels when it holds text that
parses as neither an invoice date nor an amount.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from moniteye.ingestion.amounts import parse_amount
from moniteye.ingestion.cells import (
    EMPTY,
    Cell,
    CellRow,
    NumberCell,
    RawCellGrid,
    TextCell,
    cell_at,
    decimal_from_text,
    is_empty,
)
from moniteye.ingestion.dates import parse_invoice_date
from moniteye.ingestion.errors import FileFormatError

logger = logging.getLogger(__name__)

_ZIP_SIGNATURE = b"PK\x03\x04"
_OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_CSV_DELIMITERS = ",;\t|"
_SNIFF_BYTES = 64 * 1024


def column_label(index: int) -> str:
    """Spreadsheet column name for a 0-based index (0 -> A, 26 -> AA)."""
    return get_column_letter(index + 1)


@dataclass(frozen=True, slots=True)
class DecodedSheet:
    grid: RawCellGrid
    header_labels: tuple[str, ...] | None
    header_rows: tuple[dict[str, Cell], ...] = field(default=())
    sheet_name: str | None = None
    source_format: str = "xlsx"

    @property
    def has_header(self) -> bool:
        return self.header_labels is not None

    @property
    def width(self) -> int:
        return max((len(row) for row in self.grid), default=0)

    @property
    def data_start_row(self) -> int:
        return 1 if self.has_header else 0


def _workbook_cell(value: Any) -> Cell:
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return TextCell("TRUE" if value else "FALSE")
    if isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value))
        if not number.is_finite():
            return TextCell(str(value))
        return NumberCell(number)
    if isinstance(value, datetime):
        return TextCell(value.date().isoformat())
    if isinstance(value, date):
        return TextCell(value.isoformat())
    text = str(value).strip()
    if not text:
        return EMPTY
    return TextCell(text)


def _csv_cell(raw: str) -> Cell:
    text = raw.strip()
    if not text:
        return EMPTY
    number = decimal_from_text(text)
    if number is not None:
        return NumberCell(number)
    return TextCell(text)


def _is_label(cell: Cell) -> bool:
    """Text that is neither an invoice date nor an amount."""
    return isinstance(cell, TextCell) and parse_invoice_date(cell) is None and parse_amount(cell) is None


def _trim_row(cells: list[Cell]) -> CellRow:
    end = len(cells)
    while end and is_empty(cells[end - 1]):
        end -= 1
    return tuple(cells[:end])


class TabularDecoder:
    """Turns raw upload bytes into a ``DecodedSheet``. Holds no state between calls."""

    def decode(self, content: bytes, *, filename: str | None = None) -> DecodedSheet:
        if not content:
            raise FileFormatError("Uploaded file is empty.")
        if content.startswith(_OLE_SIGNATURE):
            raise FileFormatError(
                "Legacy .xls workbooks are not supported. Save the file as .xlsx or .csv and upload it again."
            )

        if content.startswith(_ZIP_SIGNATURE):
            rows, sheet_name = self._read_workbook(content)
            source_format = "xlsx"
        else:
            rows = self._read_csv(content)
            sheet_name = None
            source_format = "csv"

        grid: RawCellGrid = tuple(row for row in (_trim_row(cells) for cells in rows) if row)
        header_labels = self._header_labels(grid)
        sheet = DecodedSheet(
            grid=grid,
            header_labels=header_labels,
            header_rows=self._header_rows(grid, header_labels),
            sheet_name=sheet_name,
            source_format=source_format,
        )
        logger.debug(
            "Decoded %s upload %r: %d rows, %d columns, header=%s",
            source_format,
            filename,
            len(grid),
            sheet.width,
            header_labels is not None,
        )
        return sheet

    @staticmethod
    def _read_workbook(content: bytes) -> tuple[list[list[Cell]], str]:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as exc:
            raise FileFormatError(f"Could not read the uploaded workbook: {exc}") from exc

        try:
            if not workbook.worksheets:
                raise FileFormatError("The uploaded workbook has no worksheets.")
            sheet = workbook.worksheets[0]
            rows = [
                [_workbook_cell(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
            return rows, sheet.title
        finally:
            workbook.close()

    @staticmethod
    def _read_csv(content: bytes) -> list[list[Cell]]:
        if b"\x00" in content:
            raise FileFormatError("The uploaded file is neither an .xlsx workbook nor a text CSV file.")
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FileFormatError("CSV uploads must be UTF-8 encoded.") from exc

        try:
            dialect = csv.Sniffer().sniff(text[:_SNIFF_BYTES], delimiters=_CSV_DELIMITERS)
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ","

        try:
            reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
            return [[_csv_cell(raw) for raw in row] for row in reader]
        except csv.Error as exc:
            raise FileFormatError(f"Could not parse the uploaded CSV file: {exc}") from exc

    @staticmethod
    def _header_labels(grid: RawCellGrid) -> tuple[str, ...] | None:
        if not grid or not any(_is_label(cell) for cell in grid[0]):
            return None
        return tuple(cell.as_text().strip() for cell in grid[0])

    @staticmethod
    def _header_rows(grid: RawCellGrid, header_labels: tuple[str, ...] | None) -> tuple[dict[str, Cell], ...]:
        if header_labels is None:
            return ()

        width = max(len(row) for row in grid)
        keys: list[str] = []
        for index in range(width):
            label = header_labels[index] if index < len(header_labels) else ""
            key = label or f"Column {column_label(index)}"
            base = key
            count = 0
            while key in keys:
                count += 1
                key = f"{base}_{count}"
            keys.append(key)

        return tuple(
            {key: cell_at(row, index) for index, key in enumerate(keys)}
            for row in grid[1:]
        )
