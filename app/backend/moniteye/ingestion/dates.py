"""Invoice date parsing across spreadsheet serials, ISO and human formats."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal

from moniteye.ingestion.cells import Cell, NumberCell, TextCell, decimal_from_text

MIN_YEAR = 1990
MAX_YEAR = 2100

SERIAL_MIN = Decimal(40000)
SERIAL_MAX = Decimal(50000)
SERIAL_EPOCH = date(1899, 12, 31)
# Spreadsheet serial 60 is the non-existent 1900-02-29.
SERIAL_LEAP_BUG_THRESHOLD = 59

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_MONTH_LOOKUP: dict[str, int] = {}
for _number, _name in enumerate(MONTH_NAMES, start=1):
    _MONTH_LOOKUP[_name.lower()] = _number
    _MONTH_LOOKUP[_name[:3].lower()] = _number
_MONTH_LOOKUP["sept"] = 9

_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_NUMERIC_PATTERN = re.compile(r"^(\d{1,2})([/-])(\d{1,2})\2(\d{4})$")
_MONTH_FIRST_PATTERN = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})$")
_DAY_FIRST_PATTERN = re.compile(r"^(\d{1,2})\s+([A-Za-z]+)\.?,?\s+(\d{4})$")


def month_label(year: int, month_number: int) -> str:
    return f"{MONTH_NAMES[month_number - 1]} {year}"


def _in_year_range(value: date) -> bool:
    return MIN_YEAR <= value.year <= MAX_YEAR


def _build_date(year: int, month: int, day: int) -> date | None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def from_serial(serial: Decimal) -> date | None:
    """Convert a spreadsheet day serial; only the [40000, 50000) window is accepted."""
    if not SERIAL_MIN <= serial < SERIAL_MAX:
        return None
    days = int(serial)
    if days > SERIAL_LEAP_BUG_THRESHOLD:
        days -= 1
    result = SERIAL_EPOCH + timedelta(days=days)
    return result if _in_year_range(result) else None


def _parse_native(text: str) -> date | None:
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.year <= 1900:
        return None
    result = parsed.date()
    return result if _in_year_range(result) else None


def _resolve_day_month(first: int, second: int) -> tuple[int, int]:
    """Order two numeric parts as (day, month).

    A part above 12 can only be a day. When both parts could be a month the
    European reading (day first) wins.
    """
    if first > 12:
        return first, second
    if second > 12:
        return second, first
    return first, second


def _parse_patterns(text: str) -> date | None:
    match = _ISO_PATTERN.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _build_date(year, month, day)

    match = _NUMERIC_PATTERN.match(text)
    if match:
        first, _separator, second, year = match.groups()
        day, month = _resolve_day_month(int(first), int(second))
        return _build_date(int(year), month, day)

    match = _MONTH_FIRST_PATTERN.match(text)
    if match:
        month = _MONTH_LOOKUP.get(match.group(1).lower())
        if month is not None:
            return _build_date(int(match.group(3)), month, int(match.group(2)))
        return None

    match = _DAY_FIRST_PATTERN.match(text)
    if match:
        month = _MONTH_LOOKUP.get(match.group(2).lower())
        if month is not None:
            return _build_date(int(match.group(3)), month, int(match.group(1)))

    return None


def parse_invoice_date(cell: Cell) -> date | None:
    """Parse a cell as an invoice date, or return ``None``.

    Order: spreadsheet serial, ISO/``fromisoformat``, then textual patterns
    (``YYYY-M-D``, ``D/M/YYYY``, ``D-M-YYYY``, ``Month D, YYYY``,
    ``D Month YYYY``). Dates outside 1990..2100 are rejected.
    """
    if isinstance(cell, NumberCell):
        return from_serial(cell.value)
    if not isinstance(cell, TextCell):
        return None

    text = cell.value.strip()
    if not text:
        return None

    # A bare number is a serial or nothing, whichever source it came from.
    numeric = decimal_from_text(text)
    if numeric is not None:
        return from_serial(numeric)

    return _parse_native(text) or _parse_patterns(text)
