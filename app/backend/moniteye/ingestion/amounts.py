"""Invoice amount parsing."""

from __future__ import annotations

from decimal import Decimal

from moniteye.ingestion.cells import Cell, NumberCell, TextCell, decimal_from_text

# Money is stored as Numeric(14, 2): at most twelve integer digits, in cents.
MAX_AMOUNT = Decimal("1e12")
MIN_AMOUNT = Decimal("0.005")


def parse_amount(cell: Cell) -> Decimal | None:
    """Return a positive amount, or ``None``.

    Only bare numbers are accepted: no currency symbols, no thousands
    separators. Zero, negative and non-finite values are rejected, as are
    amounts that round to zero cents or do not fit below ``MAX_AMOUNT``.
    """
    if isinstance(cell, NumberCell):
        value = cell.value
    elif isinstance(cell, TextCell):
        value = decimal_from_text(cell.value)
    else:
        return None

    if value is None or not value.is_finite():
        return None
    if not MIN_AMOUNT <= value < MAX_AMOUNT:
        return None
    return value
