"""Cell variants produced at the decode boundary."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TypeAlias


@dataclass(frozen=True, slots=True)
class EmptyCell:
    def as_text(self) -> str:
        return ""


@dataclass(frozen=True, slots=True)
class TextCell:
    value: str

    def as_text(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class NumberCell:
    value: Decimal

    def as_text(self) -> str:
        return format(self.value, "f")


Cell: TypeAlias = EmptyCell | TextCell | NumberCell
CellRow: TypeAlias = tuple[Cell, ...]
RawCellGrid: TypeAlias = tuple[CellRow, ...]

EMPTY = EmptyCell()


def is_empty(cell: Cell) -> bool:
    return isinstance(cell, EmptyCell)


def decimal_from_text(text: str) -> Decimal | None:
    """Parse a plain decimal literal; ``None`` for anything else, NaN and infinities included."""
    stripped = text.strip()
    if not stripped:
        return None
    try:
        value = Decimal(stripped)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def cell_at(row: CellRow, index: int) -> Cell:
    if 0 <= index < len(row):
        return row[index]
    return EMPTY


def cell_to_json(cell: Cell) -> str | float | int | None:
    if isinstance(cell, NumberCell):
        if cell.value == cell.value.to_integral_value():
            return int(cell.value)
        return float(cell.value)
    if isinstance(cell, TextCell):
        return cell.value
    return None
