"""Monthly revenue aggregation."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from moniteye.ingestion.dates import month_label
from moniteye.ingestion.extractor import InvoiceLine

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")


def q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class MonthlyRevenueRecord:
    year: int
    month_number: int
    label: str
    total_amount: Decimal
    invoice_count: int
    computed_at: datetime

    def __post_init__(self) -> None:
        if not 1 <= self.month_number <= 12:
            raise ValueError("month_number must be within 1..12")

    @property
    def month_key(self) -> str:
        return f"{self.year}-{self.month_number:02d}"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.year, self.month_number)


def aggregate_monthly_revenue(
    lines: Iterable[InvoiceLine],
    *,
    computed_at: datetime | None = None,
) -> list[MonthlyRevenueRecord]:
    """Sum lines per calendar month, oldest month first. No lines, no records."""
    totals: defaultdict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
    counts: defaultdict[tuple[int, int], int] = defaultdict(int)
    for line in lines:
        key = (line.invoice_date.year, line.invoice_date.month)
        totals[key] += line.amount
        counts[key] += 1

    stamp = computed_at or datetime.now(UTC)
    return [
        MonthlyRevenueRecord(
            year=year,
            month_number=month,
            label=month_label(year, month),
            total_amount=q2(totals[(year, month)]),
            invoice_count=counts[(year, month)],
            computed_at=stamp,
        )
        for year, month in sorted(totals)
    ]
