"""Summary metrics over monthly revenue records."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from moniteye.ingestion.aggregator import ZERO, MonthlyRevenueRecord

NO_CHANGE = "+0.0%"
CHART_SCALE = Decimal(1000)


@dataclass(frozen=True, slots=True)
class RevenueMetrics:
    total_revenue: Decimal
    change_percent: str
    chart_series: list[int] = field(default_factory=list)


def format_change_percent(latest: Decimal, previous: Decimal) -> str:
    """Signed one-decimal percentage change; ``+0.0%`` without a usable baseline."""
    if previous == ZERO:
        return NO_CHANGE
    change = ((latest - previous) / previous * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if change == 0:
        return NO_CHANGE
    sign = "+" if change > 0 else ""
    return f"{sign}{change}%"


def compute_metrics(records: Iterable[MonthlyRevenueRecord]) -> RevenueMetrics:
    ordered = sorted(records, key=lambda record: record.sort_key)
    total = sum((record.total_amount for record in ordered), ZERO)

    change = NO_CHANGE
    if len(ordered) >= 2:
        change = format_change_percent(ordered[-1].total_amount, ordered[-2].total_amount)

    chart_series = [
        int((record.total_amount / CHART_SCALE).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        for record in ordered
    ]
    return RevenueMetrics(total_revenue=total, change_percent=change, chart_series=chart_series)
