from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from moniteye.ingestion.aggregator import MonthlyRevenueRecord, aggregate_monthly_revenue
from moniteye.ingestion.cells import NumberCell, TextCell
from moniteye.ingestion.extractor import InvoiceLine, extract_invoice_lines
from moniteye.ingestion.metrics import compute_metrics, format_change_percent
from moniteye.ingestion.schema import DetectedSchema

COMPUTED_AT = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def _line(day: date, amount: str) -> InvoiceLine:
    return InvoiceLine(invoice_date=day, amount=Decimal(amount))


def _record(year: int, month: int, total: str) -> MonthlyRevenueRecord:
    return MonthlyRevenueRecord(
        year=year,
        month_number=month,
        label=f"{year}-{month}",
        total_amount=Decimal(total),
        invoice_count=1,
        computed_at=COMPUTED_AT,
    )


def test_lines_are_bucketed_by_calendar_month() -> None:
    lines = [
        _line(date(2024, 2, 1), "200.00"),
        _line(date(2024, 1, 3), "100.10"),
        _line(date(2024, 1, 20), "49.90"),
    ]

    records = aggregate_monthly_revenue(lines, computed_at=COMPUTED_AT)

    assert [(r.month_key, r.label, r.total_amount, r.invoice_count) for r in records] == [
        ("2024-01", "January 2024", Decimal("150.00"), 2),
        ("2024-02", "February 2024", Decimal("200.00"), 1),
    ]
    assert {r.computed_at for r in records} == {COMPUTED_AT}


def test_monthly_totals_conserve_the_input_sum() -> None:
    lines = [
        _line(date(2023, 12, 31), "10.125"),
        _line(date(2024, 1, 1), "0.335"),
        _line(date(2024, 1, 2), "7.50"),
        _line(date(2023, 11, 5), "1000"),
    ]

    records = aggregate_monthly_revenue(lines)

    assert [r.sort_key for r in records] == [(2023, 11), (2023, 12), (2024, 1)]
    input_total = sum((line.amount for line in lines), Decimal(0))
    record_total = sum((r.total_amount for r in records), Decimal(0))
    assert abs(record_total - input_total) <= Decimal("0.01") * len(records)


def test_totals_round_half_up_to_cents() -> None:
    records = aggregate_monthly_revenue([_line(date(2024, 1, 1), "10.125")])

    assert records[0].total_amount == Decimal("10.13")


def test_no_lines_yield_no_records() -> None:
    assert aggregate_monthly_revenue([]) == []


def test_record_rejects_invalid_month() -> None:
    with pytest.raises(ValueError):
        _record(2024, 13, "1.00")


def test_invoice_line_rejects_bad_values() -> None:
    with pytest.raises(ValueError):
        _line(date(2024, 1, 1), "0")
    with pytest.raises(ValueError):
        _line(date(1989, 12, 31), "10")
    assert _line(date(2024, 3, 9), "1").month_reference == "2024-03"


def test_change_percent_between_last_two_months() -> None:
    metrics = compute_metrics([_record(2024, 1, "1000.00"), _record(2024, 2, "1200.00")])

    assert metrics.change_percent == "+20.0%"
    assert metrics.total_revenue == Decimal("2200.00")


def test_change_percent_formatting() -> None:
    assert format_change_percent(Decimal("200"), Decimal("150")) == "+33.3%"
    assert format_change_percent(Decimal("150"), Decimal("200")) == "-25.0%"
    assert format_change_percent(Decimal("100"), Decimal("100")) == "+0.0%"
    assert format_change_percent(Decimal("100"), Decimal("0")) == "+0.0%"


def test_metrics_sort_records_before_computing() -> None:
    metrics = compute_metrics(
        [_record(2024, 2, "1500.00"), _record(2023, 12, "124563.00"), _record(2024, 1, "2499.99")]
    )

    assert metrics.chart_series == [125, 2, 2]
    assert metrics.change_percent == "-40.0%"


def test_metrics_for_single_and_empty_sets() -> None:
    single = compute_metrics([_record(2024, 1, "500.00")])
    assert single.change_percent == "+0.0%"
    assert single.chart_series == [1]

    empty = compute_metrics([])
    assert empty.total_revenue == Decimal("0")
    assert empty.change_percent == "+0.0%"
    assert empty.chart_series == []


def test_extractor_drops_unusable_rows_silently() -> None:
    grid = (
        (TextCell("Invoice Date"), TextCell("Gross (Source)")),
        (TextCell("2024-01-15"), NumberCell(Decimal("100"))),
        (TextCell("2024-01-16"),),
        (TextCell("not a date"), NumberCell(Decimal("5"))),
        (TextCell("2024-01-17"), TextCell("$40")),
        (TextCell("2024-01-18"), NumberCell(Decimal("-3"))),
        (NumberCell(Decimal("45000")), TextCell("12.50")),
    )
    schema = DetectedSchema(
        date_column_index=0,
        amount_column_index=1,
        data_start_row=1,
        header_labels=("Invoice Date", "Gross (Source)"),
        format_description="",
    )

    lines = extract_invoice_lines(grid, schema)

    assert lines == [
        InvoiceLine(invoice_date=date(2024, 1, 15), amount=Decimal("100")),
        InvoiceLine(invoice_date=date(2023, 3, 15), amount=Decimal("12.50")),
    ]
