from __future__ import annotations

import io
from collections.abc import Sequence

import httpx
import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moniteye.core.config import get_settings
from moniteye.models.entities import (
    InvoiceEntry,
    MonthlyRevenueSnapshot,
    RevenueSnapshotPointer,
    RevenueUploadBatch,
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_bytes(rows: Sequence[Sequence[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Invoices"
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _upload(
    client: TestClient,
    content: bytes,
    filename: str = "invoices.xlsx",
    path: str = "uploads",
) -> httpx.Response:
    return client.post(
        f"/api/v1/revenue/{path}",
        files={"file": (filename, content, XLSX_MEDIA_TYPE)},
    )


def _three_invoices() -> bytes:
    return _xlsx_bytes(
        [
            ["Invoice Date", "Gross (Source)"],
            ["2024-01-15", 12000],
            ["2024-01-20", 6000],
            ["2024-02-01", 24000],
        ]
    )


def test_upload_creates_batch_and_snapshots(client: TestClient, db_session: Session) -> None:
    response = _upload(client, _three_invoices())

    assert response.status_code == 201
    payload = response.json()
    assert payload["recordsProcessed"] == 3
    assert payload["monthsGenerated"] == 2
    assert payload["totalRevenue"] == 42000.0
    assert payload["dateRange"] == "2024-01-15 to 2024-02-01"
    assert payload["formatDescription"] == (
        'Detected invoice dates in column A ("Invoice Date") '
        'and invoice amounts in column B ("Gross (Source)")'
    )

    batch = db_session.scalar(select(RevenueUploadBatch))
    assert batch is not None
    assert str(batch.id) == payload["uploadBatchId"]
    assert batch.filename == "invoices.xlsx"
    assert len(db_session.scalars(select(InvoiceEntry)).all()) == 3
    snapshots = db_session.scalars(
        select(MonthlyRevenueSnapshot).order_by(MonthlyRevenueSnapshot.month_number)
    ).all()
    assert [(row.month_label, row.invoice_count) for row in snapshots] == [
        ("January 2024", 2),
        ("February 2024", 1),
    ]
    pointer = db_session.scalar(select(RevenueSnapshotPointer))
    assert pointer is not None
    assert pointer.upload_batch_id == batch.id


def test_csv_upload_is_accepted(client: TestClient) -> None:
    content = b"Date,Amount\n15/01/2024,100\n20/01/2024,50\n01/02/2024,200\n"

    response = client.post(
        "/api/v1/revenue/uploads",
        files={"file": ("invoices.csv", content, "text/csv")},
    )

    assert response.status_code == 201
    assert response.json()["totalRevenue"] == 350.0
    assert response.json()["dateRange"] == "2024-01-15 to 2024-02-01"


def test_amounts_outside_stored_range_are_dropped(client: TestClient, db_session: Session) -> None:
    content = b"Invoice Date,Gross (Source)\n2024-01-15,1e27\n2024-01-18,0.004\n2024-01-20,50\n"

    response = client.post(
        "/api/v1/revenue/uploads",
        files={"file": ("invoices.csv", content, "text/csv")},
    )

    assert response.status_code == 201
    assert response.json()["recordsProcessed"] == 1
    assert response.json()["totalRevenue"] == 50.0
    assert [row.amount for row in db_session.scalars(select(InvoiceEntry)).all()] == [50]


def test_summary_reports_revenue_net_of_vat(client: TestClient) -> None:
    batch_id = _upload(client, _three_invoices()).json()["uploadBatchId"]

    response = client.get("/api/v1/revenue/summary")

    assert response.status_code == 200
    summary = response.json()
    assert summary["uploadBatchId"] == batch_id
    assert [(item["month"], item["monthKey"], item["revenue"]) for item in summary["monthlyRevenue"]] == [
        ("January 2024", "2024-01", 15000.0),
        ("February 2024", "2024-02", 20000.0),
    ]
    assert summary["totalRevenue"] == 35000.0
    assert summary["revenueChange"] == "+33.3%"
    assert summary["revenueData"] == [15, 20]


def test_summary_without_uploads(client: TestClient) -> None:
    summary = client.get("/api/v1/revenue/summary").json()

    assert summary["uploadBatchId"] is None
    assert summary["monthlyRevenue"] == []
    assert summary["totalRevenue"] == 0
    assert summary["revenueChange"] == "+0.0%"
    assert summary["revenueData"] == []


def test_second_upload_replaces_current_set_and_keeps_history(client: TestClient) -> None:
    first_id = _upload(client, _three_invoices(), filename="q1.xlsx").json()["uploadBatchId"]
    second = _xlsx_bytes([["Invoice Date", "Gross (Source)"], ["2024-03-05", 1200], ["2024-03-09", 2400]])
    second_id = _upload(client, second, filename="march.xlsx").json()["uploadBatchId"]

    summary = client.get("/api/v1/revenue/summary").json()
    assert summary["uploadBatchId"] == second_id
    assert [item["monthKey"] for item in summary["monthlyRevenue"]] == ["2024-03"]
    assert summary["totalRevenue"] == 3000.0

    batches = client.get("/api/v1/revenue/upload-batches").json()["items"]
    assert [item["id"] for item in batches] == [second_id, first_id]
    assert [item["isCurrent"] for item in batches] == [True, False]

    history = client.get(f"/api/v1/revenue/upload-batches/{first_id}").json()
    assert history["isCurrent"] is False
    assert len(history["invoices"]) == 3
    assert [item["monthKey"] for item in history["monthlyRevenue"]] == ["2024-01", "2024-02"]


def test_batch_detail_lists_invoice_lines(client: TestClient) -> None:
    batch_id = _upload(client, _three_invoices()).json()["uploadBatchId"]

    detail = client.get(f"/api/v1/revenue/upload-batches/{batch_id}").json()

    assert detail["id"] == batch_id
    assert detail["totalInvoices"] == 3
    assert detail["totalAmount"] == 42000.0
    assert [(row["invoiceDate"], row["amount"], row["monthReference"]) for row in detail["invoices"]] == [
        ("2024-01-15", 12000.0, "2024-01"),
        ("2024-01-20", 6000.0, "2024-01"),
        ("2024-02-01", 24000.0, "2024-02"),
    ]


def test_batch_list_limit(client: TestClient) -> None:
    for _ in range(3):
        _upload(client, _three_invoices())

    assert len(client.get("/api/v1/revenue/upload-batches", params={"limit": 2}).json()["items"]) == 2
    assert client.get("/api/v1/revenue/upload-batches", params={"limit": 0}).status_code == 422
    assert client.get("/api/v1/revenue/upload-batches", params={"limit": 201}).status_code == 422


def test_unknown_batch_returns_404(client: TestClient) -> None:
    response = client.get("/api/v1/revenue/upload-batches/00000000-0000-0000-0000-000000000001")

    assert response.status_code == 404
    assert response.json()["detail"] == "Upload batch not found."


def test_detection_failure_payload(client: TestClient, db_session: Session) -> None:
    content = _xlsx_bytes([["Name", "Notes"], ["Alice", "paid"], ["Bob", "late"]])

    response = _upload(client, content)

    assert response.status_code == 400
    payload = response.json()
    assert set(payload) == {"error", "suggestions"}
    assert payload["error"] == "Could not detect date or value columns"
    assert len(payload["suggestions"]) == 4
    assert db_session.scalars(select(RevenueUploadBatch)).all() == []


def test_no_valid_lines_payload(client: TestClient) -> None:
    content = _xlsx_bytes([["Invoice Date", "Gross (Source)"], ["2024-01-15", "n/a"], ["soon", 10]])

    response = _upload(client, content)

    assert response.status_code == 400
    payload = response.json()
    assert set(payload) == {"error", "suggestions", "formatDescription"}
    assert payload["formatDescription"].startswith("Detected invoice dates in column A")


def test_undecodable_upload_payload(client: TestClient) -> None:
    response = _upload(client, b"PK\x03\x04not a workbook")

    assert response.status_code == 400
    assert set(response.json()) == {"error"}


def test_unsupported_extension_is_rejected(client: TestClient) -> None:
    response = _upload(client, _three_invoices(), filename="invoices.pdf")

    assert response.status_code == 415
    assert ".pdf" in response.json()["detail"]


def test_oversized_upload_is_rejected(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "upload_max_bytes", 16)

    response = _upload(client, _three_invoices())

    assert response.status_code == 413


def test_persistence_failure_rolls_back(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def failing_flush(*args: object, **kwargs: object) -> None:
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "flush", failing_flush)

    response = _upload(client, _three_invoices())

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to process uploaded file. Failed to save upload batch: SQLAlchemyError"
    }
    monkeypatch.undo()
    assert db_session.scalars(select(RevenueUploadBatch)).all() == []
    assert db_session.scalar(select(RevenueSnapshotPointer)) is None


def test_inspect_describes_upload_without_persisting(client: TestClient, db_session: Session) -> None:
    response = _upload(client, _three_invoices(), path="uploads/inspect")

    assert response.status_code == 200
    report = response.json()
    assert report["sheetName"] == "Invoices"
    assert report["sourceFormat"] == "xlsx"
    assert report["totalRows"] == 4
    assert report["totalColumns"] == 2
    assert report["firstRowAsHeaders"] == ["Invoice Date", "Gross (Source)"]
    assert report["headerObjectKeys"] == ["Invoice Date", "Gross (Source)"]
    assert report["sampleDataWithHeaders"][0] == {"Invoice Date": "2024-01-15", "Gross (Source)": 12000}
    assert report["columnInfo"][1] == {
        "index": 1,
        "letter": "B",
        "header": "Gross (Source)",
        "sampleData": [12000, 6000, 24000],
        "totalNonEmptyRows": 3,
    }
    assert report["detection"]["detected"] is True
    assert report["detection"]["dateColumn"] == "A"
    assert report["detection"]["amountColumn"] == "B"
    assert db_session.scalars(select(RevenueUploadBatch)).all() == []


def test_inspect_reports_detection_failure(client: TestClient) -> None:
    content = _xlsx_bytes([["Name", "Amount"], ["Alice", 100], ["Bob", 200]])

    report = _upload(client, content, path="uploads/inspect").json()

    assert report["detection"] == {
        "detected": False,
        "error": "Could not detect date column",
        "suggestions": report["detection"]["suggestions"],
    }
    assert len(report["detection"]["suggestions"]) == 3
