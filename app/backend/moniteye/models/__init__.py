"""ORM model package."""

from moniteye.models.entities import (
    InvoiceEntry,
    MonthlyRevenueSnapshot,
    RevenueSnapshotPointer,
    RevenueUploadBatch,
)

__all__ = [
    "InvoiceEntry",
    "MonthlyRevenueSnapshot",
    "RevenueSnapshotPointer",
    "RevenueUploadBatch",
]
