"""Failures that abort an ingestion run.

Row-level parse failures are deliberately absent: a row whose date or amount
cannot be parsed is dropped by the extractor and never raised.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from moniteye.ingestion.orchestrator import IngestionStage


class IngestionError(Exception):
    """Base class; carries the caller-facing message and optional suggestions."""

    status_code = 400

    def __init__(self, message: str, *, suggestions: Iterable[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestions = list(suggestions) if suggestions is not None else None
        self.stage: IngestionStage | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.message}
        if self.suggestions is not None:
            payload["suggestions"] = list(self.suggestions)
        return payload


class FileFormatError(IngestionError):
    """Upload could not be decoded as a table, or holds fewer than two rows."""


class SchemaDetectionError(IngestionError):
    """No usable date/amount column pair could be inferred."""

    def __init__(self, reason: str, suggestions: Iterable[str]) -> None:
        super().__init__(reason, suggestions=suggestions)

    @property
    def reason(self) -> str:
        return self.message


class NoValidLinesError(IngestionError):
    """Every data row was dropped during extraction."""

    def __init__(self, format_description: str) -> None:
        super().__init__(
            "No valid invoice data found after processing. "
            "Please check the detected format matches your data.",
            suggestions=[
                "Verify that your date column contains recognizable date formats (YYYY-MM-DD, DD/MM/YYYY, etc.)",
                "Verify that your value column contains numeric amounts",
                "Check for empty rows or cells in your data",
            ],
        )
        self.format_description = format_description

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["formatDescription"] = self.format_description
        return payload


class PersistenceError(IngestionError):
    """The storage collaborator rejected a write; never retried."""

    status_code = 500

    def to_payload(self) -> dict[str, object]:
        return {"error": f"Failed to process uploaded file. {self.message}"}


class TotalTooLargeError(IngestionError):
    """The upload's summed amount does not fit the stored money columns."""

    def __init__(self) -> None:
        super().__init__(
            "Total invoice amount is too large to store. Split the file into smaller uploads.",
            suggestions=["Each upload's total must stay below 1,000,000,000,000.00"],
        )
