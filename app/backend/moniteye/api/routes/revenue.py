"""Revenue upload and reporting endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from moniteye.core.config import get_settings
from moniteye.db.dependencies import get_db_session
from moniteye.services.revenue_service import RevenueService

router = APIRouter(prefix="/revenue", tags=["revenue"])


def _revenue_service(db: Session) -> RevenueService:
    return RevenueService(db)


def _read_upload(file: UploadFile) -> bytes:
    # ceiling + 1 bytes, so an oversized upload is still visible as oversized
    return file.file.read(get_settings().upload_max_bytes + 1)


@router.post("/uploads", status_code=status.HTTP_201_CREATED)
def upload_revenue_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    result = _revenue_service(db).ingest_upload(filename=file.filename, content=_read_upload(file))
    return result.to_payload()


@router.post("/uploads/inspect")
def inspect_revenue_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _revenue_service(db).inspect_upload(filename=file.filename, content=_read_upload(file))


@router.get("/summary")
def get_revenue_summary(db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _revenue_service(db).revenue_summary()


@router.get("/upload-batches")
def list_upload_batches(
    limit: int | None = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _revenue_service(db)
    current = service.current_batch_id()
    rows = service.list_batches(limit)
    return {"items": [service.serialize_batch(row, current_batch_id=current) for row in rows]}


@router.get("/upload-batches/{batch_id}")
def get_upload_batch(batch_id: UUID, db: Session = Depends(get_db_session)) -> dict[str, object]:
    return _revenue_service(db).get_batch_detail(batch_id)
