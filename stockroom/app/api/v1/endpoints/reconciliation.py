from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db, require_inventory_manager
from stockroom.app.db.models.models_v1 import User
from stockroom.app.schemas.reconciliation import (
    AdjustmentOutcome,
    ApplyAdjustmentsRequest,
    DiscrepancyReport,
    MissingCreateAllRequest,
    MissingCreateAllResponse,
    MissingCreateRequest,
    MissingIgnoreRequest,
    MissingMapRequest,
)
from stockroom.config import SETTINGS
from stockroom.services.adjustments import apply_adjustments
from stockroom.services.errors import UploadTooLarge
from stockroom.services.missing_items import (
    create_all_missing,
    create_missing_part,
    ignore_missing,
    map_missing_item,
)
from stockroom.services.reconciliation import reconcile
from stockroom.services.repository import find_all_parts
from stockroom.services.spreadsheet import ingest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reconcile")


# ---------- Helpers ----------
def _read_upload(file: UploadFile) -> bytes:
    limit = SETTINGS.max_upload_bytes
    data = file.file.read(limit + 1)
    if len(data) > limit:
        raise UploadTooLarge(f"File is larger than the {limit // (1024 * 1024)} MB limit")
    return data


# ---------- Endpoints ----------
@router.post("", response_model=DiscrepancyReport)
def reconcile_stock_report(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    """
    Compare un export de stock ERP (XLSX / XLS / CSV) aux pièces du système.
    Lecture seule : rien n'est écrit.
    """
    data = _read_upload(file)
    logger.info("User %s uploaded %r (%d bytes) for reconciliation", user.id, file.filename, len(data))

    file_records = ingest(data, filename=file.filename)
    return reconcile(file_records, find_all_parts(db))


@router.post("/apply", response_model=AdjustmentOutcome)
def apply_stock_adjustments(
    payload: ApplyAdjustmentsRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    return apply_adjustments(db, payload.adjustments, actor_id=user.id)


@router.post("/missing/create", response_model=DiscrepancyReport)
def create_part_for_missing_item(
    payload: MissingCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    report, _ = create_missing_part(db, payload.report, payload.index)
    return report


@router.post("/missing/map", response_model=DiscrepancyReport)
def map_missing_item_to_part(
    payload: MissingMapRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    report, _ = map_missing_item(
        db,
        payload.report,
        payload.index,
        part_id=payload.part_id,
        new_catalog_number=payload.new_catalog_number,
        new_name=payload.new_name,
        update_details=payload.update_details,
    )
    return report


@router.post("/missing/ignore", response_model=DiscrepancyReport)
def ignore_missing_item(
    payload: MissingIgnoreRequest,
    user: User = Depends(require_inventory_manager),
):
    return ignore_missing(payload.report, payload.index)


@router.post("/missing/create-all", response_model=MissingCreateAllResponse)
def create_parts_for_all_missing_items(
    payload: MissingCreateAllRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    result = create_all_missing(db, payload.report)
    return MissingCreateAllResponse(
        report=result.report,
        created=result.created,
        failed=len(result.failures),
        error=result.error_message,
    )
