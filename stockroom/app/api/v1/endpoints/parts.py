from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_current_user, get_db, require_inventory_manager
from stockroom.app.db.models.models_v1 import User
from stockroom.app.schemas.part import PartCreate, PartRead, PartUpdate
from stockroom.services.errors import StockroomError
from stockroom.services.repository import create_part, get_part, search_parts, update_part

router = APIRouter(prefix="/parts")


@router.get("", response_model=list[PartRead])
def list_parts(
    search: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return search_parts(db, search, limit=limit)


@router.post("", response_model=PartRead, status_code=201)
def create_new_part(
    payload: PartCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    try:
        p = create_part(
            db,
            catalog_number=payload.catalog_number,
            name=payload.name,
            unit=payload.unit,
            current_quantity=payload.current_quantity,
            minimum_quantity=payload.minimum_quantity,
            storage_location=payload.storage_location,
        )
        db.commit()
    except StockroomError:
        db.rollback()
        raise

    db.refresh(p)
    return p


@router.patch("/{part_id}", response_model=PartRead)
def update_existing_part(
    part_id: str,
    payload: PartUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_inventory_manager),
):
    try:
        p = get_part(db, part_id)
        update_part(
            db,
            p,
            catalog_number=payload.catalog_number,
            name=payload.name,
            unit=payload.unit,
            minimum_quantity=payload.minimum_quantity,
            storage_location=payload.storage_location,
        )
        db.commit()
    except StockroomError:
        db.rollback()
        raise

    db.refresh(p)
    return p
