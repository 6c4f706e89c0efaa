from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_current_user, get_db
from stockroom.app.db.models.models_v1 import User
from stockroom.app.db.models.core_types import MovementType
from stockroom.app.schemas.part import MovementRead
from stockroom.services.repository import list_movements

router = APIRouter(prefix="/stock-movements")


@router.get("", response_model=list[MovementRead])
def get_stock_movements(
    part_id: str | None = None,
    movement_type: MovementType | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Journal des mouvements (READ ONLY)
    - append-only : aucune route de modification / suppression
    - plus récents d'abord
    """
    return list_movements(db, part_id=part_id, movement_type=movement_type, limit=limit)
