from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from stockroom.app.db.models.core_types import MovementType
from stockroom.app.schemas.reconciliation import CamelModel, Quantity


class PartRead(CamelModel):
    id: str
    catalog_number: str
    name: str
    unit: str | None = None
    current_quantity: Quantity
    minimum_quantity: Quantity | None = None
    storage_location: str | None = None


class PartCreate(CamelModel):
    catalog_number: str = Field(min_length=1, max_length=64)
    name: str | None = Field(default=None, max_length=255)
    unit: str | None = Field(default=None, max_length=32)
    current_quantity: Quantity = Field(default=Decimal("0"), ge=0)
    minimum_quantity: Quantity | None = Field(default=None, ge=0)
    storage_location: str | None = Field(default=None, max_length=255)


class PartUpdate(CamelModel):
    # pas de current_quantity : le stock ne bouge que par mouvement
    catalog_number: str | None = Field(default=None, min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    unit: str | None = Field(default=None, max_length=32)
    minimum_quantity: Quantity | None = Field(default=None, ge=0)
    storage_location: str | None = Field(default=None, max_length=255)


class MovementRead(CamelModel):
    id: str
    part_id: str
    movement_type: MovementType
    quantity: Quantity  # signé
    movement_date: datetime
    reference_code: str | None = None
    notes: str | None = None
    performed_by_id: str | None = None
