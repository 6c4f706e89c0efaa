"""
Valeurs immuables du rapprochement (fichier ERP vs stock système).

Attributs en snake_case, JSON en camelCase (`missingInSystem`, `partId`, ...).
Les quantités restent des Decimal en Python et sortent en nombres en JSON.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Protocol

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Quantity = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )


class PartRecord(Protocol):
    """Ce que le moteur lit d'une pièce (ligne ORM Part ou PartSnapshot)."""

    id: str
    catalog_number: str
    name: str | None
    unit: str | None
    current_quantity: Decimal


class PartSnapshot(CamelModel):
    id: str
    catalog_number: str
    name: str | None = None
    unit: str | None = None
    current_quantity: Quantity


# ---------- FICHIER ----------
class FileRecord(CamelModel):
    catalog_number: str
    name: str | None = None
    unit: str | None = None
    quantity: Quantity


# ---------- RAPPORT ----------
class MissingItem(CamelModel):
    catalog_number: str
    name: str | None = None
    unit: str | None = None
    quantity: Quantity


class ExtraItem(CamelModel):
    part_id: str
    catalog_number: str
    name: str | None = None
    unit: str | None = None
    quantity: Quantity


class QuantityDifference(CamelModel):
    part_id: str
    catalog_number: str
    name: str | None = None
    unit: str | None = None
    system_quantity: Quantity
    file_quantity: Quantity
    difference: Quantity


class UnitMismatch(CamelModel):
    part_id: str
    catalog_number: str
    system_unit: str | None = None
    file_unit: str | None = None


class NameMismatch(CamelModel):
    part_id: str
    catalog_number: str
    system_name: str | None = None
    file_name: str | None = None


class ReconciliationSummary(CamelModel):
    total_file_items: int = 0
    total_system_items: int = 0
    missing_count: int = 0
    extra_count: int = 0
    quantity_mismatch_count: int = 0
    unit_mismatch_count: int = 0
    name_mismatch_count: int = 0


class DiscrepancyReport(CamelModel):
    summary: ReconciliationSummary
    missing_in_system: tuple[MissingItem, ...] = ()
    extra_in_system: tuple[ExtraItem, ...] = ()
    quantity_differences: tuple[QuantityDifference, ...] = ()
    unit_mismatches: tuple[UnitMismatch, ...] = ()
    name_differences: tuple[NameMismatch, ...] = ()


# ---------- AJUSTEMENTS ----------
class AdjustmentRequest(CamelModel):
    part_id: str = Field(min_length=1)
    catalog_number: str
    file_quantity: Quantity


class ApplyAdjustmentsRequest(CamelModel):
    adjustments: list[AdjustmentRequest] = Field(default_factory=list)


class AppliedAdjustment(CamelModel):
    part_id: str
    catalog_number: str
    name: str | None = None
    previous_quantity: Quantity
    new_quantity: Quantity
    difference: Quantity
    movement_id: str


class AdjustmentIssue(CamelModel):
    part_id: str | None = None
    catalog_number: str
    name: str | None = None
    reason: str


class AdjustmentOutcome(CamelModel):
    applied: tuple[AppliedAdjustment, ...] = ()
    skipped: tuple[AdjustmentIssue, ...] = ()
    failed: tuple[AdjustmentIssue, ...] = ()


# ---------- RÉSOLUTION DES MANQUANTS ----------
class MissingCreateRequest(CamelModel):
    report: DiscrepancyReport
    index: int = Field(ge=0)


class MissingIgnoreRequest(CamelModel):
    report: DiscrepancyReport
    index: int = Field(ge=0)


class MissingMapRequest(CamelModel):
    report: DiscrepancyReport
    index: int = Field(ge=0)
    part_id: str
    new_catalog_number: str | None = None
    new_name: str | None = None
    update_details: bool = False


class MissingCreateAllRequest(CamelModel):
    report: DiscrepancyReport


class MissingCreateAllResponse(CamelModel):
    report: DiscrepancyReport
    created: int
    failed: int
    error: str | None = None
