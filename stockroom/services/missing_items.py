"""
Résolution des lignes "manquantes dans le système" d'un rapport de rapprochement.

Le rapport est tenu par le client : chaque transition reçoit un
DiscrepancyReport immuable et en retourne un nouveau. Les compteurs du
résumé sont recalculés depuis les collections après chaque transition.

Transitions pures : ignore_missing, mark_created, mark_mapped, mark_applied.
Orchestration (écrit en base puis applique la transition) :
create_missing_part, map_missing_item, create_all_missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockroom.app.db.models.models_v1 import Part
from stockroom.app.schemas.reconciliation import (
    AdjustmentOutcome,
    DiscrepancyReport,
    MissingItem,
    PartRecord,
    QuantityDifference,
)
from stockroom.services.errors import MissingItemNotFound, StockroomError
from stockroom.services.reconciliation import (
    normalize_catalog_number,
    quantities_differ,
    summarize,
)
from stockroom.services.repository import create_part, get_part, update_part

logger = logging.getLogger(__name__)


# ---------- TRANSITIONS ----------
def _replace(report: DiscrepancyReport, *, total_system_items: int | None = None, **collections) -> DiscrepancyReport:
    state = {
        "missing_in_system": report.missing_in_system,
        "extra_in_system": report.extra_in_system,
        "quantity_differences": report.quantity_differences,
        "unit_mismatches": report.unit_mismatches,
        "name_differences": report.name_differences,
    }
    state.update({key: tuple(value) for key, value in collections.items()})

    summary = summarize(
        total_file_items=report.summary.total_file_items,
        total_system_items=(
            report.summary.total_system_items if total_system_items is None else total_system_items
        ),
        **state,
    )
    return report.model_copy(update={"summary": summary, **state})


def _missing_at(report: DiscrepancyReport, index: int) -> MissingItem:
    if index < 0 or index >= len(report.missing_in_system):
        raise MissingItemNotFound(f"No missing item at position {index}")
    return report.missing_in_system[index]


def _without_missing(report: DiscrepancyReport, index: int) -> list[MissingItem]:
    _missing_at(report, index)
    remaining = list(report.missing_in_system)
    del remaining[index]
    return remaining


def ignore_missing(report: DiscrepancyReport, index: int) -> DiscrepancyReport:
    return _replace(report, missing_in_system=_without_missing(report, index))


def mark_created(report: DiscrepancyReport, index: int) -> DiscrepancyReport:
    return _replace(
        report,
        total_system_items=report.summary.total_system_items + 1,
        missing_in_system=_without_missing(report, index),
    )


def mark_mapped(
    report: DiscrepancyReport,
    index: int,
    part: PartRecord,
    *,
    original_catalog_number: str,
) -> DiscrepancyReport:
    """
    Rattache une ligne manquante à une pièce existante.

    - l'écart de quantité de la pièce est recalculé (remplacé ou retiré)
    - la pièce ne peut plus figurer dans les extras (ancien ou nouveau numéro)
    """
    item = _missing_at(report, index)
    part_id = str(part.id)
    system_quantity = Decimal(part.current_quantity)
    difference = item.quantity - system_quantity

    differences = [d for d in report.quantity_differences if d.part_id != part_id]
    if quantities_differ(item.quantity, system_quantity):
        differences.append(
            QuantityDifference(
                part_id=part_id,
                catalog_number=part.catalog_number,
                name=part.name,
                unit=part.unit,
                system_quantity=system_quantity,
                file_quantity=item.quantity,
                difference=difference,
            )
        )

    stale_keys = {
        normalize_catalog_number(original_catalog_number),
        normalize_catalog_number(part.catalog_number),
    }
    extra = [
        e
        for e in report.extra_in_system
        if e.part_id != part_id and normalize_catalog_number(e.catalog_number) not in stale_keys
    ]

    return _replace(
        report,
        missing_in_system=_without_missing(report, index),
        extra_in_system=extra,
        quantity_differences=differences,
    )


def mark_applied(report: DiscrepancyReport, outcome: AdjustmentOutcome) -> DiscrepancyReport:
    """Retire les écarts traités (appliqués ou déjà alignés) ; les échecs restent."""
    processed = {a.part_id for a in outcome.applied}
    processed.update(s.part_id for s in outcome.skipped if s.part_id)
    return _replace(
        report,
        quantity_differences=[d for d in report.quantity_differences if d.part_id not in processed],
    )


# ---------- ORCHESTRATION ----------
def _create_from_item(db: Session, item: MissingItem) -> Part:
    return create_part(
        db,
        catalog_number=item.catalog_number,
        name=item.name,
        unit=item.unit,
        current_quantity=item.quantity,
    )


def create_missing_part(db: Session, report: DiscrepancyReport, index: int) -> tuple[DiscrepancyReport, Part]:
    item = _missing_at(report, index)
    try:
        part = _create_from_item(db, item)
        db.commit()
    except (StockroomError, SQLAlchemyError):
        db.rollback()
        raise

    logger.info("Created part %s from missing item", part.catalog_number)
    return mark_created(report, index), part


def map_missing_item(
    db: Session,
    report: DiscrepancyReport,
    index: int,
    *,
    part_id: str,
    new_catalog_number: str | None = None,
    new_name: str | None = None,
    update_details: bool = False,
) -> tuple[DiscrepancyReport, Part]:
    _missing_at(report, index)
    part = get_part(db, part_id)
    original_catalog_number = part.catalog_number

    if update_details:
        catalog_number = (new_catalog_number or "").strip() or None
        name = (new_name or "").strip() or None
        if (catalog_number and catalog_number != part.catalog_number) or (name and name != part.name):
            try:
                update_part(db, part, catalog_number=catalog_number, name=name)
                db.commit()
            except (StockroomError, SQLAlchemyError):
                db.rollback()
                raise
            logger.info("Renamed part %s to %s (%s)", original_catalog_number, part.catalog_number, part.name)

    return (
        mark_mapped(report, index, part, original_catalog_number=original_catalog_number),
        part,
    )


@dataclass(frozen=True, slots=True)
class BulkCreateResult:
    report: DiscrepancyReport
    created: int
    failures: tuple[tuple[str, str], ...]

    @property
    def error_message(self) -> str | None:
        if not self.failures:
            return None
        details = "; ".join(f"{catalog}: {reason}" for catalog, reason in self.failures)
        return f"Could not create {len(self.failures)} part(s): {details}"


def create_all_missing(db: Session, report: DiscrepancyReport) -> BulkCreateResult:
    """
    Crée une pièce pour chaque ligne manquante, séquentiellement.

    Un échec n'interrompt pas la boucle : la ligne reste dans le rapport et
    l'erreur est agrégée dans error_message.
    """
    created = 0
    failures: list[tuple[str, str]] = []
    index = 0

    for item in list(report.missing_in_system):
        try:
            _create_from_item(db, item)
            db.commit()
        except (StockroomError, SQLAlchemyError) as e:
            db.rollback()
            reason = e.message if isinstance(e, StockroomError) else "database error"
            logger.warning("Bulk create failed for %s: %s", item.catalog_number, reason)
            failures.append((item.catalog_number, reason))
            index += 1
            continue

        report = mark_created(report, index)
        created += 1

    logger.info("Bulk create: %d created, %d failed", created, len(failures))
    return BulkCreateResult(report=report, created=created, failures=tuple(failures))
