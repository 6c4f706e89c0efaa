"""
Rapprochement d'un export de stock ERP avec les pièces du système.

Règle de jointure : numéro catalogue normalisé (strip + lower).
Une paire appariée peut tomber dans 0 à 3 catégories (quantité, unité, nom),
ce sont des axes indépendants.

Propriétés :
- pur (lecture du snapshot fourni, aucune écriture)
- déterministe (ordre du fichier pour les appariés, ordre du dépôt pour les extras)
"""

from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal
from typing import Sequence

from stockroom.app.schemas.reconciliation import (
    DiscrepancyReport,
    ExtraItem,
    FileRecord,
    MissingItem,
    NameMismatch,
    PartRecord,
    QuantityDifference,
    ReconciliationSummary,
    UnitMismatch,
)

logger = logging.getLogger(__name__)

QUANTITY_EPSILON = Decimal("0.0001")


def normalize_catalog_number(value: str) -> str:
    return value.strip().lower()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def units_differ(system_unit: str | None, file_unit: str | None) -> bool:
    system_unit = _clean(system_unit)
    file_unit = _clean(file_unit)
    if not system_unit or not file_unit:
        return False
    return system_unit.lower() != file_unit.lower()


def names_differ(system_name: str | None, file_name: str | None) -> bool:
    system_name = _clean(system_name)
    file_name = _clean(file_name)
    if not system_name or not file_name:
        return False
    return system_name != file_name


def quantities_differ(file_quantity: Decimal, system_quantity: Decimal) -> bool:
    return abs(Decimal(file_quantity) - Decimal(system_quantity)) > QUANTITY_EPSILON


def summarize(
    *,
    total_file_items: int,
    total_system_items: int,
    missing_in_system: Sequence[MissingItem],
    extra_in_system: Sequence[ExtraItem],
    quantity_differences: Sequence[QuantityDifference],
    unit_mismatches: Sequence[UnitMismatch],
    name_differences: Sequence[NameMismatch],
) -> ReconciliationSummary:
    return ReconciliationSummary(
        total_file_items=max(total_file_items, 0),
        total_system_items=max(total_system_items, 0),
        missing_count=len(missing_in_system),
        extra_count=len(extra_in_system),
        quantity_mismatch_count=len(quantity_differences),
        unit_mismatch_count=len(unit_mismatches),
        name_mismatch_count=len(name_differences),
    )


def _build_file_map(file_records: Sequence[FileRecord]) -> dict[str, FileRecord]:
    # dernière ligne gagnante en cas de doublon, ordre de première apparition conservé
    file_map: dict[str, FileRecord] = {}
    for record in file_records:
        file_map[normalize_catalog_number(record.catalog_number)] = record

    if len(file_map) != len(file_records):
        counts = Counter(normalize_catalog_number(r.catalog_number) for r in file_records)
        duplicates = sorted(key for key, count in counts.items() if count > 1)
        logger.warning(
            "File contains %d duplicated catalog number(s), last row wins: %s",
            len(duplicates),
            ", ".join(duplicates),
        )
    return file_map


def reconcile(
    file_records: Sequence[FileRecord],
    system_parts: Sequence[PartRecord],
) -> DiscrepancyReport:
    """Compare les lignes du fichier au snapshot complet des pièces."""
    file_map = _build_file_map(file_records)
    system_map = {normalize_catalog_number(p.catalog_number): p for p in system_parts}

    matched: set[str] = set()
    missing_in_system: list[MissingItem] = []
    quantity_differences: list[QuantityDifference] = []
    unit_mismatches: list[UnitMismatch] = []
    name_differences: list[NameMismatch] = []

    for key, item in file_map.items():
        part = system_map.get(key)
        if part is None:
            missing_in_system.append(
                MissingItem(
                    catalog_number=item.catalog_number,
                    name=item.name,
                    unit=item.unit,
                    quantity=item.quantity,
                )
            )
            continue

        matched.add(key)
        part_id = str(part.id)

        if units_differ(part.unit, item.unit):
            unit_mismatches.append(
                UnitMismatch(
                    part_id=part_id,
                    catalog_number=part.catalog_number,
                    system_unit=part.unit,
                    file_unit=item.unit,
                )
            )

        if names_differ(part.name, item.name):
            name_differences.append(
                NameMismatch(
                    part_id=part_id,
                    catalog_number=part.catalog_number,
                    system_name=part.name,
                    file_name=item.name,
                )
            )

        system_quantity = Decimal(part.current_quantity)
        if quantities_differ(item.quantity, system_quantity):
            quantity_differences.append(
                QuantityDifference(
                    part_id=part_id,
                    catalog_number=part.catalog_number,
                    name=part.name,
                    unit=part.unit,
                    system_quantity=system_quantity,
                    file_quantity=item.quantity,
                    difference=item.quantity - system_quantity,
                )
            )

    extra_in_system = [
        ExtraItem(
            part_id=str(part.id),
            catalog_number=part.catalog_number,
            name=part.name,
            unit=part.unit,
            quantity=Decimal(part.current_quantity),
        )
        for part in system_parts
        if normalize_catalog_number(part.catalog_number) not in matched
    ]

    summary = summarize(
        total_file_items=len(file_records),
        total_system_items=len(system_parts),
        missing_in_system=missing_in_system,
        extra_in_system=extra_in_system,
        quantity_differences=quantity_differences,
        unit_mismatches=unit_mismatches,
        name_differences=name_differences,
    )
    logger.info(
        "Reconciled %d file item(s) against %d part(s): %d missing, %d extra, "
        "%d quantity, %d unit, %d name difference(s)",
        summary.total_file_items,
        summary.total_system_items,
        summary.missing_count,
        summary.extra_count,
        summary.quantity_mismatch_count,
        summary.unit_mismatch_count,
        summary.name_mismatch_count,
    )

    return DiscrepancyReport(
        summary=summary,
        missing_in_system=tuple(missing_in_system),
        extra_in_system=tuple(extra_in_system),
        quantity_differences=tuple(quantity_differences),
        unit_mismatches=tuple(unit_mismatches),
        name_differences=tuple(name_differences),
    )
