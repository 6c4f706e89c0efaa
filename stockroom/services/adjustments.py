"""
Application des corrections de quantité validées par le relecteur.

Règle métier :
    nouvelle quantité = quantité du fichier
    mouvement ADJUSTMENT = nouvelle quantité - quantité actuelle (signé)

Propriétés :
- une seule transaction pour tout le lot (commit à la fin, rollback sinon)
- chaque ligne est validée et classée indépendamment (applied / skipped / failed)
- arithmétique Decimal exacte, jamais de float
- verrouillage SQL (FOR UPDATE) des pièces touchées
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockroom.app.db.models.core_types import MovementType
from stockroom.app.schemas.reconciliation import (
    AdjustmentIssue,
    AdjustmentOutcome,
    AdjustmentRequest,
    AppliedAdjustment,
)
from stockroom.config import SETTINGS
from stockroom.services.errors import EmptyAdjustmentSet, TransactionError
from stockroom.services.repository import (
    append_movement,
    find_part,
    is_whole,
    quantity_storage_error,
    requires_integer_quantity,
)

logger = logging.getLogger(__name__)

REASON_PART_MISSING = "part does not exist"
REASON_NEGATIVE_TARGET = "target quantity cannot be negative"
REASON_ALREADY_MATCHES = "quantities already match"


def _apply_one(
    db: Session,
    request: AdjustmentRequest,
    *,
    actor_id: str | None,
    reference_code: str,
    applied: list[AppliedAdjustment],
    skipped: list[AdjustmentIssue],
    failed: list[AdjustmentIssue],
) -> None:
    part = find_part(db, request.part_id, for_update=True)
    if not part:
        failed.append(
            AdjustmentIssue(
                part_id=request.part_id,
                catalog_number=request.catalog_number,
                reason=REASON_PART_MISSING,
            )
        )
        return

    def issue(reason: str) -> AdjustmentIssue:
        return AdjustmentIssue(
            part_id=part.id,
            catalog_number=part.catalog_number,
            name=part.name,
            reason=reason,
        )

    target = Decimal(request.file_quantity)
    if target < 0:
        failed.append(issue(REASON_NEGATIVE_TARGET))
        return

    # valeur stockée telle quelle ou refusée : jamais arrondie par la colonne
    storage_error = quantity_storage_error(target)
    if storage_error:
        failed.append(issue(f"target quantity {storage_error}"))
        return

    integer_unit = requires_integer_quantity(part.unit)
    if integer_unit and not is_whole(target):
        failed.append(issue(f"quantity for unit {part.unit!r} must be a whole number"))
        return

    previous = Decimal(part.current_quantity)
    difference = target - previous

    if difference == 0:
        skipped.append(issue(REASON_ALREADY_MATCHES))
        return

    # stock actuel non entier pour une unité à la pièce (unité modifiée après coup)
    if integer_unit and not is_whole(difference):
        failed.append(issue(f"difference for unit {part.unit!r} must be a whole number"))
        return

    part.current_quantity = target
    mv = append_movement(
        db,
        part=part,
        movement_type=MovementType.adjustment,
        quantity=difference,
        performed_by_id=actor_id,
        reference_code=reference_code,
        notes=f"Stock reconciliation: {previous} -> {target}",
    )

    applied.append(
        AppliedAdjustment(
            part_id=part.id,
            catalog_number=part.catalog_number,
            name=part.name,
            previous_quantity=previous,
            new_quantity=target,
            difference=difference,
            movement_id=mv.id,
        )
    )


def apply_adjustments(
    db: Session,
    requests: Sequence[AdjustmentRequest],
    *,
    actor_id: str | None,
    reference_code: str | None = None,
) -> AdjustmentOutcome:
    """
    Applique les corrections dans une unité de travail unique.

    Erreurs :
    - EmptyAdjustmentSet : liste vide (rien n'est lu ni écrit)
    - TransactionError : échec du flush/commit, rien n'est persisté
    """
    if not requests:
        raise EmptyAdjustmentSet("No adjustments were selected")

    reference_code = reference_code or SETTINGS.adjustment_reference_code

    applied: list[AppliedAdjustment] = []
    skipped: list[AdjustmentIssue] = []
    failed: list[AdjustmentIssue] = []

    try:
        for request in requests:
            _apply_one(
                db,
                request,
                actor_id=actor_id,
                reference_code=reference_code,
                applied=applied,
                skipped=skipped,
                failed=failed,
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Adjustment batch of %d item(s) rolled back", len(requests))
        raise TransactionError("Could not save stock adjustments, no changes were applied") from e

    for item in failed:
        logger.warning("Adjustment failed for %s: %s", item.catalog_number, item.reason)
    logger.info(
        "Adjustment batch by %s: %d applied, %d skipped, %d failed",
        actor_id,
        len(applied),
        len(skipped),
        len(failed),
    )

    return AdjustmentOutcome(applied=tuple(applied), skipped=tuple(skipped), failed=tuple(failed))
