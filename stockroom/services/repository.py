"""
Accès aux pièces et au journal des mouvements.

Fonctions simples sur une Session : elles font flush(), jamais commit().
Le commit appartient à l'appelant (endpoint ou service transactionnel).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockroom.app.db.models.models_v1 import Part, StockMovement
from stockroom.app.db.models.core_types import MovementType
from stockroom.services.errors import PartConflict, PartNotFound, PartValidationError

# Unités comptées à la pièce : quantités entières uniquement
INTEGER_UNITS = {"szt", "szt.", "pcs", "pc"}


def requires_integer_quantity(unit: str | None) -> bool:
    if not unit:
        return False
    return unit.strip().lower() in INTEGER_UNITS


def is_whole(value: Decimal) -> bool:
    return value == value.to_integral_value()


# Numeric(14, 4) : 4 décimales, 10 chiffres avant la virgule
QUANTITY_SCALE = Decimal("0.0001")
MAX_QUANTITY = Decimal("9999999999.9999")


def quantity_storage_error(value: Decimal) -> str | None:
    """Raison du refus si la valeur ne tient pas telle quelle dans une colonne quantité."""
    if abs(value) > MAX_QUANTITY:
        return f"cannot exceed {MAX_QUANTITY}"
    # avant quantize : hors borne, quantize lèverait InvalidOperation
    if value != value.quantize(QUANTITY_SCALE, rounding=ROUND_DOWN):
        return "must have at most 4 decimal places"
    return None


# ---------- PARTS ----------
def find_all_parts(db: Session) -> list[Part]:
    return list(db.execute(select(Part).order_by(Part.catalog_number)).scalars().all())


def find_part(db: Session, part_id: str, *, for_update: bool = False) -> Part | None:
    stmt = select(Part).where(Part.id == part_id)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def get_part(db: Session, part_id: str, *, for_update: bool = False) -> Part:
    part = find_part(db, part_id, for_update=for_update)
    if not part:
        raise PartNotFound(f"Part {part_id} not found")
    return part


def find_part_by_catalog_number(db: Session, catalog_number: str) -> Part | None:
    key = catalog_number.strip().lower()
    return (
        db.execute(select(Part).where(func.lower(Part.catalog_number) == key))
        .scalars()
        .first()
    )


def search_parts(db: Session, text: str | None = None, *, limit: int = 50) -> list[Part]:
    stmt = select(Part).order_by(Part.catalog_number).limit(limit)
    if text and text.strip():
        pattern = f"%{text.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Part.catalog_number).like(pattern),
                func.lower(Part.name).like(pattern),
            )
        )
    return list(db.execute(stmt).scalars().all())


def _validate_quantities(
    unit: str | None,
    current_quantity: Decimal | None,
    minimum_quantity: Decimal | None,
) -> None:
    for label, value in (("current quantity", current_quantity), ("minimum quantity", minimum_quantity)):
        if value is None:
            continue
        if value < 0:
            raise PartValidationError(f"{label.capitalize()} cannot be negative")
        storage_error = quantity_storage_error(value)
        if storage_error:
            raise PartValidationError(f"{label.capitalize()} {storage_error}")
        if requires_integer_quantity(unit) and not is_whole(value):
            raise PartValidationError(f"{label.capitalize()} for unit {unit!r} must be a whole number")


def _ensure_catalog_number_free(db: Session, catalog_number: str, *, exclude_id: str | None = None) -> None:
    existing = find_part_by_catalog_number(db, catalog_number)
    if existing and existing.id != exclude_id:
        raise PartConflict(f"Catalog number {catalog_number!r} already exists")


def create_part(
    db: Session,
    *,
    catalog_number: str,
    name: str | None = None,
    unit: str | None = None,
    current_quantity: Decimal = Decimal("0"),
    minimum_quantity: Decimal | None = None,
    storage_location: str | None = None,
) -> Part:
    catalog_number = catalog_number.strip()
    if not catalog_number:
        raise PartValidationError("Catalog number is required")
    name = (name or "").strip() or catalog_number
    unit = unit.strip().lower() if unit and unit.strip() else None

    _validate_quantities(unit, current_quantity, minimum_quantity)
    _ensure_catalog_number_free(db, catalog_number)

    part = Part(
        catalog_number=catalog_number,
        name=name,
        unit=unit,
        current_quantity=current_quantity,
        minimum_quantity=minimum_quantity,
        storage_location=storage_location,
    )
    db.add(part)
    db.flush()
    return part


def update_part(
    db: Session,
    part: Part,
    *,
    catalog_number: str | None = None,
    name: str | None = None,
    unit: str | None = None,
    minimum_quantity: Decimal | None = None,
    storage_location: str | None = None,
) -> Part:
    """
    Mise à jour des champs descriptifs d'une pièce.

    current_quantity n'est pas modifiable ici : toute variation de stock
    passe par un mouvement (voir services.adjustments).
    """
    if catalog_number is not None:
        catalog_number = catalog_number.strip()
        if not catalog_number:
            raise PartValidationError("Catalog number is required")
        _ensure_catalog_number_free(db, catalog_number, exclude_id=part.id)
        part.catalog_number = catalog_number

    if name is not None:
        if not name.strip():
            raise PartValidationError("Name is required")
        part.name = name.strip()

    if unit is not None:
        part.unit = unit.strip().lower() or None

    if storage_location is not None:
        part.storage_location = storage_location.strip() or None

    _validate_quantities(part.unit, None, minimum_quantity)
    if minimum_quantity is not None:
        part.minimum_quantity = minimum_quantity

    db.flush()
    return part


# ---------- MOVEMENTS (append-only) ----------
def append_movement(
    db: Session,
    *,
    part: Part,
    movement_type: MovementType,
    quantity: Decimal,
    performed_by_id: str | None,
    reference_code: str | None = None,
    notes: str | None = None,
    movement_date: datetime | None = None,
) -> StockMovement:
    mv = StockMovement(
        part_id=part.id,
        movement_type=movement_type,
        quantity=quantity,
        movement_date=movement_date or datetime.now(timezone.utc),
        reference_code=reference_code,
        notes=notes,
        performed_by_id=performed_by_id,
    )
    db.add(mv)
    db.flush()  # id du mouvement
    return mv


def list_movements(
    db: Session,
    *,
    part_id: str | None = None,
    movement_type: MovementType | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    stmt = select(StockMovement).order_by(StockMovement.movement_date.desc(), StockMovement.created_at.desc())
    if part_id is not None:
        stmt = stmt.where(StockMovement.part_id == part_id)
    if movement_type is not None:
        stmt = stmt.where(StockMovement.movement_type == movement_type)
    return list(db.execute(stmt.limit(limit)).scalars().all())
