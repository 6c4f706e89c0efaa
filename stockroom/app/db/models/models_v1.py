from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.app.db.base import Base
from stockroom.app.db.models.core_types import Role, MovementType


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------- AUTH ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


# ---------- MASTER DATA ----------
class Part(Base):
    __tablename__ = "parts"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    catalog_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32))
    current_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"), nullable=False)
    minimum_quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    storage_location: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_part_current_qty_nonneg"),
        CheckConstraint("minimum_quantity IS NULL OR minimum_quantity >= 0", name="ck_part_minimum_qty_nonneg"),
    )


# ---------- INVENTORY ----------
class StockMovement(Base):
    __tablename__ = "stock_movements"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)

    part_id: Mapped[str] = mapped_column(
        ForeignKey("parts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    movement_type: Mapped[MovementType] = mapped_column(Enum(MovementType, name="movement_type"), nullable=False)
    # signe = sens du mouvement (ADJUSTMENT peut être négatif)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)

    movement_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reference_code: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    performed_by_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    part: Mapped[Part] = relationship()

    __table_args__ = (Index("ix_stock_movements_part_date", "part_id", "movement_date"),)
