from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from stockroom.app.db.session import SessionLocal
from stockroom.app.db.models.models_v1 import User
from stockroom.app.db.models.core_types import RECONCILIATION_ROLES

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> User:
    """
    Utilisateur courant, déjà authentifié en amont (gateway / middleware).
    Ici on ne fait que résoudre l'identifiant transmis.
    """
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    user = db.get(User, user_id.strip())
    if not user or not user.active:
        raise HTTPException(status_code=401, detail="Unknown or inactive user")
    return user


def require_inventory_manager(user: User = Depends(get_current_user)) -> User:
    if user.role not in RECONCILIATION_ROLES:
        raise HTTPException(status_code=403, detail="Inventory manager or administrator role required")
    return user
