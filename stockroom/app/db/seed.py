from __future__ import annotations

import os

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockroom.app.db.base import Base
from stockroom.app.db.session import SessionLocal, engine
from stockroom.app.db.models.models_v1 import User
from stockroom.app.db.models.core_types import Role


def seed_admin(db: Session, email: str) -> User:
    """Crée (une seule fois) le compte ADMIN qui pilote les rapprochements."""
    email = email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if not user:
        user = User(email=email, role=Role.admin, active=True)
        db.add(user)
        db.commit()
    return user


def run_seed():
    # pas de migrations : schéma créé directement depuis les modèles
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user = seed_admin(db, os.getenv("SEED_ADMIN_EMAIL", "admin@stockroom.local"))
        print(f"SEED OK: admin={user.email} X-User-Id={user.id}")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
