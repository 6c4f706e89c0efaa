from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockroom.app.api.deps import get_db
from stockroom.app.db.base import Base
from stockroom.app.db.models.core_types import Role
from stockroom.app.db.models.models_v1 import Part, User
from stockroom.app.main import app


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Session DB isolée par test.

    SQLite en mémoire, une seule connexion partagée (StaticPool) :
    le schéma et les données disparaissent à la fin du test.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def manager(db_session) -> User:
    user = User(email="manager@stockroom.test", role=Role.manager, active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def worker(db_session) -> User:
    user = User(email="worker@stockroom.test", role=Role.worker, active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def make_part(db_session):
    def _make_part(catalog_number, quantity, *, unit="szt", name=None):
        part = Part(
            catalog_number=catalog_number,
            name=name or f"Part {catalog_number}",
            unit=unit,
            current_quantity=Decimal(str(quantity)),
        )
        db_session.add(part)
        db_session.commit()
        return part

    return _make_part


@pytest.fixture
def client(db_session) -> TestClient:
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
