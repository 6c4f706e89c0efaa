from stockroom.app.db.models.core_types import Role
from stockroom.app.db.seed import seed_admin


def test_seed_admin_is_idempotent(db_session):
    first = seed_admin(db_session, " Admin@Stockroom.local ")
    second = seed_admin(db_session, "admin@stockroom.local")

    assert first.id == second.id
    assert first.email == "admin@stockroom.local"
    assert first.role == Role.admin
    assert first.active is True
