from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from stockroom.app.db.models.core_types import MovementType
from stockroom.app.db.models.models_v1 import Part, StockMovement
from stockroom.app.schemas.reconciliation import AdjustmentRequest
from stockroom.services.adjustments import apply_adjustments
from stockroom.services.errors import EmptyAdjustmentSet, TransactionError


def _request(part, quantity, *, part_id=None) -> AdjustmentRequest:
    return AdjustmentRequest(
        part_id=part_id or part.id,
        catalog_number=part.catalog_number if part else "UNKNOWN",
        file_quantity=Decimal(str(quantity)),
    )


def _movements(db_session) -> list[StockMovement]:
    return list(db_session.execute(select(StockMovement)).scalars().all())


def test_apply_sets_quantity_and_appends_adjustment_movement(db_session, manager, make_part):
    part = make_part("A1", 3, unit="kg")

    outcome = apply_adjustments(db_session, [_request(part, 5)], actor_id=manager.id)

    assert outcome.skipped == () and outcome.failed == ()
    (applied,) = outcome.applied
    assert applied.previous_quantity == Decimal("3")
    assert applied.new_quantity == Decimal("5")
    assert applied.difference == Decimal("2")
    assert applied.difference == applied.new_quantity - applied.previous_quantity

    db_session.expire_all()
    assert db_session.get(Part, part.id).current_quantity == Decimal("5")

    (mv,) = _movements(db_session)
    assert mv.id == applied.movement_id
    assert mv.movement_type == MovementType.adjustment
    assert mv.quantity == Decimal("2")
    assert mv.part_id == part.id
    assert mv.performed_by_id == manager.id
    assert mv.reference_code == "ERP-STOCK-IMPORT"


def test_apply_records_negative_difference(db_session, manager, make_part):
    part = make_part("A1", 10, unit="szt")

    outcome = apply_adjustments(db_session, [_request(part, 4)], actor_id=manager.id)

    assert outcome.applied[0].difference == Decimal("-6")
    assert _movements(db_session)[0].quantity == Decimal("-6")


def test_apply_rejects_empty_request_list(db_session, manager):
    with pytest.raises(EmptyAdjustmentSet):
        apply_adjustments(db_session, [], actor_id=manager.id)


def test_unknown_part_fails_without_aborting_the_batch(db_session, manager, make_part):
    part = make_part("A1", 1, unit="kg")
    ghost = AdjustmentRequest(part_id="missing-id", catalog_number="GHOST", file_quantity=Decimal("2"))

    outcome = apply_adjustments(db_session, [ghost, _request(part, 2)], actor_id=manager.id)

    assert [(f.catalog_number, f.reason) for f in outcome.failed] == [("GHOST", "part does not exist")]
    assert [a.part_id for a in outcome.applied] == [part.id]


def test_negative_target_is_rejected(db_session, manager, make_part):
    part = make_part("A1", 1, unit="kg")

    outcome = apply_adjustments(db_session, [_request(part, -1)], actor_id=manager.id)

    assert outcome.applied == ()
    assert outcome.failed[0].reason == "target quantity cannot be negative"
    assert _movements(db_session) == []


def test_piece_unit_rejects_fractional_target(db_session, manager, make_part):
    part = make_part("A1", 5, unit="szt")

    outcome = apply_adjustments(db_session, [_request(part, "5.5")], actor_id=manager.id)

    assert outcome.applied == ()
    assert len(outcome.failed) == 1
    assert "whole number" in outcome.failed[0].reason
    db_session.expire_all()
    assert db_session.get(Part, part.id).current_quantity == Decimal("5")


def test_piece_unit_rejects_fractional_difference(db_session, manager, make_part):
    # stock saisi en kg puis unité passée en pièces
    part = make_part("A1", "2.5", unit="kg")
    part.unit = "PCS"
    db_session.commit()

    outcome = apply_adjustments(db_session, [_request(part, 4)], actor_id=manager.id)

    assert outcome.applied == ()
    assert outcome.failed[0].reason.startswith("difference for unit")


def test_matching_quantity_is_skipped(db_session, manager, make_part):
    part = make_part("A1", 7, unit="szt")

    outcome = apply_adjustments(db_session, [_request(part, "7.000")], actor_id=manager.id)

    assert outcome.applied == ()
    assert [(s.part_id, s.reason) for s in outcome.skipped] == [(part.id, "quantities already match")]
    assert _movements(db_session) == []


def test_outcome_partitions_requests_in_order(db_session, manager, make_part):
    a = make_part("A1", 1, unit="kg")
    b = make_part("B2", 2, unit="szt")
    c = make_part("C3", 3, unit="szt")

    outcome = apply_adjustments(
        db_session,
        [_request(a, "1.25"), _request(b, 2), _request(c, "3.5"), _request(c, 1)],
        actor_id=manager.id,
    )

    assert [x.catalog_number for x in outcome.applied] == ["A1", "C3"]
    assert [x.catalog_number for x in outcome.skipped] == ["B2"]
    assert [x.catalog_number for x in outcome.failed] == ["C3"]
    assert len(_movements(db_session)) == 2


def test_storage_failure_rolls_back_the_whole_batch(db_session, manager, make_part, monkeypatch):
    parts = [make_part(f"P{i}", i, unit="kg") for i in range(1, 6)]

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(TransactionError):
        apply_adjustments(
            db_session,
            [_request(p, 100) for p in parts],
            actor_id=manager.id,
        )

    monkeypatch.undo()
    db_session.expire_all()
    assert [db_session.get(Part, p.id).current_quantity for p in parts] == [
        Decimal(i) for i in range(1, 6)
    ]
    assert _movements(db_session) == []


def test_target_beyond_column_precision_fails_instead_of_rounding(db_session, manager, make_part):
    part = make_part("A1", 5, unit="kg")

    outcome = apply_adjustments(db_session, [_request(part, "5.00004")], actor_id=manager.id)

    assert outcome.applied == ()
    assert outcome.failed[0].reason == "target quantity must have at most 4 decimal places"
    db_session.expire_all()
    assert db_session.get(Part, part.id).current_quantity == Decimal("5")
    assert _movements(db_session) == []


def test_target_above_column_maximum_fails_without_aborting_the_batch(db_session, manager, make_part):
    big = make_part("A1", 1, unit="kg")
    ok = make_part("B2", 1, unit="kg")

    outcome = apply_adjustments(
        db_session,
        [_request(big, "10000000000"), _request(ok, "2.5")],
        actor_id=manager.id,
    )

    assert [f.catalog_number for f in outcome.failed] == ["A1"]
    assert outcome.failed[0].reason.startswith("target quantity cannot exceed")
    assert [a.catalog_number for a in outcome.applied] == ["B2"]
    assert [m.quantity for m in _movements(db_session)] == [Decimal("1.5")]
