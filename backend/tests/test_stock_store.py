"""
StockRecord store: keyed upsert, strict and clamped decrease, movement audit.
"""

from decimal import Decimal

import pytest

from stockledger.errors import InsufficientStock, StockNotFound, ValidationError
from stockledger.kinds import DocumentKind
from stockledger.models import StockMovement, StockRecord
from stockledger.services import stock_store
from stockledger.services.directives import StockDirective, StockKey


def test_increase_creates_record_with_cost(db_session, product_x, store_a):
    key = StockKey(product_x.id, store_a.id)

    record = stock_store.increase(key, 10, Decimal("5.00"))
    db_session.commit()

    assert record.id is not None
    assert record.quantity == 10
    assert record.unit_cost == Decimal("5.00")
    assert stock_store.get_or_none(product_x.id, store_a.id).id == record.id


def test_increase_without_cost_defaults_to_zero_and_keeps_existing_cost(db_session, product_x, store_a):
    key = StockKey(product_x.id, store_a.id)

    record = stock_store.increase(key, 3)
    assert record.unit_cost == Decimal("0.00")

    stock_store.increase(key, 2, Decimal("4.00"))
    stock_store.increase(key, 1)
    db_session.commit()

    assert record.quantity == 6
    assert record.unit_cost == Decimal("4.00")


def test_increase_overwrites_unit_cost_last_write_wins(db_session, product_x, store_a):
    key = StockKey(product_x.id, store_a.id)
    stock_store.increase(key, 10, Decimal("5.00"))
    record = stock_store.increase(key, 10, Decimal("7.00"))
    db_session.commit()

    # Not a weighted average (6.00): the latest cost simply replaces the old one
    assert record.quantity == 20
    assert record.unit_cost == Decimal("7.00")


def test_null_store_and_batch_are_distinct_keys(db_session, product_x, store_a, batch_1):
    no_store = stock_store.increase(StockKey(product_x.id), 1)
    in_store = stock_store.increase(StockKey(product_x.id, store_a.id), 2)
    in_batch = stock_store.increase(StockKey(product_x.id, store_a.id, batch_1.id), 3)
    db_session.commit()

    assert len({no_store.id, in_store.id, in_batch.id}) == 3
    assert stock_store.get_or_none(product_x.id).quantity == 1
    assert stock_store.get_or_none(product_x.id, store_a.id).quantity == 2
    assert stock_store.get_or_none(product_x.id, store_a.id, batch_1.id).quantity == 3


def test_decrease_strict_fails_without_mutation(db_session, product_x, store_a):
    key = StockKey(product_x.id, store_a.id)
    record = stock_store.increase(key, 5)
    db_session.commit()

    with pytest.raises(InsufficientStock) as exc:
        stock_store.decrease(key, 6)

    assert exc.value.details["available"] == 5
    assert exc.value.details["requested"] == 6
    assert record.quantity == 5


def test_decrease_strict_on_missing_record(db_session, product_x, store_a):
    with pytest.raises(InsufficientStock):
        stock_store.decrease(StockKey(product_x.id, store_a.id), 1)


def test_decrease_clamps_at_zero(db_session, product_x, store_a):
    key = StockKey(product_x.id, store_a.id)
    stock_store.increase(key, 3)

    record, removed = stock_store.decrease(key, 5, clamp_at_zero=True)
    db_session.commit()

    assert removed == 3
    assert record.quantity == 0


def test_clamped_decrease_of_missing_record_is_noop(db_session, product_x, store_a):
    record, removed = stock_store.decrease(StockKey(product_x.id, store_a.id), 5, clamp_at_zero=True)

    assert record is None
    assert removed == 0
    assert db_session.query(StockRecord).count() == 0


@pytest.mark.parametrize("delta", [0, -1, True, 1.5])
def test_non_positive_or_non_integer_delta_rejected(db_session, product_x, delta):
    with pytest.raises(ValidationError):
        stock_store.increase(StockKey(product_x.id), delta)


def test_apply_writes_movement(db_session, product_x, store_a):
    key = StockKey(product_x.id, store_a.id)
    stock_store.increase(key, 2)

    record, applied = stock_store.apply(
        StockDirective(key, -5, clamp_at_zero=True),
        document_kind=DocumentKind.PURCHASE_RETURN,
        document_id=99,
    )
    db_session.commit()

    assert applied == 2
    movement = db_session.query(StockMovement).one()
    assert movement.stock_id == record.id
    assert movement.document_kind == "purchase_return"
    assert movement.document_id == 99
    assert movement.requested_delta == -5
    assert movement.applied_delta == -2
    assert movement.quantity_after == 0
    assert movement.is_reversal is False


def test_apply_by_stock_id_ignores_key(db_session, product_x, store_a, store_b):
    target = stock_store.increase(StockKey(product_x.id, store_b.id), 1)

    record, _ = stock_store.apply(
        StockDirective(StockKey(product_x.id, store_a.id), 4, stock_id=target.id),
        document_kind=DocumentKind.SALE_RETURN,
        document_id=1,
    )

    assert record.id == target.id
    assert target.quantity == 5
    assert stock_store.get_or_none(product_x.id, store_a.id) is None


def test_get_by_id_missing(db_session):
    with pytest.raises(StockNotFound):
        stock_store.get_by_id(12345)


def test_soft_deleted_records_are_invisible(db_session, product_x, store_a):
    record = stock_store.increase(StockKey(product_x.id, store_a.id), 4)
    db_session.commit()
    record.deleted_at = record.created_at
    db_session.commit()

    assert stock_store.get_or_none(product_x.id, store_a.id) is None
    assert stock_store.list_stock() == []
    with pytest.raises(StockNotFound):
        stock_store.get_by_id(record.id)


def test_quantity_on_hand_sums_batches_and_stores(db_session, product_x, store_a, store_b, batch_1):
    stock_store.increase(StockKey(product_x.id, store_a.id), 2)
    stock_store.increase(StockKey(product_x.id, store_a.id, batch_1.id), 3)
    stock_store.increase(StockKey(product_x.id, store_b.id), 4)
    db_session.commit()

    assert stock_store.quantity_on_hand(product_x.id, store_a.id) == 5
    assert stock_store.quantity_on_hand(product_x.id) == 9


def test_list_stock_filters(db_session, product_x, product_y, store_a, store_b):
    stock_store.increase(StockKey(product_x.id, store_a.id), 1)
    stock_store.increase(StockKey(product_y.id, store_a.id), 1)
    inactive = stock_store.increase(StockKey(product_x.id, store_b.id), 1)
    inactive.status = "Inactive"
    db_session.commit()

    assert len(stock_store.list_stock(store_id=store_a.id)) == 2
    assert len(stock_store.list_stock(product_id=product_x.id)) == 1
    assert len(stock_store.list_stock(product_id=product_x.id, include_inactive=True)) == 2


def test_low_stock_at_or_below_threshold(db_session, product_x, product_y, store_a, store_b):
    empty = stock_store.increase(StockKey(product_x.id, store_a.id), 3)
    stock_store.decrease(StockKey(product_x.id, store_a.id), 3)
    at_limit = stock_store.increase(StockKey(product_y.id, store_a.id), 10)
    stock_store.increase(StockKey(product_x.id, store_b.id), 11)
    inactive = stock_store.increase(StockKey(product_y.id, store_b.id), 1)
    inactive.status = "Inactive"
    db_session.commit()

    assert [r.id for r in stock_store.low_stock()] == [empty.id, at_limit.id]
    assert [r.id for r in stock_store.low_stock(threshold=0)] == [empty.id]
    assert stock_store.low_stock(store_id=store_b.id) == []


@pytest.mark.parametrize("threshold", [-1, "5", 2.5, True])
def test_low_stock_threshold_must_be_non_negative_int(db_session, threshold):
    with pytest.raises(ValidationError):
        stock_store.low_stock(threshold=threshold)


def test_total_value_uses_current_unit_cost(db_session, product_x, product_y, store_a, store_b):
    assert stock_store.total_value() == Decimal("0.00")

    stock_store.increase(StockKey(product_x.id, store_a.id), 10, Decimal("5.00"))
    stock_store.increase(StockKey(product_y.id, store_a.id), 3, Decimal("2.50"))
    stock_store.increase(StockKey(product_x.id, store_b.id), 4, Decimal("1.25"))
    db_session.commit()

    assert stock_store.total_value() == Decimal("62.50")
    assert stock_store.total_value(store_id=store_a.id) == Decimal("57.50")
    assert stock_store.total_value(store_id=store_b.id) == Decimal("5.00")
