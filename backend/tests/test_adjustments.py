"""
Stock adjustments: Pending -> Done applies once, terminal states, delete reversal.
"""

from decimal import Decimal

import pytest

from stockledger.errors import DocumentNotFound, InsufficientStock, InvalidStatusTransition, ValidationError
from stockledger.services import adjustment_service, stock_store


def _increase(product, store, quantity=5, **extra):
    data = {
        "product_id": product.id,
        "store_id": store.id,
        "quantity_change": quantity,
        "adjustment_type": "Increase",
    }
    data.update(extra)
    return adjustment_service.create_adjustment(data)


def test_created_pending_moves_nothing(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a)

    assert adjustment.status == "Pending"
    assert adjustment.applied_quantity is None
    assert stock_store.get_or_none(product_x.id, store_a.id) is None


def test_done_applies_exactly_once(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a, adjusted_value="20.00")

    done = adjustment_service.set_adjustment_status(adjustment.id, "Done", actor_user_id=3)
    record = stock_store.get_or_none(product_x.id, store_a.id)
    assert done.status == "Done"
    assert done.applied_quantity == 5
    assert done.stock_id == record.id
    assert done.updated_by == 3
    assert record.quantity == 5
    assert record.unit_cost == Decimal("4.00")

    with pytest.raises(InvalidStatusTransition):
        adjustment_service.set_adjustment_status(adjustment.id, "Done")
    assert stock_store.get_or_none(product_x.id, store_a.id).quantity == 5


def test_create_as_done_applies_immediately(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a, status="Done")

    assert adjustment.status == "Done"
    assert stock_store.get_or_none(product_x.id, store_a.id).quantity == 5


def test_decrease_is_strict(db_session, stock_x_a, product_x, store_a):
    adjustment = adjustment_service.create_adjustment({
        "product_id": product_x.id,
        "store_id": store_a.id,
        "quantity_change": 11,
        "adjustment_type": "Decrease",
        "reason": "shrinkage",
    })

    with pytest.raises(InsufficientStock):
        adjustment_service.set_adjustment_status(adjustment.id, "Done")
    assert adjustment_service.get_adjustment(adjustment.id).status == "Pending"
    assert stock_store.get_by_id(stock_x_a.id).quantity == 10

    adjustment_service.update_adjustment(adjustment.id, {"quantity_change": 3})
    adjustment_service.set_adjustment_status(adjustment.id, "Done")
    assert stock_store.get_by_id(stock_x_a.id).quantity == 7


def test_cancelled_is_terminal(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a)
    adjustment_service.set_adjustment_status(adjustment.id, "Cancelled")

    for status in ("Done", "Pending", "Cancelled"):
        with pytest.raises(InvalidStatusTransition):
            adjustment_service.set_adjustment_status(adjustment.id, status)
    assert stock_store.get_or_none(product_x.id, store_a.id) is None


def test_done_cannot_go_back_to_pending(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a, status="Done")
    with pytest.raises(InvalidStatusTransition):
        adjustment_service.set_adjustment_status(adjustment.id, "Pending")


def test_only_pending_is_editable(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a)
    updated = adjustment_service.update_adjustment(adjustment.id, {"quantity_change": 8, "notes": "recount"})
    assert updated.quantity_change == 8
    assert updated.notes == "recount"

    adjustment_service.set_adjustment_status(adjustment.id, "Done")
    with pytest.raises(InvalidStatusTransition):
        adjustment_service.update_adjustment(adjustment.id, {"quantity_change": 1})


@pytest.mark.parametrize("changes", [
    {"status": "Done"},
    {"colour": "red"},
    {"quantity_change": 0},
    {"adjustment_type": "Sideways"},
])
def test_invalid_edits_rejected(db_session, product_x, store_a, changes):
    adjustment = _increase(product_x, store_a)
    with pytest.raises(ValidationError):
        adjustment_service.update_adjustment(adjustment.id, changes)


@pytest.mark.parametrize("overrides", [
    {"quantity_change": -2},
    {"quantity_change": "1.5"},
    {"adjustment_type": None},
    {"status": "Approved"},
])
def test_invalid_create_rejected(db_session, product_x, store_a, overrides):
    with pytest.raises(ValidationError):
        _increase(product_x, store_a, **overrides)


def test_delete_done_reverses(db_session, product_x, store_a):
    adjustment = _increase(product_x, store_a, status="Done")
    adjustment_service.delete_adjustment(adjustment.id)

    assert stock_store.get_or_none(product_x.id, store_a.id).quantity == 0
    with pytest.raises(DocumentNotFound):
        adjustment_service.get_adjustment(adjustment.id)


def test_delete_pending_touches_no_stock(db_session, stock_x_a, product_x, store_a):
    adjustment = adjustment_service.create_adjustment({
        "product_id": product_x.id,
        "store_id": store_a.id,
        "quantity_change": 2,
        "adjustment_type": "Decrease",
    })
    adjustment_service.delete_adjustment(adjustment.id)
    assert stock_store.get_by_id(stock_x_a.id).quantity == 10


def test_list_adjustments_filters(db_session, product_x, store_a, store_b):
    _increase(product_x, store_a)
    _increase(product_x, store_b, status="Done")

    assert adjustment_service.list_adjustments()["count"] == 2
    assert adjustment_service.list_adjustments(store_id=store_b.id)["count"] == 1
    done = adjustment_service.list_adjustments(status="Done")
    assert [item["store_id"] for item in done["items"]] == [store_b.id]
    assert adjustment_service.list_adjustments(page=1, per_page=1)["pagination"]["total_pages"] == 2
