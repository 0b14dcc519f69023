"""
Stock transfers: conservation between stores, terminal states, delete reversal.
"""

from decimal import Decimal

import pytest

from stockledger.errors import InsufficientStock, InvalidStatusTransition, ValidationError
from stockledger.kinds import DocumentKind
from stockledger.services import document_service, stock_store, transfer_service


def _transfer(product, source, destination, quantity=4, **extra):
    data = {
        "product_id": product.id,
        "from_store_id": source.id,
        "to_store_id": destination.id,
        "quantity": quantity,
    }
    data.update(extra)
    return transfer_service.create_transfer(data)


def _total(product):
    return stock_store.quantity_on_hand(product.id)


def test_completing_moves_stock_between_stores(db_session, stock_x_a, product_x, store_a, store_b):
    """10 in A, transfer 4 to B."""
    transfer = _transfer(product_x, store_a, store_b)
    assert transfer.status == "Pending"
    assert stock_store.get_or_none(product_x.id, store_b.id) is None

    completed = transfer_service.set_transfer_status(transfer.id, "Completed")
    destination = stock_store.get_or_none(product_x.id, store_b.id)

    assert stock_store.get_by_id(stock_x_a.id).quantity == 6
    assert destination.quantity == 4
    assert destination.unit_cost == Decimal("5.00")
    assert completed.from_stock_id == stock_x_a.id
    assert completed.to_stock_id == destination.id
    assert completed.completed_at is not None
    assert _total(product_x) == 10


def test_create_completed_applies_immediately(db_session, stock_x_a, product_x, store_a, store_b):
    _transfer(product_x, store_a, store_b, quantity=10, status="Completed")

    assert stock_store.get_by_id(stock_x_a.id).quantity == 0
    assert stock_store.get_or_none(product_x.id, store_b.id).quantity == 10


def test_short_source_moves_nothing(db_session, stock_x_a, product_x, store_a, store_b):
    transfer = _transfer(product_x, store_a, store_b, quantity=11)

    with pytest.raises(InsufficientStock) as exc:
        transfer_service.set_transfer_status(transfer.id, "Completed")

    assert exc.value.details["available"] == 10
    assert transfer_service.get_transfer(transfer.id).status == "Pending"
    assert stock_store.get_by_id(stock_x_a.id).quantity == 10
    assert stock_store.get_or_none(product_x.id, store_b.id) is None


def test_missing_source_record(db_session, product_x, store_a, store_b):
    transfer = _transfer(product_x, store_a, store_b)
    with pytest.raises(InsufficientStock):
        transfer_service.set_transfer_status(transfer.id, "Completed")


def test_same_store_rejected(db_session, product_x, store_a, store_b):
    with pytest.raises(ValidationError):
        _transfer(product_x, store_a, store_a)

    transfer = _transfer(product_x, store_a, store_b)
    with pytest.raises(ValidationError):
        transfer_service.update_transfer(transfer.id, {"to_store_id": store_a.id})


@pytest.mark.parametrize("overrides", [
    {"quantity": 0},
    {"quantity": "x"},
    {"from_store_id": None},
    {"status": "Shipped"},
])
def test_invalid_create_rejected(db_session, product_x, store_a, store_b, overrides):
    with pytest.raises(ValidationError):
        _transfer(product_x, store_a, store_b, **overrides)


def test_terminal_states(db_session, stock_x_a, product_x, store_a, store_b):
    completed = _transfer(product_x, store_a, store_b, status="Completed")
    cancelled = _transfer(product_x, store_a, store_b)
    transfer_service.set_transfer_status(cancelled.id, "Cancelled")

    for transfer, status in ((completed, "Completed"), (completed, "Cancelled"), (cancelled, "Completed")):
        with pytest.raises(InvalidStatusTransition):
            transfer_service.set_transfer_status(transfer.id, status)

    assert stock_store.get_by_id(stock_x_a.id).quantity == 6
    with pytest.raises(InvalidStatusTransition):
        transfer_service.update_transfer(completed.id, {"quantity": 1})


def test_pending_transfer_is_editable(db_session, stock_x_a, product_x, store_a, store_b):
    transfer = _transfer(product_x, store_a, store_b)
    transfer_service.update_transfer(transfer.id, {"quantity": 7, "notes": "full shelf"})
    transfer_service.set_transfer_status(transfer.id, "Completed")

    assert stock_store.get_by_id(stock_x_a.id).quantity == 3
    assert stock_store.get_or_none(product_x.id, store_b.id).quantity == 7


def test_delete_completed_moves_stock_back(db_session, stock_x_a, product_x, store_a, store_b):
    transfer = _transfer(product_x, store_a, store_b, status="Completed")
    transfer_service.delete_transfer(transfer.id)

    assert stock_store.get_by_id(stock_x_a.id).quantity == 10
    assert stock_store.get_or_none(product_x.id, store_b.id).quantity == 0
    assert _total(product_x) == 10


def test_delete_returns_only_what_destination_still_holds(db_session, stock_x_a, product_x, store_a, store_b):
    transfer = _transfer(product_x, store_a, store_b, status="Completed")
    destination = stock_store.get_or_none(product_x.id, store_b.id)
    document_service.create_document(
        DocumentKind.SALE,
        {"store_id": store_b.id},
        [{"product_id": product_x.id, "quantity": 3, "unit_amount": "9.00", "stock_id": destination.id}],
    )

    transfer_service.delete_transfer(transfer.id)

    # B held 1 of the 4; only that 1 goes back to A
    assert stock_store.get_by_id(destination.id).quantity == 0
    assert stock_store.get_by_id(stock_x_a.id).quantity == 7


def test_list_transfers_matches_either_store(db_session, stock_x_a, product_x, store_a, store_b):
    _transfer(product_x, store_a, store_b)
    _transfer(product_x, store_b, store_a, status="Cancelled")

    assert transfer_service.list_transfers(store_id=store_a.id)["count"] == 2
    assert transfer_service.list_transfers(store_id=store_b.id)["count"] == 2
    assert transfer_service.list_transfers(status="Pending")["count"] == 1
