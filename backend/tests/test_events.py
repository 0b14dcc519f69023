"""
Post-commit document events.
"""

import pytest

from stockledger.errors import InsufficientStock
from stockledger.kinds import DocumentKind
from stockledger.models import Purchase
from stockledger.services import adjustment_service, document_service, events, stock_store


@pytest.fixture
def received(db_session):
    seen = []
    events.register_listener(seen.append)
    return seen


def test_create_update_delete_fire_in_order(db_session, received, store_a, product_x):
    purchase = document_service.create_document(
        DocumentKind.PURCHASE,
        {"store_id": store_a.id},
        [{"product_id": product_x.id, "quantity": 2, "unit_amount": "1.00"}],
    )
    document_service.update_document(DocumentKind.PURCHASE, purchase.id, {"notes": "late"})
    document_service.delete_document(DocumentKind.PURCHASE, purchase.id)

    assert [e.event_type for e in received] == ["purchase.created", "purchase.updated", "purchase.deleted"]
    assert {e.document_id for e in received} == {purchase.id}
    assert received[0].kind == "purchase"
    assert received[0].payload["items"][0]["quantity"] == 2


def test_failed_operation_fires_nothing(db_session, stock_x_a, received, store_a, product_x):
    received.clear()
    with pytest.raises(InsufficientStock):
        document_service.create_document(
            DocumentKind.SALE,
            {"store_id": store_a.id},
            [{"product_id": product_x.id, "quantity": 50, "unit_amount": "1.00", "stock_id": stock_x_a.id}],
        )
    assert received == []


def test_failing_listener_does_not_break_the_operation(db_session, received, product_x, store_a, caplog):
    def broken(event):
        raise RuntimeError("listener down")

    events.register_listener(broken)
    adjustment = adjustment_service.create_adjustment({
        "product_id": product_x.id,
        "store_id": store_a.id,
        "quantity_change": 1,
        "adjustment_type": "Increase",
        "status": "Done",
    })

    assert adjustment.status == "Done"
    # the listener registered before the broken one still ran
    assert [e.event_type for e in received] == ["stock_adjustment.created"]
    assert "listener down" in caplog.text


def test_status_change_event(db_session, received, product_x, store_a):
    adjustment = adjustment_service.create_adjustment({
        "product_id": product_x.id,
        "store_id": store_a.id,
        "quantity_change": 1,
        "adjustment_type": "Increase",
    })
    adjustment_service.set_adjustment_status(adjustment.id, "Cancelled")

    assert received[-1].event_type == "stock_adjustment.status_changed"
    assert received[-1].payload["status"] == "Cancelled"


def test_register_is_idempotent_and_unregister(db_session):
    seen = []

    @events.register_listener
    def listener(event):
        seen.append(event)

    events.register_listener(listener)
    events.notify(events.DocumentEvent("sale.created", "sale", 1))
    assert len(seen) == 1

    events.unregister_listener(listener)
    events.notify(events.DocumentEvent("sale.created", "sale", 1))
    assert len(seen) == 1


def test_payload_failure_does_not_break_the_operation(db_session, received, store_a, product_x, monkeypatch, caplog):
    def broken_to_dict(self):
        raise RuntimeError("serializer down")

    monkeypatch.setattr(Purchase, "to_dict", broken_to_dict)
    purchase = document_service.create_document(
        DocumentKind.PURCHASE,
        {"store_id": store_a.id},
        [{"product_id": product_x.id, "quantity": 2, "unit_amount": "1.00"}],
    )

    assert purchase.id is not None
    assert stock_store.quantity_on_hand(product_x.id, store_a.id) == 2
    assert received == []
    assert "serializer down" in caplog.text


def test_no_payload_built_without_listeners(db_session, store_a, product_x, monkeypatch):
    def broken_to_dict(self):
        raise AssertionError("payload should not be built")

    monkeypatch.setattr(Purchase, "to_dict", broken_to_dict)
    document_service.create_document(
        DocumentKind.PURCHASE,
        {"store_id": store_a.id},
        [{"product_id": product_x.id, "quantity": 1, "unit_amount": "1.00"}],
    )
    events.publish("purchase.created", "purchase", 1, lambda: {"id": 1})
