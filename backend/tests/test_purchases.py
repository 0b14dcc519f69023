"""
Purchase documents: receipt into stock, totals, update reversal, delete.
"""

from decimal import Decimal

import pytest

from stockledger.errors import DocumentNotFound, NotFound, ProductNotFound, ValidationError
from stockledger.kinds import DocumentKind
from stockledger.models import Purchase, PurchaseLine, StockMovement, StockRecord
from stockledger.services import document_service, stock_store

PURCHASE = DocumentKind.PURCHASE


def _qty(product, store=None, batch=None):
    record = stock_store.get_or_none(product.id, store.id if store else None, batch.id if batch else None)
    return record.quantity if record is not None else None


def test_purchase_creates_stock_record(db_session, purchase_10, product_x, store_a):
    record = stock_store.get_or_none(product_x.id, store_a.id)

    assert record.quantity == 10
    assert record.unit_cost == Decimal("5.00")
    [line] = purchase_10.lines
    assert line.stock_id == record.id
    assert line.applied_quantity == 10
    assert line.line_total == Decimal("50.00")


def test_purchase_totals_include_shipping(db_session, store_a, product_x, product_y, supplier):
    purchase = document_service.create_document(
        PURCHASE,
        {
            "store_id": store_a.id,
            "supplier_id": supplier.id,
            "discount": "2.00",
            "tax_amount": "1.50",
            "shipping_charge": "4.00",
            "status": "Paid",
            "invoice_number": "PO-1001",
        },
        [
            {"product_id": product_x.id, "quantity": 2, "unit_amount": "5.00"},
            {"product_id": product_y.id, "quantity": 3, "unit_amount": "1.10"},
        ],
    )

    assert purchase.subtotal == Decimal("13.30")
    assert purchase.total_amount == Decimal("16.80")
    assert purchase.due_amount == Decimal("0.00")
    data = purchase.to_dict()
    assert data["shipping_charge"] == "4.00"
    assert data["invoice_number"] == "PO-1001"
    assert len(data["items"]) == 2


def test_purchase_into_batch(db_session, store_a, product_x, batch_1):
    document_service.create_document(
        PURCHASE,
        {"store_id": store_a.id},
        [{"product_id": product_x.id, "quantity": 7, "unit_amount": "2.00", "batch_id": batch_1.id}],
    )

    assert _qty(product_x, store_a, batch_1) == 7
    assert _qty(product_x, store_a) is None


def test_two_lines_same_key_accumulate(db_session, store_a, product_x):
    document_service.create_document(
        PURCHASE,
        {"store_id": store_a.id},
        [
            {"product_id": product_x.id, "quantity": 2, "unit_amount": "5.00"},
            {"product_id": product_x.id, "quantity": 3, "unit_amount": "6.00"},
        ],
    )

    assert db_session.query(StockRecord).count() == 1
    record = stock_store.get_or_none(product_x.id, store_a.id)
    assert record.quantity == 5
    assert record.unit_cost == Decimal("6.00")


def test_unknown_product_persists_nothing(db_session, store_a, product_x):
    with pytest.raises(ProductNotFound):
        document_service.create_document(
            PURCHASE,
            {"store_id": store_a.id},
            [
                {"product_id": product_x.id, "quantity": 2, "unit_amount": "5.00"},
                {"product_id": 999999, "quantity": 1, "unit_amount": "1.00"},
            ],
        )

    assert db_session.query(Purchase).count() == 0
    assert db_session.query(PurchaseLine).count() == 0
    assert db_session.query(StockRecord).count() == 0


def test_unknown_supplier_is_not_found(db_session, store_a, product_x):
    with pytest.raises(NotFound):
        document_service.create_document(
            PURCHASE,
            {"store_id": store_a.id, "supplier_id": 424242},
            [{"product_id": product_x.id, "quantity": 1, "unit_amount": "1.00"}],
        )


@pytest.mark.parametrize("items", [
    [],
    [{"quantity": 1, "unit_amount": "1.00"}],
    [{"product_id": 1, "quantity": 0, "unit_amount": "1.00"}],
    [{"product_id": 1, "quantity": -2, "unit_amount": "1.00"}],
    [{"product_id": 1, "quantity": "2.5", "unit_amount": "1.00"}],
    [{"product_id": 1, "quantity": 1}],
    [{"product_id": 1, "quantity": 1, "unit_amount": "-1.00"}],
    [{"product_id": 1, "quantity": 1, "unit_amount": "abc"}],
])
def test_malformed_items_rejected(db_session, store_a, items):
    with pytest.raises(ValidationError):
        document_service.create_document(PURCHASE, {"store_id": store_a.id}, items)
    assert db_session.query(Purchase).count() == 0


def test_supplied_totals_must_reconcile(db_session, store_a, product_x):
    with pytest.raises(ValidationError):
        document_service.create_document(
            PURCHASE,
            {"store_id": store_a.id, "subtotal": "49.00"},
            [{"product_id": product_x.id, "quantity": 10, "unit_amount": "5.00"}],
        )
    assert db_session.query(StockRecord).count() == 0

    purchase = document_service.create_document(
        PURCHASE,
        {"store_id": store_a.id, "subtotal": "50.00", "total_amount": "50.00"},
        [{"product_id": product_x.id, "quantity": 10, "unit_amount": "5.00"}],
    )
    assert purchase.total_amount == Decimal("50.00")


def test_line_total_override(db_session, store_a, product_x):
    purchase = document_service.create_document(
        PURCHASE,
        {"store_id": store_a.id},
        [{"product_id": product_x.id, "quantity": 3, "unit_amount": "3.33", "line_total": "10.00"}],
    )
    assert purchase.lines[0].line_total == Decimal("10.00")
    assert purchase.subtotal == Decimal("10.00")


def test_update_replaces_instead_of_adding(db_session, purchase_10, product_x, store_a):
    """+10 then update to +3 nets +3, not +13."""
    document_service.update_document(
        PURCHASE,
        purchase_10.id,
        {},
        [{"product_id": product_x.id, "quantity": 3, "unit_amount": "5.00"}],
    )

    assert _qty(product_x, store_a) == 3
    refreshed = document_service.get_document(PURCHASE, purchase_10.id)
    assert [line.quantity for line in refreshed.lines] == [3]
    assert refreshed.subtotal == Decimal("15.00")


def test_repeated_updates_then_delete_net_to_zero(db_session, purchase_10, product_x, product_y, store_a):
    document_service.update_document(
        PURCHASE, purchase_10.id, {},
        [{"product_id": product_x.id, "quantity": 4, "unit_amount": "5.00"},
         {"product_id": product_y.id, "quantity": 6, "unit_amount": "2.00"}],
    )
    document_service.update_document(
        PURCHASE, purchase_10.id, {},
        [{"product_id": product_y.id, "quantity": 1, "unit_amount": "2.00"}],
    )
    assert _qty(product_x, store_a) == 0
    assert _qty(product_y, store_a) == 1

    document_service.delete_document(PURCHASE, purchase_10.id)
    assert _qty(product_x, store_a) == 0
    assert _qty(product_y, store_a) == 0


def test_header_only_update_keeps_items(db_session, purchase_10, product_x, store_a):
    updated = document_service.update_document(PURCHASE, purchase_10.id, {"discount": "10.00", "notes": "damaged box"})

    assert _qty(product_x, store_a) == 10
    assert updated.total_amount == Decimal("40.00")
    assert updated.notes == "damaged box"
    assert len(updated.lines) == 1


def test_update_moving_to_another_store(db_session, purchase_10, product_x, store_a, store_b):
    document_service.update_document(
        PURCHASE, purchase_10.id, {"store_id": store_b.id},
        [{"product_id": product_x.id, "quantity": 10, "unit_amount": "5.00"}],
    )
    assert _qty(product_x, store_a) == 0
    assert _qty(product_x, store_b) == 10


def test_failed_update_rolls_back_reversal(db_session, purchase_10, product_x, store_a):
    with pytest.raises(ProductNotFound):
        document_service.update_document(
            PURCHASE, purchase_10.id, {},
            [{"product_id": 999999, "quantity": 3, "unit_amount": "5.00"}],
        )

    assert _qty(product_x, store_a) == 10
    document = document_service.get_document(PURCHASE, purchase_10.id)
    assert [line.quantity for line in document.lines] == [10]


def test_delete_reverses_and_hides(db_session, purchase_10, product_x, store_a):
    document_service.delete_document(PURCHASE, purchase_10.id, actor_user_id=7)

    assert _qty(product_x, store_a) == 0
    with pytest.raises(DocumentNotFound):
        document_service.get_document(PURCHASE, purchase_10.id)
    with pytest.raises(DocumentNotFound):
        document_service.delete_document(PURCHASE, purchase_10.id)
    assert document_service.list_documents(PURCHASE)["count"] == 0

    row = db_session.get(Purchase, purchase_10.id)
    assert row.deleted_at is not None
    assert row.updated_by == 7


def test_delete_after_sale_clamps_at_zero(db_session, sale_4, purchase_10, product_x, store_a):
    document_service.delete_document(PURCHASE, purchase_10.id)

    # 6 on hand, reversal of +10 floors at zero instead of failing
    assert _qty(product_x, store_a) == 0
    reversal = (
        db_session.query(StockMovement)
        .filter_by(document_kind="purchase", document_id=purchase_10.id, is_reversal=True)
        .one()
    )
    assert reversal.requested_delta == -10
    assert reversal.applied_delta == -6


def test_list_documents_paginates(db_session, store_a, store_b, product_x):
    for store in (store_a, store_a, store_b):
        document_service.create_document(
            PURCHASE, {"store_id": store.id},
            [{"product_id": product_x.id, "quantity": 1, "unit_amount": "1.00"}],
        )

    everything = document_service.list_documents(PURCHASE)
    assert everything["count"] == 3
    assert "pagination" not in everything

    page = document_service.list_documents(PURCHASE, page=1, per_page=2)
    assert page["count"] == 2
    assert page["pagination"]["total"] == 3
    assert page["pagination"]["has_next"] is True

    assert document_service.list_documents(PURCHASE, store_id=store_b.id)["count"] == 1


def test_unknown_kind_rejected(db_session):
    with pytest.raises(ValidationError):
        document_service.get_document("invoice", 1)
    with pytest.raises(ValidationError):
        document_service.get_document(DocumentKind.STOCK_TRANSFER, 1)


@pytest.mark.parametrize("unit_amount", ["1e30", "1e14", "-1e40"])
def test_out_of_range_unit_amount_rejected(db_session, store_a, product_x, unit_amount):
    with pytest.raises(ValidationError) as exc:
        document_service.create_document(
            PURCHASE,
            {"store_id": store_a.id},
            [{"product_id": product_x.id, "quantity": 1, "unit_amount": unit_amount}],
        )
    assert exc.value.details["field"] == "items[0].unit_amount"
    assert db_session.query(Purchase).count() == 0


def test_line_total_overflow_rejected(db_session, store_a, product_x):
    with pytest.raises(ValidationError) as exc:
        document_service.create_document(
            PURCHASE,
            {"store_id": store_a.id},
            [{"product_id": product_x.id, "quantity": 10 ** 20, "unit_amount": "9999999999999.99"}],
        )
    assert exc.value.details["field"] == "items[0].line_total"
    assert stock_store.get_or_none(product_x.id, store_a.id) is None


def test_out_of_range_header_amount_rejected(db_session, store_a, product_x):
    with pytest.raises(ValidationError):
        document_service.create_document(
            PURCHASE,
            {"store_id": store_a.id, "tax_amount": "1e30"},
            [{"product_id": product_x.id, "quantity": 1, "unit_amount": "1.00"}],
        )
    assert stock_store.get_or_none(product_x.id, store_a.id) is None


def test_search_matches_supplier_name(db_session, purchase_10, store_a, product_x):
    document_service.create_document(
        PURCHASE, {"store_id": store_a.id},
        [{"product_id": product_x.id, "quantity": 1, "unit_amount": "1.00"}],
    )

    listing = document_service.list_documents(PURCHASE, q="acme")
    assert [item["id"] for item in listing["items"]] == [purchase_10.id]
