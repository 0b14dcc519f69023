"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, catalog fixtures, and test client.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.kinds import DocumentKind
from stockledger.models import Batch, Customer, Employee, PaymentMethod, Product, Store, Supplier
from stockledger.services import document_service, events, stock_store


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        events.clear_listeners()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        events.clear_listeners()


@pytest.fixture(scope='function')
def store_a(db_session):
    store = Store(name="Store A", code="A")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    store = Store(name="Store B", code="B")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def product_x(db_session):
    product = Product(sku="X-001", name="Product X")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_y(db_session):
    product = Product(sku="Y-001", name="Product Y")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def batch_1(db_session):
    batch = Batch(batch_number="B-2026-01")
    db_session.add(batch)
    db_session.commit()
    return batch


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Supply")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Jane Buyer")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def employee(db_session, store_a):
    employee = Employee(name="Sam Clerk", store_id=store_a.id)
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def cash(db_session):
    method = PaymentMethod(name="Cash")
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def purchase_10(db_session, store_a, product_x, supplier):
    """10 units of product X received into store A at 5.00."""
    return document_service.create_document(
        DocumentKind.PURCHASE,
        {"store_id": store_a.id, "supplier_id": supplier.id},
        [{"product_id": product_x.id, "quantity": 10, "unit_amount": "5.00"}],
    )


@pytest.fixture(scope='function')
def stock_x_a(purchase_10, store_a, product_x):
    """The StockRecord created by purchase_10."""
    return stock_store.get_or_none(product_x.id, store_a.id)


@pytest.fixture(scope='function')
def sale_4(stock_x_a, store_a, product_x, customer):
    """sale of 4 units at 9.00 from store A (leaves 6)."""
    return document_service.create_document(
        DocumentKind.SALE,
        {"store_id": store_a.id, "customer_id": customer.id},
        [{"product_id": product_x.id, "quantity": 4, "unit_amount": "9.00", "stock_id": stock_x_a.id}],
    )
