# Overview: Read-only resolve-by-id for the collaborators the ledger depends on.

from __future__ import annotations

from ..errors import NotFound, ProductNotFound
from ..extensions import db
from ..models import Batch, Customer, Employee, PaymentMethod, Product, Store, Supplier
from ..validation import coerce_int


def resolve(model, entity_id, *, field: str, error=NotFound):
    """
    Load `model` by id or raise `error`.

    Returns None when entity_id is None (optional references).
    """
    entity_id = coerce_int(entity_id, field)
    if entity_id is None:
        return None
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise error(
            f"{model.__name__} {entity_id} not found",
            details={"field": field, "id": entity_id},
        )
    return entity


def get_product(product_id, *, field: str = "product_id") -> Product:
    coerce_int(product_id, field, required=True)
    return resolve(Product, product_id, field=field, error=ProductNotFound)


def get_store(store_id, *, field: str = "store_id") -> Store | None:
    return resolve(Store, store_id, field=field)


def get_batch(batch_id, *, field: str = "batch_id") -> Batch | None:
    return resolve(Batch, batch_id, field=field)


# Header collaborator columns and the model each one must resolve to
HEADER_REFERENCES = {
    "store_id": Store,
    "employee_id": Employee,
    "payment_method_id": PaymentMethod,
    "customer_id": Customer,
    "supplier_id": Supplier,
}


def resolve_header_reference(field: str, value):
    model = HEADER_REFERENCES[field]
    entity = resolve(model, value, field=field)
    return entity.id if entity is not None else None
