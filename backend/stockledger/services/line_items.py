# Overview: Validates raw item requests into line items ready for stock directives and totals.

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import func

from ..errors import (
    InsufficientStock,
    ItemNotInOriginalDocument,
    ReturnQuantityExceedsOriginal,
    ValidationError,
)
from ..extensions import db
from ..kinds import DocumentKind
from ..models.transactions import model_for
from ..money import MAX_AMOUNT, quantize
from ..validation import coerce_int, coerce_money, require_mapping
from . import lookups, stock_store


@dataclass(frozen=True)
class ComposedLine:
    product_id: int
    quantity: int
    unit_amount: Decimal
    line_total: Decimal
    stock_id: Optional[int] = None
    batch_id: Optional[int] = None
    store_id: Optional[int] = None


def _parse_item(raw, index: int, *, amount_required: bool = True) -> dict:
    raw = require_mapping(raw, f"items[{index}]")
    prefix = f"items[{index}]"
    item = {
        "product_id": coerce_int(raw.get("product_id"), f"{prefix}.product_id", required=True),
        "quantity": coerce_int(raw.get("quantity"), f"{prefix}.quantity", required=True, positive=True),
        "unit_amount": coerce_money(
            raw.get("unit_amount"), f"{prefix}.unit_amount", required=amount_required, default=None
        ),
        "line_total": coerce_money(raw.get("line_total"), f"{prefix}.line_total", default=None),
        "batch_id": coerce_int(raw.get("batch_id"), f"{prefix}.batch_id"),
        "stock_id": coerce_int(raw.get("stock_id"), f"{prefix}.stock_id"),
    }
    return item


def _line_total(item: dict, unit_amount: Decimal, index: int) -> Decimal:
    if item["line_total"] is not None:
        return item["line_total"]
    product = unit_amount * item["quantity"]
    if product > MAX_AMOUNT:
        raise ValidationError(
            f"items[{index}] line total exceeds maximum amount",
            details={"field": f"items[{index}].line_total", "quantity": item["quantity"], "unit_amount": str(unit_amount)},
        )
    return quantize(product)


def compose_lines(kind: DocumentKind, raw_items, *, store_id=None, original=None, exclude_return_id=None) -> list[ComposedLine]:
    """
    Build validated lines for one document.

    Raises ValidationError for malformed items, ProductNotFound for unknown
    products, and the kind-specific errors:
    - Sale: InsufficientStock when the named record cannot cover the
      quantity requested across the whole document
    - Returns: ItemNotInOriginalDocument, ReturnQuantityExceedsOriginal
      (cumulative over every live return of the same original)
    """
    kind = DocumentKind(kind)
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        raise ValidationError("at least one item is required", details={"field": "items"})

    items = [
        _parse_item(raw, i, amount_required=not kind.is_return)
        for i, raw in enumerate(raw_items)
    ]
    for item in items:
        lookups.get_product(item["product_id"])

    if kind is DocumentKind.PURCHASE:
        return _compose_purchase(items, store_id)
    if kind is DocumentKind.SALE:
        return _compose_sale(items)
    if kind.is_return:
        if original is None:
            raise ValidationError("returns require an original document", details={"field": "original"})
        return _compose_return(kind, items, store_id, original, exclude_return_id)
    raise ValidationError(f"{kind.label} documents have no line items")


def _compose_purchase(items: list[dict], store_id) -> list[ComposedLine]:
    lines = []
    for i, item in enumerate(items):
        batch = lookups.get_batch(item["batch_id"], field=f"items[{i}].batch_id")
        batch_id = batch.id if batch is not None else None
        existing = stock_store.get_or_none(item["product_id"], store_id, batch_id)
        if item["stock_id"] is not None and (existing is None or existing.id != item["stock_id"]):
            raise ValidationError(
                "stock_id does not match the product/store/batch of the purchase line",
                details={"field": f"items[{i}].stock_id", "stock_id": item["stock_id"]},
            )
        lines.append(ComposedLine(
            product_id=item["product_id"],
            quantity=item["quantity"],
            unit_amount=item["unit_amount"],
            line_total=_line_total(item, item["unit_amount"], i),
            stock_id=existing.id if existing is not None else None,
            batch_id=batch_id,
            store_id=store_id,
        ))
    return lines


def _compose_sale(items: list[dict]) -> list[ComposedLine]:
    requested = defaultdict(int)
    records = {}
    lines = []
    for i, item in enumerate(items):
        if item["stock_id"] is None:
            raise ValidationError("stock_id is required for sale items", details={"field": f"items[{i}].stock_id"})
        record = stock_store.get_by_id(item["stock_id"])
        if record.product_id != item["product_id"]:
            raise ValidationError(
                "stock record does not hold this product",
                details={"field": f"items[{i}].stock_id", "stock_id": record.id, "product_id": item["product_id"]},
            )
        records[record.id] = record
        requested[record.id] += item["quantity"]
        lines.append(ComposedLine(
            product_id=item["product_id"],
            quantity=item["quantity"],
            unit_amount=item["unit_amount"],
            line_total=_line_total(item, item["unit_amount"], i),
            stock_id=record.id,
            batch_id=record.batch_id,
            store_id=record.store_id,
        ))

    for stock_id, quantity in requested.items():
        record = records[stock_id]
        if record.quantity < quantity:
            raise InsufficientStock(
                "Insufficient stock",
                details={
                    "product_id": record.product_id,
                    "stock_id": stock_id,
                    "requested": quantity,
                    "available": record.quantity,
                },
            )
    return lines


def already_returned(kind: DocumentKind, original, exclude_return_id=None) -> dict[int, int]:
    """Quantity per product on every live return of `original`, optionally skipping one return."""
    header_model, line_model = model_for(kind)
    fk = getattr(line_model, f"{kind.value}_id")
    query = (
        db.session.query(line_model.product_id, func.coalesce(func.sum(line_model.quantity), 0))
        .join(header_model, header_model.id == fk)
        .filter(
            getattr(header_model, header_model.ORIGINAL_FIELD) == original.id,
            header_model.deleted_at.is_(None),
        )
        .group_by(line_model.product_id)
    )
    if exclude_return_id is not None:
        query = query.filter(header_model.id != exclude_return_id)
    return {product_id: int(total) for product_id, total in query.all()}


def _compose_return(kind: DocumentKind, items: list[dict], store_id, original, exclude_return_id) -> list[ComposedLine]:
    original_lines = {}
    original_quantity = defaultdict(int)
    for line in original.lines:
        original_lines.setdefault(line.product_id, line)
        original_quantity[line.product_id] += line.quantity

    previously = already_returned(kind, original, exclude_return_id)
    requested = defaultdict(int)
    lines = []
    for i, item in enumerate(items):
        product_id = item["product_id"]
        source = original_lines.get(product_id)
        if source is None:
            raise ItemNotInOriginalDocument(
                "Product was not on the original document",
                details={"product_id": product_id, "original_id": original.id},
            )

        requested[product_id] += item["quantity"]
        total_returned = previously.get(product_id, 0) + requested[product_id]
        if total_returned > original_quantity[product_id]:
            raise ReturnQuantityExceedsOriginal(
                "Return quantity exceeds the quantity on the original document",
                details={
                    "product_id": product_id,
                    "original_quantity": original_quantity[product_id],
                    "already_returned": previously.get(product_id, 0),
                    "requested": requested[product_id],
                },
            )

        stock_id = item["stock_id"] if item["stock_id"] is not None else source.stock_id
        batch_id = getattr(source, "batch_id", None)
        line_store_id = store_id
        if stock_id is not None:
            record = stock_store.get_by_id(stock_id)
            if record.product_id != product_id:
                raise ValidationError(
                    "stock record does not hold this product",
                    details={"field": f"items[{i}].stock_id", "stock_id": stock_id, "product_id": product_id},
                )
            batch_id = record.batch_id
            line_store_id = record.store_id

        unit_amount = item["unit_amount"] if item["unit_amount"] is not None else source.unit_amount
        lines.append(ComposedLine(
            product_id=product_id,
            quantity=item["quantity"],
            unit_amount=unit_amount,
            line_total=_line_total(item, unit_amount, i),
            stock_id=stock_id,
            batch_id=batch_id,
            store_id=line_store_id,
        ))
    return lines
