# Overview: Create/update/delete for header + line-item documents; stock effects, totals and persistence in one transaction.

from __future__ import annotations

from collections import defaultdict

from flask import current_app

from ..errors import DocumentNotFound, ValidationError
from ..extensions import db
from ..kinds import LINE_ITEM_KINDS, DocumentKind
from ..models.catalog import Customer, Supplier
from ..models.transactions import DOCUMENT_STATUS_PARTIAL, DOCUMENT_STATUSES, model_for
from ..money import ZERO
from ..time_utils import today, utcnow
from ..validation import coerce_choice, coerce_date, coerce_int, coerce_money, coerce_text, require_mapping
from . import events, stock_store
from .concurrency import lock_for_update, run_in_transaction
from .directives import forward_directives, reverse_directives
from .line_items import already_returned, compose_lines
from .lookups import resolve_header_reference
from .paging import paginate
from .totals import compute_totals, reconcile

COUNTERPARTY_MODELS = {"customer_id": Customer, "supplier_id": Supplier}

"""
Document lifecycle (Purchase, Sale, PurchaseReturn, SaleReturn):

Create:  validate header -> compose lines -> totals -> apply forward stock
         effects -> persist header + lines -> commit
Update:  lock header -> reverse existing lines -> delete them -> merge header
         -> run the create steps with the new items -> commit
Delete:  lock header -> reverse existing lines -> stamp deleted_at -> commit

Each operation is a single run_in_transaction call: if anything fails after
a reversal has been applied, the reversal is rolled back with everything
else. Events fire only after the commit succeeds.
"""

RETURN_KIND_FOR = {
    DocumentKind.PURCHASE: DocumentKind.PURCHASE_RETURN,
    DocumentKind.SALE: DocumentKind.SALE_RETURN,
}
ORIGINAL_KIND_FOR = {v: k for k, v in RETURN_KIND_FOR.items()}

_REFERENCE_FIELDS = ("store_id", "employee_id", "payment_method_id")


def _line_kind(kind) -> DocumentKind:
    try:
        kind = DocumentKind(kind)
    except ValueError:
        raise ValidationError(f"unknown document kind: {kind!r}")
    if kind not in LINE_ITEM_KINDS:
        raise ValidationError(f"{kind.label} is not a line-item document")
    return kind


def _live_query(kind: DocumentKind):
    header_model, _ = model_for(kind)
    return db.session.query(header_model).filter(header_model.deleted_at.is_(None))


def _load(kind: DocumentKind, document_id, *, lock: bool = False):
    header_model, _ = model_for(kind)
    query = _live_query(kind).filter(header_model.id == document_id)
    if lock:
        query = lock_for_update(query)
    document = query.first()
    if document is None:
        raise DocumentNotFound(
            f"{kind.label} {document_id} not found",
            details={"kind": kind.value, "id": document_id},
        )
    return document


def _load_original(kind: DocumentKind, original_id):
    """Live original of a return, row-locked so concurrent returns against it serialize."""
    if original_id is None or original_id == "":
        raise ValidationError(
            f"{model_for(kind)[0].ORIGINAL_FIELD} is required",
            details={"field": model_for(kind)[0].ORIGINAL_FIELD},
        )
    return _load(ORIGINAL_KIND_FOR[kind], original_id, lock=True)


# -----------------------------------------------------------------------------
# Header
# -----------------------------------------------------------------------------

def _apply_header(document, data: dict, *, creating: bool) -> None:
    """Copy recognised header fields onto the document. On update only supplied keys change."""

    def supplied(field):
        return creating or field in data

    if supplied("document_date"):
        document.document_date = coerce_date(data.get("document_date"), "document_date") or today()

    for field in _REFERENCE_FIELDS + (document.COUNTERPARTY_FIELD,):
        if field in data:
            setattr(document, field, resolve_header_reference(field, data.get(field)))

    for field in ("discount", "tax_amount"):
        if supplied(field):
            setattr(document, field, coerce_money(data.get(field), field))
    if document.EXTRA_CHARGE_FIELD is not None and supplied(document.EXTRA_CHARGE_FIELD):
        field = document.EXTRA_CHARGE_FIELD
        setattr(document, field, coerce_money(data.get(field), field))

    if supplied("status"):
        document.status = coerce_choice(data.get("status"), "status", DOCUMENT_STATUSES, default="Pending")
    for field, max_length in (("invoice_number", 64), ("notes", None)):
        if supplied(field):
            setattr(document, field, coerce_text(data.get(field), field, max_length=max_length))


def _inherit_from_original(document, original, data: dict) -> None:
    """A return defaults its store and counterparty to those of the original document."""
    if "store_id" not in data:
        document.store_id = original.store_id
    counterparty = document.COUNTERPARTY_FIELD
    if counterparty not in data:
        setattr(document, counterparty, getattr(original, counterparty))


# -----------------------------------------------------------------------------
# Stock effects
# -----------------------------------------------------------------------------

def _reverse_lines(kind: DocumentKind, document) -> None:
    for directive in reverse_directives(kind, document.lines):
        stock_store.apply(directive, document_kind=kind, document_id=document.id, is_reversal=True)


def _compose_and_apply(kind: DocumentKind, document, data: dict, items, *, original=None) -> None:
    _, line_model = model_for(kind)
    composed = compose_lines(
        kind,
        items,
        store_id=document.store_id,
        original=original,
        exclude_return_id=document.id if kind.is_return else None,
    )

    due_amount = data.get("due_amount")
    if due_amount is None and document.status == DOCUMENT_STATUS_PARTIAL and "status" not in data:
        due_amount = document.due_amount
    totals = compute_totals(
        [line.line_total for line in composed],
        discount=document.discount,
        tax_amount=document.tax_amount,
        extra_charge=document.extra_charge if document.extra_charge is not None else ZERO,
        status=document.status,
        due_amount=due_amount,
    )
    reconcile(data.get("subtotal"), totals.subtotal, "subtotal")
    reconcile(data.get("total_amount"), totals.total, "total_amount")
    document.subtotal = totals.subtotal
    document.total_amount = totals.total
    document.due_amount = totals.due

    directives = forward_directives(kind, composed, store_id=document.store_id)
    for line, directive in zip(composed, directives):
        record, applied = stock_store.apply(directive, document_kind=kind, document_id=document.id)
        row = line_model(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_amount=line.unit_amount,
            line_total=line.line_total,
            stock_id=record.id if record is not None else line.stock_id,
            applied_quantity=applied,
        )
        if kind is DocumentKind.PURCHASE:
            row.batch_id = line.batch_id
        document.lines.append(row)

    if kind in RETURN_KIND_FOR:
        _guard_existing_returns(kind, document, composed)
    db.session.flush()


def _guard_existing_returns(kind: DocumentKind, document, composed) -> None:
    """An original may not shrink below what its live returns already sent back."""
    if document.id is None:
        return
    returned = already_returned(RETURN_KIND_FOR[kind], document)
    if not returned:
        return
    quantities = defaultdict(int)
    for line in composed:
        quantities[line.product_id] += line.quantity
    for product_id, quantity in returned.items():
        if quantities.get(product_id, 0) < quantity:
            raise ValidationError(
                "update would leave less than the quantity already returned",
                details={"product_id": product_id, "returned": quantity, "new_quantity": quantities.get(product_id, 0)},
            )


def _items_from_lines(document) -> list[dict]:
    """Raw items equivalent to the current lines, for header-only updates."""
    items = []
    for line in document.lines:
        item = {
            "product_id": line.product_id,
            "quantity": line.quantity,
            "unit_amount": line.unit_amount,
            "line_total": line.line_total,
            "stock_id": line.stock_id,
        }
        if hasattr(line, "batch_id"):
            item["batch_id"] = line.batch_id
            # purchase lines re-resolve their stock record from the key
            item.pop("stock_id")
        items.append(item)
    return items


# -----------------------------------------------------------------------------
# Operations
# -----------------------------------------------------------------------------

def create_document(kind, header: dict, items, actor_user_id: int | None = None):
    """
    Create a document and apply its stock effects atomically.

    Raises ValidationError, NotFound (and subclasses), InsufficientStock,
    ItemNotInOriginalDocument, ReturnQuantityExceedsOriginal,
    ConcurrencyConflict, PersistenceError. On any error nothing is persisted.
    """
    kind = _line_kind(kind)
    header = require_mapping(header or {}, "header")
    header_model, _ = model_for(kind)

    def _op():
        document = header_model(created_by=actor_user_id, updated_by=actor_user_id)
        original = None
        if kind.is_return:
            original = _load_original(kind, header.get(header_model.ORIGINAL_FIELD))
            setattr(document, header_model.ORIGINAL_FIELD, original.id)
            _inherit_from_original(document, original, header)
        _apply_header(document, header, creating=True)
        db.session.add(document)
        db.session.flush()
        _compose_and_apply(kind, document, header, items, original=original)
        return document

    document = run_in_transaction(_op)
    current_app.logger.info(
        "Created %s %s: %d line(s), total %s", kind.value, document.id, len(document.lines), document.total_amount
    )
    events.publish(f"{kind.value}.created", kind.value, document.id, document.to_dict)
    return document


def update_document(kind, document_id: int, header: dict | None, items=None, actor_user_id: int | None = None):
    """
    Replace a document's header fields and items.

    Existing stock effects are reversed and the new items applied inside the
    same transaction. items=None keeps the current items (header-only update;
    totals and stock are still recomputed).
    """
    kind = _line_kind(kind)
    header = require_mapping(header or {}, "header")
    header_model, _ = model_for(kind)

    def _op():
        document = _load(kind, document_id, lock=True)
        original = None
        if kind.is_return:
            field = header_model.ORIGINAL_FIELD
            if field in header and coerce_int(header[field], field) != getattr(document, field):
                raise ValidationError(f"{field} cannot be changed", details={"field": field})
            original = _load_original(kind, getattr(document, field))

        new_items = items if items is not None else _items_from_lines(document)
        _reverse_lines(kind, document)
        document.lines = []
        db.session.flush()

        _apply_header(document, header, creating=False)
        document.updated_by = actor_user_id
        _compose_and_apply(kind, document, header, new_items, original=original)
        return document

    document = run_in_transaction(_op)
    current_app.logger.info("Updated %s %s, total %s", kind.value, document.id, document.total_amount)
    events.publish(f"{kind.value}.updated", kind.value, document.id, document.to_dict)
    return document


def delete_document(kind, document_id: int, actor_user_id: int | None = None):
    """
    Reverse every line's stock effect and soft-delete the header.

    An original with live returns cannot be deleted; delete the returns first.
    """
    kind = _line_kind(kind)

    def _op():
        document = _load(kind, document_id, lock=True)
        if kind in RETURN_KIND_FOR:
            live_returns = [r.id for r in document.returns if r.deleted_at is None]
            if live_returns:
                raise ValidationError(
                    f"{kind.label} has live returns and cannot be deleted",
                    details={"return_ids": live_returns},
                )
        _reverse_lines(kind, document)
        document.deleted_at = utcnow()
        document.updated_by = actor_user_id
        return document

    document = run_in_transaction(_op)
    current_app.logger.info("Deleted %s %s", kind.value, document.id)
    events.publish(f"{kind.value}.deleted", kind.value, document.id, lambda: {"id": document.id})
    return document


def get_document(kind, document_id: int):
    return _load(_line_kind(kind), document_id)


def list_documents(
    kind,
    page: int | None = None,
    per_page: int | None = None,
    store_id: int | None = None,
    status: str | None = None,
    q: str | None = None,
    date_from=None,
    date_to=None,
) -> dict:
    """
    Live documents of one kind, newest first.

    - q: case-insensitive match on invoice number or counterparty name
    - date_from / date_to: inclusive bounds on document_date
    """
    kind = _line_kind(kind)
    header_model, _ = model_for(kind)
    query = _live_query(kind)
    search = coerce_text(q, "q", max_length=100)
    if search:
        counterparty = COUNTERPARTY_MODELS[header_model.COUNTERPARTY_FIELD]
        pattern = f"%{search}%"
        query = query.outerjoin(
            counterparty, counterparty.id == getattr(header_model, header_model.COUNTERPARTY_FIELD)
        ).filter(
            db.or_(
                header_model.invoice_number.ilike(pattern),
                counterparty.name.ilike(pattern),
            )
        )
    start = coerce_date(date_from, "date_from")
    end = coerce_date(date_to, "date_to")
    if start is not None and end is not None and start > end:
        raise ValidationError(
            "date_from must not be after date_to",
            details={"date_from": start.isoformat(), "date_to": end.isoformat()},
        )
    if start is not None:
        query = query.filter(header_model.document_date >= start)
    if end is not None:
        query = query.filter(header_model.document_date <= end)
    if store_id is not None:
        query = query.filter(header_model.store_id == store_id)
    if status is not None:
        query = query.filter(header_model.status == coerce_choice(status, "status", DOCUMENT_STATUSES))
    query = query.order_by(header_model.document_date.desc(), header_model.id.desc())
    return paginate(query, page, per_page)
