from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from ..kinds import DocumentKind
from ..money import money_str
from ..time_utils import to_utc_z, to_iso_date


DOCUMENT_STATUS_PENDING = "Pending"
DOCUMENT_STATUS_PARTIAL = "Partial"
DOCUMENT_STATUS_PAID = "Paid"
DOCUMENT_STATUS_CANCELLED = "Cancelled"
DOCUMENT_STATUSES = (
    DOCUMENT_STATUS_PENDING,
    DOCUMENT_STATUS_PARTIAL,
    DOCUMENT_STATUS_PAID,
    DOCUMENT_STATUS_CANCELLED,
)


# =============================================================================
# SHARED HEADER / LINE SHAPE
# =============================================================================

class DocumentHeaderMixin:
    """
    Header columns shared by Purchase, Sale, PurchaseReturn and SaleReturn.

    Subclasses declare:
    - KIND: DocumentKind
    - COUNTERPARTY_FIELD: "supplier_id" or "customer_id"
    - EXTRA_CHARGE_FIELD: "shipping_charge", "delivery_charge" or None
    - ORIGINAL_FIELD: FK to the returned document, or None
    - lines: relationship to the line model, ordered by id

    Totals are persisted as computed by the totals calculator; the ledger
    never trusts client-supplied subtotal/total values without reconciling.
    """
    KIND = None
    COUNTERPARTY_FIELD = None
    EXTRA_CHARGE_FIELD = None
    ORIGINAL_FIELD = None

    id = db.Column(db.Integer, primary_key=True)
    document_date = db.Column(db.Date, nullable=False)

    subtotal = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    due_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=DOCUMENT_STATUS_PENDING)
    invoice_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    # Soft delete: set only after every line's stock effect has been reversed
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @declared_attr
    def store_id(cls):
        return db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    @declared_attr
    def employee_id(cls):
        return db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)

    @declared_attr
    def payment_method_id(cls):
        return db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=True)

    @declared_attr
    def store(cls):
        return db.relationship("Store")

    @declared_attr
    def employee(cls):
        return db.relationship("Employee")

    @declared_attr
    def payment_method(cls):
        return db.relationship("PaymentMethod")

    @property
    def extra_charge(self):
        if self.EXTRA_CHARGE_FIELD is None:
            return None
        return getattr(self, self.EXTRA_CHARGE_FIELD)

    @property
    def original_id(self):
        if self.ORIGINAL_FIELD is None:
            return None
        return getattr(self, self.ORIGINAL_FIELD)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "kind": self.KIND.value,
            "document_date": to_iso_date(self.document_date),
            self.COUNTERPARTY_FIELD: getattr(self, self.COUNTERPARTY_FIELD),
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "payment_method_id": self.payment_method_id,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "due_amount": money_str(self.due_amount),
            "status": self.status,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [line.to_dict() for line in self.lines],
        }
        if self.EXTRA_CHARGE_FIELD is not None:
            data[self.EXTRA_CHARGE_FIELD] = money_str(self.extra_charge)
        if self.ORIGINAL_FIELD is not None:
            data[self.ORIGINAL_FIELD] = self.original_id
        return data


class DocumentLineMixin:
    """
    Line item columns shared by all four line tables.

    stock_id is the StockRecord the quantity was drawn from, returned to, or
    (for purchases) received into. applied_quantity is the absolute delta the
    ledger actually applied; it only differs from quantity when a clamp at
    zero occurred, and reversal uses it so delete/update undo exactly what
    was done.
    """
    id = db.Column(db.Integer, primary_key=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_amount = db.Column(db.Numeric(15, 2), nullable=False)
    line_total = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    applied_quantity = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @declared_attr
    def product_id(cls):
        return db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    @declared_attr
    def stock_id(cls):
        return db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=True, index=True)

    @declared_attr
    def product(cls):
        return db.relationship("Product")

    @declared_attr
    def stock(cls):
        return db.relationship("StockRecord")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "stock_id": self.stock_id,
            "quantity": self.quantity,
            "unit_amount": money_str(self.unit_amount),
            "line_total": money_str(self.line_total),
            "applied_quantity": self.applied_quantity,
        }


# =============================================================================
# PURCHASE
# =============================================================================

class PurchaseLine(DocumentLineMixin, db.Model):
    __tablename__ = "purchase_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=True)

    batch = db.relationship("Batch")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["batch_id"] = self.batch_id
        return data


class Purchase(DocumentHeaderMixin, db.Model):
    """
    Inbound goods from a supplier. Each line increases the
    (product, store, batch) StockRecord, creating it on first receipt.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    KIND = DocumentKind.PURCHASE
    COUNTERPARTY_FIELD = "supplier_id"
    EXTRA_CHARGE_FIELD = "shipping_charge"

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    shipping_charge = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "PurchaseLine",
        backref="document",
        cascade="all, delete-orphan",
        order_by="PurchaseLine.id",
    )

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} status={self.status} total={self.total_amount}>"


# =============================================================================
# SALE
# =============================================================================

class SaleLine(DocumentLineMixin, db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)


class Sale(DocumentHeaderMixin, db.Model):
    """Outbound goods to a customer. Each line draws from a named StockRecord."""
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    KIND = DocumentKind.SALE
    COUNTERPARTY_FIELD = "customer_id"
    EXTRA_CHARGE_FIELD = "delivery_charge"

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    delivery_charge = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    customer = db.relationship("Customer")
    lines = db.relationship(
        "SaleLine",
        backref="document",
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} status={self.status} total={self.total_amount}>"


# =============================================================================
# RETURNS
# =============================================================================

class PurchaseReturnLine(DocumentLineMixin, db.Model):
    __tablename__ = "purchase_return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    purchase_return_id = db.Column(
        db.Integer, db.ForeignKey("purchase_returns.id"), nullable=False, index=True
    )


class PurchaseReturn(DocumentHeaderMixin, db.Model):
    """
    Goods sent back to the supplier of an original Purchase.

    Lines decrease the referenced StockRecord, clamped at zero. Per product,
    the quantity returned across all live returns may not exceed what the
    original purchase received.
    """
    __tablename__ = "purchase_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    KIND = DocumentKind.PURCHASE_RETURN
    COUNTERPARTY_FIELD = "supplier_id"
    ORIGINAL_FIELD = "original_purchase_id"

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    original_purchase_id = db.Column(
        db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True
    )

    supplier = db.relationship("Supplier")
    original = db.relationship("Purchase", backref=db.backref("returns", lazy=True))
    lines = db.relationship(
        "PurchaseReturnLine",
        backref="document",
        cascade="all, delete-orphan",
        order_by="PurchaseReturnLine.id",
    )


class SaleReturnLine(DocumentLineMixin, db.Model):
    __tablename__ = "sale_return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    sale_return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=False, index=True)


class SaleReturn(DocumentHeaderMixin, db.Model):
    """
    Goods brought back by the customer of an original Sale.

    Lines increase the referenced StockRecord (by default the record the
    original sale line drew from).
    """
    __tablename__ = "sale_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    KIND = DocumentKind.SALE_RETURN
    COUNTERPARTY_FIELD = "customer_id"
    ORIGINAL_FIELD = "original_sale_id"

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    customer = db.relationship("Customer")
    original = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    lines = db.relationship(
        "SaleReturnLine",
        backref="document",
        cascade="all, delete-orphan",
        order_by="SaleReturnLine.id",
    )


# =============================================================================
# KIND REGISTRY
# =============================================================================

DOCUMENT_MODELS = {
    DocumentKind.PURCHASE: (Purchase, PurchaseLine),
    DocumentKind.SALE: (Sale, SaleLine),
    DocumentKind.PURCHASE_RETURN: (PurchaseReturn, PurchaseReturnLine),
    DocumentKind.SALE_RETURN: (SaleReturn, SaleReturnLine),
}


def model_for(kind):
    """(header model, line model) for a header + lines document kind."""
    try:
        return DOCUMENT_MODELS[DocumentKind(kind)]
    except (KeyError, ValueError):
        raise ValueError(f"unknown document kind: {kind!r}")
