from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


STOCK_STATUS_ACTIVE = "Active"
STOCK_STATUS_INACTIVE = "Inactive"

ADJUSTMENT_INCREASE = "Increase"
ADJUSTMENT_DECREASE = "Decrease"
ADJUSTMENT_TYPES = (ADJUSTMENT_INCREASE, ADJUSTMENT_DECREASE)

ADJUSTMENT_STATUS_PENDING = "Pending"
ADJUSTMENT_STATUS_DONE = "Done"
ADJUSTMENT_STATUS_CANCELLED = "Cancelled"
ADJUSTMENT_STATUSES = (ADJUSTMENT_STATUS_PENDING, ADJUSTMENT_STATUS_DONE, ADJUSTMENT_STATUS_CANCELLED)

TRANSFER_STATUS_PENDING = "Pending"
TRANSFER_STATUS_COMPLETED = "Completed"
TRANSFER_STATUS_CANCELLED = "Cancelled"
TRANSFER_STATUSES = (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_COMPLETED, TRANSFER_STATUS_CANCELLED)


class StockRecord(db.Model):
    """
    Quantity on hand for one (product, store-or-none, batch-or-none) key.

    INVARIANTS:
    - quantity >= 0 at all times (CHECK constraint backs the service-level guard)
    - Only the ledger services write quantity; everything else reads
    - Records are never hard-deleted by the ledger; deleted_at is set only
      by administrative tooling

    CONCURRENCY:
    - Rows are read with SELECT ... FOR UPDATE before mutation
    - version_id_col turns a lost update into StaleDataError on flush

    unit_cost is last-write-wins: every inbound movement that carries a cost
    overwrites it.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.Index("ix_stock_records_key", "product_id", "store_id", "batch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STOCK_STATUS_ACTIVE)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product", backref=db.backref("stock_records", lazy=True))
    store = db.relationship("Store")
    batch = db.relationship("Batch", backref=db.backref("stock_records", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockRecord id={self.id} product_id={self.product_id} store_id={self.store_id} "
            f"batch_id={self.batch_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "status": self.status,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for every quantity change applied to a StockRecord.

    requested_delta is what the document asked for; applied_delta is what
    actually happened (they differ only when a clamp at zero kicked in).
    Rows are written in the same DB transaction as the change they record.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_document", "document_kind", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=False, index=True)
    document_kind = db.Column(db.String(32), nullable=False)
    document_id = db.Column(db.Integer, nullable=False)
    requested_delta = db.Column(db.Integer, nullable=False)
    applied_delta = db.Column(db.Integer, nullable=False)
    is_reversal = db.Column(db.Boolean, nullable=False, default=False)
    unit_cost = db.Column(db.Numeric(15, 2), nullable=True)
    quantity_after = db.Column(db.Integer, nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    stock = db.relationship("StockRecord", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_id": self.stock_id,
            "document_kind": self.document_kind,
            "document_id": self.document_id,
            "requested_delta": self.requested_delta,
            "applied_delta": self.applied_delta,
            "is_reversal": self.is_reversal,
            "unit_cost": money_str(self.unit_cost),
            "quantity_after": self.quantity_after,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class StockAdjustment(db.Model):
    """
    Single-product signed correction of on-hand quantity.

    LIFECYCLE:
    1. Pending: recorded, no stock effect
    2. Done: stock effect applied exactly once
    3. Cancelled: terminal, no stock effect

    Done and Cancelled are terminal; re-applying Done is rejected.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.CheckConstraint("quantity_change > 0", name="quantity_change_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=True)

    quantity_change = db.Column(db.Integer, nullable=False)
    adjustment_type = db.Column(db.String(16), nullable=False)
    adjusted_value = db.Column(db.Numeric(15, 2), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=ADJUSTMENT_STATUS_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Filled when the adjustment is applied; drives an exact reversal on delete
    stock_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=True)
    applied_quantity = db.Column(db.Integer, nullable=True)
    applied_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")
    store = db.relationship("Store")
    stock = db.relationship("StockRecord")

    def __repr__(self) -> str:
        return (
            f"<StockAdjustment id={self.id} {self.adjustment_type} {self.quantity_change} "
            f"status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "batch_id": self.batch_id,
            "quantity_change": self.quantity_change,
            "adjustment_type": self.adjustment_type,
            "adjusted_value": money_str(self.adjusted_value),
            "reason": self.reason,
            "status": self.status,
            "notes": self.notes,
            "stock_id": self.stock_id,
            "applied_quantity": self.applied_quantity,
            "applied_at": to_utc_z(self.applied_at),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransfer(db.Model):
    """
    Single-product movement between two distinct stores.

    LIFECYCLE:
    1. Pending: recorded, no stock effect
    2. Completed: source decreased and destination increased by the same quantity
    3. Cancelled: terminal, no stock effect
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.CheckConstraint("from_store_id <> to_store_id", name="distinct_stores"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    from_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    to_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    transfer_value = db.Column(db.Numeric(15, 2), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    from_stock_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=True)
    to_stock_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")
    from_store = db.relationship("Store", foreign_keys=[from_store_id])
    to_store = db.relationship("Store", foreign_keys=[to_store_id])
    from_stock = db.relationship("StockRecord", foreign_keys=[from_stock_id])
    to_stock = db.relationship("StockRecord", foreign_keys=[to_stock_id])

    def __repr__(self) -> str:
        return (
            f"<StockTransfer id={self.id} product_id={self.product_id} "
            f"{self.from_store_id}->{self.to_store_id} qty={self.quantity} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "from_store_id": self.from_store_id,
            "to_store_id": self.to_store_id,
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "transfer_value": money_str(self.transfer_value),
            "status": self.status,
            "notes": self.notes,
            "from_stock_id": self.from_stock_id,
            "to_stock_id": self.to_stock_id,
            "completed_at": to_utc_z(self.completed_at),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
