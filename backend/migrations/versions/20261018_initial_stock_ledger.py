"""Initial stock ledger schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("(CURRENT_TIMESTAMP)")


def _timestamps(updated=True, deleted=False):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False))
    if deleted:
        cols.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def _header_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_date", sa.Date(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("employee_id", sa.Integer(), nullable=True),
        sa.Column("payment_method_id", sa.Integer(), nullable=True),
        sa.Column("subtotal", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("due_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        *_timestamps(deleted=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["payment_method_id"], ["payment_methods.id"]),
    ]


def _line_columns(table):
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("stock_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("applied_quantity", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["stock_id"], ["stock_records.id"]),
        sa.CheckConstraint("quantity > 0", name=f"ck_{table}_quantity_positive"),
    ]


def upgrade():
    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_stores"),
        sa.UniqueConstraint("name", name="uq_stores_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stores", schema=None) as batch_op:
        batch_op.create_index("ix_stores_code", ["code"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_products"),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("manufacture_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_batches"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_customers"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_suppliers"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], name="fk_employees_store_id_stores"),
        sa.PrimaryKeyConstraint("id", name="pk_employees"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("employees", schema=None) as batch_op:
        batch_op.create_index("ix_employees_store_id", ["store_id"], unique=False)

    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id", name="pk_payment_methods"),
        sa.UniqueConstraint("name", name="uq_payment_methods_name"),
        sqlite_autoincrement=True,
    )

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------
    op.create_table(
        "stock_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit_cost", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="Active"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(deleted=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_records_quantity_non_negative"),
        sa.PrimaryKeyConstraint("id", name="pk_stock_records"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_records", schema=None) as batch_op:
        batch_op.create_index("ix_stock_records_key", ["product_id", "store_id", "batch_id"], unique=False)
        batch_op.create_index("ix_stock_records_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_records_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_stock_records_batch_id", ["batch_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stock_id", sa.Integer(), nullable=False),
        sa.Column("document_kind", sa.String(32), nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.Column("requested_delta", sa.Integer(), nullable=False),
        sa.Column("applied_delta", sa.Integer(), nullable=False),
        sa.Column("is_reversal", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit_cost", sa.Numeric(15, 2), nullable=True),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["stock_id"], ["stock_records.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_stock_movements"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_stock_id", ["stock_id"], unique=False)
        batch_op.create_index("ix_stock_movements_document", ["document_kind", "document_id"], unique=False)

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("adjustment_type", sa.String(16), nullable=False),
        sa.Column("adjusted_value", sa.Numeric(15, 2), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("stock_id", sa.Integer(), nullable=True),
        sa.Column("applied_quantity", sa.Integer(), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        *_timestamps(deleted=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.ForeignKeyConstraint(["stock_id"], ["stock_records.id"]),
        sa.CheckConstraint("quantity_change > 0", name="ck_stock_adjustments_quantity_change_positive"),
        sa.PrimaryKeyConstraint("id", name="pk_stock_adjustments"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_adjustments", schema=None) as batch_op:
        batch_op.create_index("ix_stock_adjustments_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_adjustments_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_stock_adjustments_status", ["status"], unique=False)

    op.create_table(
        "stock_transfers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("from_store_id", sa.Integer(), nullable=False),
        sa.Column("to_store_id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("transfer_value", sa.Numeric(15, 2), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("from_stock_id", sa.Integer(), nullable=True),
        sa.Column("to_stock_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        *_timestamps(deleted=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["from_store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["to_store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.ForeignKeyConstraint(["from_stock_id"], ["stock_records.id"]),
        sa.ForeignKeyConstraint(["to_stock_id"], ["stock_records.id"]),
        sa.CheckConstraint("quantity > 0", name="ck_stock_transfers_quantity_positive"),
        sa.CheckConstraint("from_store_id <> to_store_id", name="ck_stock_transfers_distinct_stores"),
        sa.PrimaryKeyConstraint("id", name="pk_stock_transfers"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_transfers", schema=None) as batch_op:
        batch_op.create_index("ix_stock_transfers_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_transfers_from_store_id", ["from_store_id"], unique=False)
        batch_op.create_index("ix_stock_transfers_to_store_id", ["to_store_id"], unique=False)
        batch_op.create_index("ix_stock_transfers_status", ["status"], unique=False)

    # ------------------------------------------------------------------
    # Header + line documents
    # ------------------------------------------------------------------
    op.create_table(
        "purchases",
        *_header_columns(),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("shipping_charge", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_purchases"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "sales",
        *_header_columns(),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("delivery_charge", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_sales"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "purchase_returns",
        *_header_columns(),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("original_purchase_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["original_purchase_id"], ["purchases.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_returns"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "sale_returns",
        *_header_columns(),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("original_sale_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["original_sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_sale_returns"),
        sqlite_autoincrement=True,
    )

    for table, counterparty, extra in (
        ("purchases", "supplier_id", ["store_id", "status"]),
        ("sales", "customer_id", ["store_id", "status"]),
        ("purchase_returns", "supplier_id", None),
        ("sale_returns", "customer_id", None),
    ):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_store_id", ["store_id"], unique=False)
            batch_op.create_index(f"ix_{table}_{counterparty}", [counterparty], unique=False)
            if extra:
                batch_op.create_index(f"ix_{table}_store_status", extra, unique=False)

    with op.batch_alter_table("purchase_returns", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_returns_original_purchase_id", ["original_purchase_id"], unique=False)
    with op.batch_alter_table("sale_returns", schema=None) as batch_op:
        batch_op.create_index("ix_sale_returns_original_sale_id", ["original_sale_id"], unique=False)

    op.create_table(
        "purchase_lines",
        *_line_columns("purchase_lines"),
        sa.Column("purchase_id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["purchase_id"], ["purchases.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_lines"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "sale_lines",
        *_line_columns("sale_lines"),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_sale_lines"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "purchase_return_lines",
        *_line_columns("purchase_return_lines"),
        sa.Column("purchase_return_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["purchase_return_id"], ["purchase_returns.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_return_lines"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "sale_return_lines",
        *_line_columns("sale_return_lines"),
        sa.Column("sale_return_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_return_id"], ["sale_returns.id"]),
        sa.PrimaryKeyConstraint("id", name="pk_sale_return_lines"),
        sqlite_autoincrement=True,
    )

    for table, parent in (
        ("purchase_lines", "purchase_id"),
        ("sale_lines", "sale_id"),
        ("purchase_return_lines", "purchase_return_id"),
        ("sale_return_lines", "sale_return_id"),
    ):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_{parent}", [parent], unique=False)
            batch_op.create_index(f"ix_{table}_product_id", ["product_id"], unique=False)
            batch_op.create_index(f"ix_{table}_stock_id", ["stock_id"], unique=False)


def downgrade():
    for table in (
        "sale_return_lines",
        "purchase_return_lines",
        "sale_lines",
        "purchase_lines",
        "sale_returns",
        "purchase_returns",
        "sales",
        "purchases",
        "stock_transfers",
        "stock_adjustments",
        "stock_movements",
        "stock_records",
        "payment_methods",
        "employees",
        "suppliers",
        "customers",
        "batches",
        "products",
        "stores",
    ):
        op.drop_table(table)
