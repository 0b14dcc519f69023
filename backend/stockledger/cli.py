# Overview: Flask CLI command group for schema bootstrap and stock inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# Schema:
# - python -m flask ledger init-db
#   Create any missing tables (idempotent).
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inspection:
# - python -m flask ledger stock [--product-id 1] [--store-id 1] [--all]
#   List stock records with quantity and unit cost.
# - python -m flask ledger movements 12
#   Show the movement history of one stock record.
# - python -m flask ledger verify
#   Check every stock record against its movement history.

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .errors import StockNotFound
from .extensions import db
from .models import StockMovement, StockRecord
from .services import stock_store


@click.group('ledger')
def ledger_group():
    """Stock ledger bootstrap and inspection commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema ready")


@ledger_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@ledger_group.command('stock')
@click.option('--product-id', type=int, help='Filter by product ID')
@click.option('--store-id', type=int, help='Filter by store ID')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive records too')
@with_appcontext
def list_stock_cli(product_id, store_id, show_all):
    """
    List stock records.

    Example:
        flask ledger stock
        flask ledger stock --product-id 3 --store-id 1
    """
    records = stock_store.list_stock(product_id=product_id, store_id=store_id, include_inactive=show_all)

    if not records:
        click.echo("No stock records found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<6} {'Product':<9} {'Store':<7} {'Batch':<7} {'Qty':>8} {'Unit cost':>12} {'Status'}")
    click.echo("="*72)
    for r in records:
        click.echo(
            f"{r.id:<6} {r.product_id:<9} {str(r.store_id or '-'):<7} {str(r.batch_id or '-'):<7} "
            f"{r.quantity:>8} {str(r.unit_cost):>12} {r.status}"
        )
    click.echo("="*72)
    click.echo(f"Total: {len(records)} record(s)\n")


@ledger_group.command('movements')
@click.argument('stock_id', type=int)
@with_appcontext
def movements_cli(stock_id):
    """Show the movement history of STOCK_ID, oldest first."""
    try:
        movements = stock_store.list_movements(stock_id)
    except StockNotFound as e:
        raise click.ClickException(e.message)

    if not movements:
        click.echo(f"No movements for stock record {stock_id}.")
        return

    for m in movements:
        marker = " (reversal)" if m.is_reversal else ""
        click.echo(
            f"#{m.id} {m.document_kind} {m.document_id}: requested {m.requested_delta:+d}, "
            f"applied {m.applied_delta:+d}, on hand {m.quantity_after}{marker}"
        )


@ledger_group.command('verify')
@with_appcontext
def verify_cli():
    """
    Every stock record's quantity must equal the sum of its applied movements
    and never be negative. Exits non-zero on any mismatch.
    """
    sums = dict(
        db.session.query(StockMovement.stock_id, func.coalesce(func.sum(StockMovement.applied_delta), 0))
        .group_by(StockMovement.stock_id)
        .all()
    )
    problems = 0
    for record in db.session.query(StockRecord).order_by(StockRecord.id).all():
        expected = int(sums.get(record.id, 0))
        if record.quantity < 0 or record.quantity != expected:
            problems += 1
            click.echo(f"FAIL stock {record.id}: quantity {record.quantity}, movements sum {expected}")

    if problems:
        raise click.ClickException(f"{problems} stock record(s) out of balance")
    click.echo("PASS All stock records balance with their movements")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
