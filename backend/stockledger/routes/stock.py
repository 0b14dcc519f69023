# Overview: Read-only stock endpoints for reporting; quantities are only changed through documents.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import stock_store
from .errors import ledger_error_response, unexpected_error_response

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def list_stock():
    """
    List live stock records.

    Query params:
    - product_id: int (optional)
    - store_id: int (optional)
    - include_inactive: "1"/"true" to include Inactive records
    """
    try:
        include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
        records = stock_store.list_stock(
            product_id=request.args.get("product_id", type=int),
            store_id=request.args.get("store_id", type=int),
            include_inactive=include_inactive,
        )
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)})
    except Exception:
        return unexpected_error_response()


@stock_bp.get("/on-hand")
def on_hand():
    """Total on hand for a product across batches (and stores, unless store_id is given)."""
    product_id = request.args.get("product_id", type=int)
    if product_id is None:
        return jsonify({"error": "product_id is required"}), 400
    store_id = request.args.get("store_id", type=int)
    try:
        return jsonify({
            "product_id": product_id,
            "store_id": store_id,
            "quantity_on_hand": stock_store.quantity_on_hand(product_id, store_id),
        })
    except Exception:
        return unexpected_error_response()


@stock_bp.get("/low")
def low_stock():
    """
    Active records at or below a quantity threshold.

    Query params:
    - threshold: int (optional, defaults to LEDGER_LOW_STOCK_THRESHOLD)
    - store_id: int (optional)
    """
    try:
        records = stock_store.low_stock(
            threshold=request.args.get("threshold", type=int),
            store_id=request.args.get("store_id", type=int),
        )
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@stock_bp.get("/value")
def stock_value():
    store_id = request.args.get("store_id", type=int)
    try:
        return jsonify({"store_id": store_id, "total_value": str(stock_store.total_value(store_id))})
    except Exception:
        return unexpected_error_response()


@stock_bp.get("/<int:stock_id>")
def get_stock(stock_id: int):
    try:
        return jsonify(stock_store.get_by_id(stock_id).to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@stock_bp.get("/<int:stock_id>/movements")
def stock_movements(stock_id: int):
    try:
        movements = stock_store.list_movements(stock_id)
        return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()
