# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

from flask import Blueprint, jsonify

from ..errors import LedgerError
from ..services import adjustment_service
from .errors import actor_user_id, json_body, ledger_error_response, page_args, unexpected_error_response

adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")


@adjustments_bp.post("")
def create_adjustment():
    """
    Create a stock adjustment.

    Request body:
    {
        "product_id": int,
        "store_id": int (optional),
        "batch_id": int (optional),
        "quantity_change": int (> 0),
        "adjustment_type": "Increase" | "Decrease",
        "adjusted_value": "20.00" (optional, total value of an increase),
        "reason": str (optional),
        "status": "Pending" (default) | "Done" | "Cancelled"
    }

    Returns:
        201: Adjustment created
        400: Invalid request
        404: Product/store/batch not found
        409: Insufficient stock (Decrease created as Done)
    """
    try:
        adjustment = adjustment_service.create_adjustment(json_body(), actor_user_id=actor_user_id())
        return jsonify(adjustment.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@adjustments_bp.get("")
def list_adjustments():
    try:
        return jsonify(adjustment_service.list_adjustments(**page_args()))
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment(adjustment_id: int):
    try:
        return jsonify(adjustment_service.get_adjustment(adjustment_id).to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@adjustments_bp.put("/<int:adjustment_id>")
def update_adjustment(adjustment_id: int):
    """Edit a Pending adjustment (no stock effect)."""
    try:
        adjustment = adjustment_service.update_adjustment(adjustment_id, json_body(), actor_user_id=actor_user_id())
        return jsonify(adjustment.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@adjustments_bp.patch("/<int:adjustment_id>/status")
def set_adjustment_status(adjustment_id: int):
    """
    Request body: {"status": "Done" | "Cancelled"}

    Returns:
        200: Status changed (Done applies the stock effect)
        409: Transition not allowed, or insufficient stock
    """
    try:
        adjustment = adjustment_service.set_adjustment_status(
            adjustment_id, json_body().get("status"), actor_user_id=actor_user_id()
        )
        return jsonify(adjustment.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@adjustments_bp.delete("/<int:adjustment_id>")
def delete_adjustment(adjustment_id: int):
    try:
        adjustment_service.delete_adjustment(adjustment_id, actor_user_id=actor_user_id())
        return jsonify({"id": adjustment_id, "deleted": True})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()
