# backend/stockledger/routes/transfers.py
"""
Inter-store stock transfer API routes.
"""
from flask import Blueprint, jsonify

from ..errors import LedgerError
from ..services import transfer_service
from .errors import actor_user_id, json_body, ledger_error_response, page_args, unexpected_error_response


transfers_bp = Blueprint("stock_transfers", __name__, url_prefix="/api/stock-transfers")


@transfers_bp.route("", methods=["POST"])
def create_transfer():
    """
    Create a transfer.

    Request body:
    {
        "product_id": int,
        "from_store_id": int,
        "to_store_id": int,
        "batch_id": int (optional),
        "quantity": int (> 0),
        "transfer_value": "25.00" (optional),
        "status": "Pending" (default) | "Completed" | "Cancelled"
    }

    Returns:
        201: Transfer created
        400: Invalid request (including from_store_id == to_store_id)
        404: Product/store not found
        409: Insufficient stock at the source (when created Completed)
    """
    try:
        transfer = transfer_service.create_transfer(json_body(), actor_user_id=actor_user_id())
        return jsonify(transfer.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@transfers_bp.route("", methods=["GET"])
def list_transfers():
    """Query params: page, per_page, store_id (either side), status."""
    try:
        return jsonify(transfer_service.list_transfers(**page_args()))
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
def get_transfer(transfer_id: int):
    try:
        return jsonify(transfer_service.get_transfer(transfer_id).to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@transfers_bp.route("/<int:transfer_id>", methods=["PUT"])
def update_transfer(transfer_id: int):
    try:
        transfer = transfer_service.update_transfer(transfer_id, json_body(), actor_user_id=actor_user_id())
        return jsonify(transfer.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@transfers_bp.route("/<int:transfer_id>/status", methods=["PATCH"])
def set_transfer_status(transfer_id: int):
    """
    Request body: {"status": "Completed" | "Cancelled"}

    Returns:
        200: Status changed (Completed moves the stock)
        409: Transition not allowed, or insufficient stock at the source
    """
    try:
        transfer = transfer_service.set_transfer_status(
            transfer_id, json_body().get("status"), actor_user_id=actor_user_id()
        )
        return jsonify(transfer.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()


@transfers_bp.route("/<int:transfer_id>", methods=["DELETE"])
def delete_transfer(transfer_id: int):
    try:
        transfer_service.delete_transfer(transfer_id, actor_user_id=actor_user_id())
        return jsonify({"id": transfer_id, "deleted": True})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response()
