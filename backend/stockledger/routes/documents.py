# Overview: Flask API routes for purchases, sales and their returns; parses input and returns JSON responses.

"""
Header + line-item document endpoints.

The same five routes are mounted once per document kind:

    POST   /api/<kind>          create   body: header fields + "items": [...]
    GET    /api/<kind>          list     ?page&per_page&store_id&status&q&date_from&date_to
    GET    /api/<kind>/<id>     get
    PUT    /api/<kind>/<id>     update   body as create; omit "items" to keep them
    DELETE /api/<kind>/<id>     delete   reverses stock, soft-deletes

Item shape:
{
    "product_id": int,
    "quantity": int (> 0),
    "unit_amount": "5.00" (cost for purchases, price otherwise),
    "stock_id": int (required for sales, optional elsewhere),
    "batch_id": int (purchases, optional),
    "line_total": "50.00" (optional override)
}
"""

from flask import Blueprint, jsonify

from ..errors import LedgerError
from ..kinds import DocumentKind
from ..services import document_service
from .errors import actor_user_id, json_body, ledger_error_response, page_args, search_args, unexpected_error_response


def _split(payload: dict):
    header = dict(payload)
    items = header.pop("items", None)
    return header, items


def make_document_blueprint(kind: DocumentKind, url_segment: str) -> Blueprint:
    bp = Blueprint(f"{kind.value}s", __name__, url_prefix=f"/api/{url_segment}")

    @bp.post("")
    def create():
        try:
            header, items = _split(json_body())
            document = document_service.create_document(kind, header, items, actor_user_id=actor_user_id())
            return jsonify(document.to_dict()), 201
        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            return unexpected_error_response()

    @bp.get("")
    def list_all():
        try:
            return jsonify(document_service.list_documents(kind, **page_args(), **search_args()))
        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            return unexpected_error_response()

    @bp.get("/<int:document_id>")
    def get_one(document_id: int):
        try:
            return jsonify(document_service.get_document(kind, document_id).to_dict())
        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            return unexpected_error_response()

    @bp.put("/<int:document_id>")
    def update(document_id: int):
        try:
            header, items = _split(json_body())
            document = document_service.update_document(
                kind, document_id, header, items, actor_user_id=actor_user_id()
            )
            return jsonify(document.to_dict())
        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            return unexpected_error_response()

    @bp.delete("/<int:document_id>")
    def delete(document_id: int):
        try:
            document_service.delete_document(kind, document_id, actor_user_id=actor_user_id())
            return jsonify({"id": document_id, "deleted": True})
        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            return unexpected_error_response()

    return bp


purchases_bp = make_document_blueprint(DocumentKind.PURCHASE, "purchases")
sales_bp = make_document_blueprint(DocumentKind.SALE, "sales")
purchase_returns_bp = make_document_blueprint(DocumentKind.PURCHASE_RETURN, "purchase-returns")
sale_returns_bp = make_document_blueprint(DocumentKind.SALE_RETURN, "sale-returns")
