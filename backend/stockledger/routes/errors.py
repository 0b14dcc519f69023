# Overview: Request parsing and JSON error responses shared by every blueprint.

from flask import current_app, jsonify, request

from ..errors import LedgerError


def ledger_error_response(e: LedgerError):
    """{"error", "type", "details"} with the error's status code."""
    if e.status_code >= 500:
        current_app.logger.error("%s %s failed: %s", request.method, request.path, e.message)
    return jsonify(e.to_dict()), e.status_code


def unexpected_error_response():
    """Log the active exception and return a bare 500."""
    current_app.logger.exception("Unexpected error on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    """Parsed JSON object body; anything else becomes an empty dict for the services to reject."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def actor_user_id():
    """Caller identity for audit columns; authentication lives outside the ledger."""
    return request.headers.get("X-Actor-Id", type=int)


def page_args() -> dict:
    return {
        "page": request.args.get("page", type=int),
        "per_page": request.args.get("per_page", type=int),
        "store_id": request.args.get("store_id", type=int),
        "status": request.args.get("status") or None,
    }


def search_args() -> dict:
    """Text search and inclusive date range for document listings; the services validate them."""
    return {
        "q": request.args.get("q") or None,
        "date_from": request.args.get("date_from") or None,
        "date_to": request.args.get("date_to") or None,
    }
