# Overview: Flask API routes for the transaction ledger and the administrative resets.

from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service, reporting_service
from ..validation import ValidationError, StorageError
from ..decorators import require_auth, require_admin


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api")


@transactions_bp.get("/transactions")
@require_auth
def list_transactions_route():
    """
    List ledger entries, newest first.

    Query params (all optional):
    - start, end: YYYY-MM-DD (whole day) or ISO-8601 datetime, inclusive
    - product: product name, case-insensitive
    - type: IN, OUT, RETURN or DELETE; repeat or comma-separate for several
    """
    raw_types = [t for value in request.args.getlist("type") for t in value.split(",") if t.strip()]

    try:
        rows = reporting_service.list_transactions(
            start=request.args.get("start"),
            end=request.args.get("end"),
            product=request.args.get("product"),
            types=raw_types or None,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify([r.to_dict() for r in rows]), 200


@transactions_bp.delete("/transactions/reset")
@require_auth
@require_admin
def reset_ledger_route():
    """Clear all transactions. Products are kept."""
    try:
        removed = inventory_service.reset_ledger()
    except StorageError:
        current_app.logger.exception("Failed to reset transactions")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"message": "All transactions cleared", "removed": removed}), 200


@transactions_bp.delete("/reset")
@require_auth
@require_admin
def reset_all_route():
    """Clear products and transactions together."""
    try:
        removed = inventory_service.reset_all()
    except StorageError:
        current_app.logger.exception("Failed to reset all data")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"message": "All data cleared", "removed": removed}), 200
