# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/stocktracker/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require authentication.
- Read operations allow admin and guest
- Stock-in, stock-out, return, delete and reset require the admin role

There is deliberately no PUT on a product: quantities only change through
the stock-in / stock-out / return primitives.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service
from ..validation import (
    PayloadPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    StorageError,
)
from ..decorators import require_auth, require_admin


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

STOCK_IN_POLICY = PayloadPolicy(
    writable_fields=frozenset({"name", "quantity", "price", "date"}),
    required=frozenset({"name", "quantity", "price"}),
)

STOCK_OUT_POLICY = PayloadPolicy(
    writable_fields=frozenset({"name", "quantity", "price", "channel", "date"}),
    required=frozenset({"name", "quantity", "price"}),
)

RETURN_POLICY = PayloadPolicy(
    writable_fields=frozenset({"name", "quantity", "reason", "price", "date"}),
    required=frozenset({"name", "quantity"}),
)


def _insufficient_stock(e: InsufficientStockError):
    return jsonify({
        "error": "Insufficient stock",
        "message": str(e),
        "available": e.available,
        "requested": e.requested,
    }), 409


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    """List all products, ordered by name."""
    try:
        products = inventory_service.list_products()
    except StorageError:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify([p.to_dict() for p in products]), 200


@inventory_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to load product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(product.to_dict()), 200


@inventory_bp.get("/last-sale-price")
@require_auth
def last_sale_price_route():
    """
    Price of the most recent sale of a product, used to pre-fill stock-out.

    Query params:
    - name: product name (case-insensitive)
    """
    try:
        price = inventory_service.last_sale_price(request.args.get("name"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError:
        current_app.logger.exception("Failed to load last sale price")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"price": float(price) if price is not None else None}), 200


@inventory_bp.post("/stock-in")
@require_auth
@require_admin
def stock_in_route():
    """
    Receive stock. Creates the product if the name is new.

    Body: {"name", "quantity", "price", "date"?}; numbers may be strings.
    """
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=STOCK_IN_POLICY)
        movement = inventory_service.stock_in(
            name=data.get("name"),
            quantity=data.get("quantity"),
            price=data.get("price"),
            occurred_at=data.get("date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError:
        current_app.logger.exception("Failed to record stock in")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(movement.to_dict()), 201


@inventory_bp.post("/stock-out")
@require_auth
@require_admin
def stock_out_route():
    """
    Record a sale.

    Body: {"name", "quantity", "price", "channel"?, "date"?}.
    409 with available/requested when stock is insufficient; nothing is written.
    """
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=STOCK_OUT_POLICY)
        movement = inventory_service.stock_out(
            name=data.get("name"),
            quantity=data.get("quantity"),
            price=data.get("price"),
            channel=data.get("channel"),
            occurred_at=data.get("date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InsufficientStockError as e:
        return _insufficient_stock(e)
    except StorageError:
        current_app.logger.exception("Failed to record stock out")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(movement.to_dict()), 201


@inventory_bp.post("/return")
@require_auth
@require_admin
def return_stock_route():
    """
    Record a customer return.

    Body: {"name", "quantity", "reason"?, "price"?, "date"?}.
    """
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=RETURN_POLICY)
        movement = inventory_service.return_stock(
            name=data.get("name"),
            quantity=data.get("quantity"),
            reason=data.get("reason"),
            price=data.get("price"),
            occurred_at=data.get("date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to record return")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(movement.to_dict()), 201


@inventory_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    """Remove a product; a DELETE entry is written to the ledger."""
    try:
        movement = inventory_service.delete_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Product deleted", **movement.to_dict()}), 200


@inventory_bp.delete("/reset")
@require_auth
@require_admin
def reset_inventory_route():
    """Clear all products. Transactions are kept."""
    try:
        removed = inventory_service.reset_inventory()
    except StorageError:
        current_app.logger.exception("Failed to reset inventory")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"message": "All inventory cleared", "removed": removed}), 200
