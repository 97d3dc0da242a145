# Overview: Flask API routes for user administration; admin only.

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..validation import (
    PayloadPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    DuplicateUserError,
    StorageError,
)
from ..decorators import require_auth, require_admin


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

CREATE_USER_POLICY = PayloadPolicy(
    writable_fields=frozenset({"username", "password", "role"}),
    required=frozenset({"username", "password"}),
)


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    try:
        users = auth_service.list_users()
    except StorageError:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify([u.to_dict() for u in users]), 200


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    """
    Create a user.

    Body: {"username", "password", "role"?}; role is admin or guest (default guest).
    """
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=CREATE_USER_POLICY)
        user = auth_service.create_user(
            data.get("username"),
            data.get("password"),
            data.get("role"),
        )
    except DuplicateUserError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User created", "user": user.to_dict()}), 201


@users_bp.delete("/<username>")
@require_auth
@require_admin
def delete_user_route(username: str):
    """Delete a user. The main 'admin' account cannot be deleted."""
    try:
        auth_service.delete_user(username)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User deleted"}), 200
