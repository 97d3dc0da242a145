# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stocktracker/routes/auth.py
"""
Authentication API routes

- POST /api/login (and /api/auth/login): exchange credentials for a bearer token
- POST /api/auth/logout: revoke the current token
- GET /api/auth/me: the user behind the current token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..validation import UnauthorizedError, StorageError
from ..decorators import require_auth
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/login")
@auth_bp.post("/auth/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in Authorization header for protected routes.
    The response also carries success=true and the role, which older
    clients read directly.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "username and password required"}), 400

    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        return jsonify({"error": "username and password required"}), 400

    try:
        user = auth_service.authenticate(username, password)
        session, token = session_service.create_session(user)
    except UnauthorizedError as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except StorageError:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "success": True,
        "user": user.to_dict(),
        "username": user.username,
        "role": user.role,
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "message": "Login successful"
    }), 200


@auth_bp.post("/auth/logout")
@require_auth
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        revoked = session_service.revoke_session(g.session_token, reason="User logout")
    except StorageError:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500

    if not revoked:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/auth/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
