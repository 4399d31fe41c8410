# Overview: Flask API routes for login, logout and the current user.

# backend/fairdesk/routes/auth.py
"""
Authentication API routes.

The signed session cookie carries {id, username, role}; see decorators.require_login.
"""

from flask import Blueprint, current_app, g, jsonify, request, session

from ..decorators import SESSION_USER_KEY, require_login
from ..services import auth_service


auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/login")
def login_route():
    """
    Log in with username and password.

    Request body:
        {"username": str, "password": str}

    Returns:
        200: {"user": {...}}
        400: missing fields
        401: wrong credentials
    """
    data = request.get_json(silent=True) or request.form or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        return jsonify({"error": "username and password required"}), 400

    user = auth_service.authenticate(username, password)
    if user is None:
        current_app.logger.info("Failed login for '%s'", username)
        return jsonify({"error": "Invalid username or password."}), 401

    session.clear()
    session[SESSION_USER_KEY] = {"id": user.id, "username": user.username, "role": user.role}
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.post("/logout")
def logout_route():
    session.clear()
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_login
def me_route():
    """Current user and the request's event session scope."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "scope": g.scope.to_dict(),
        "sessions": [s.to_dict() for s in g.scope.sessions],
    }), 200
