# Overview: Flask API routes for user, staff and settings administration; admin only.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_admin, require_login
from ..models.auth import ROLES
from ..services import auth_service, material_service, staff_service


users_bp = Blueprint("users", __name__)


# =============================================================================
# USERS
# =============================================================================

@users_bp.get("/users")
@require_login
@require_admin
def list_users_route():
    return jsonify({"users": [u.to_dict() for u in auth_service.list_users()], "roles": list(ROLES)}), 200


@users_bp.post("/users")
@require_login
@require_admin
def create_user_route():
    """
    Request body:
        {"username": str, "password": str, "role": str}
    """
    data = request.get_json(silent=True) or request.form.to_dict()
    user = auth_service.create_user(
        data.get("username"), data.get("password"), data.get("role"), actor=g.current_user
    )
    return jsonify({"user": user.to_dict()}), 201


@users_bp.put("/users/<int:user_id>/role")
@require_login
@require_admin
def set_user_role_route(user_id: int):
    """409 when demoting the only admin."""
    data = request.get_json(silent=True) or {}
    user = auth_service.set_role(user_id, data.get("role"), actor=g.current_user)
    return jsonify({"user": user.to_dict()}), 200


# =============================================================================
# STAFF
# =============================================================================

@users_bp.get("/staff")
@require_login
@require_admin
def list_staff_route():
    return jsonify({"staff": [s.to_dict() for s in staff_service.list_staff()]}), 200


@users_bp.post("/staff")
@require_login
@require_admin
def create_staff_route():
    staff = staff_service.create_staff(request.get_json(silent=True) or request.form.to_dict(), user=g.current_user)
    return jsonify({"staff": staff.to_dict()}), 201


# =============================================================================
# SETTINGS
# =============================================================================

@users_bp.get("/settings/material-defaults")
@require_login
@require_admin
def get_material_defaults_route():
    return jsonify({"defaults": material_service.get_defaults().to_dict()}), 200


@users_bp.put("/settings/material-defaults")
@require_login
@require_admin
def update_material_defaults_route():
    defaults = material_service.update_defaults(request.get_json(silent=True) or {}, user=g.current_user)
    return jsonify({"defaults": defaults.to_dict()}), 200
