# Overview: Flask API routes for exhibition spaces.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_BOOKING_MANAGER
from ..services import space_service


spaces_bp = Blueprint("spaces", __name__, url_prefix="/space")


@spaces_bp.get("")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_scope
def list_spaces_route():
    """All spaces with their Booked/Available status in the viewed session."""
    return jsonify({"spaces": space_service.list_spaces(g.scope.viewing_id), "scope": g.scope.to_dict()}), 200


@spaces_bp.get("/<int:space_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def get_space_route(space_id: int):
    return jsonify({"space": space_service.get_space(space_id).to_dict()}), 200


@spaces_bp.post("")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def create_space_route():
    space = space_service.create_space(
        request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"space": space.to_dict()}), 201


@spaces_bp.put("/<int:space_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def update_space_route(space_id: int):
    space = space_service.update_space(
        space_id, request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"space": space.to_dict()}), 200


@spaces_bp.delete("/<int:space_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def delete_space_route(space_id: int):
    """409 while any booking references the space."""
    space_service.delete_space(space_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Space deleted"}), 200
