# Overview: Flask API routes for event sessions (editions of the fair); admin only.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_admin, require_login
from ..services import event_session_service


sessions_bp = Blueprint("sessions", __name__, url_prefix="/sessions")


@sessions_bp.get("")
@require_login
@require_admin
def list_sessions_route():
    return jsonify({
        "sessions": [s.to_dict() for s in event_session_service.list_sessions()],
        "scope": g.scope.to_dict(),
    }), 200


@sessions_bp.post("")
@require_login
@require_admin
def create_session_route():
    """Create an (inactive) event session."""
    event_session = event_session_service.create_session(request.get_json(silent=True) or {}, user=g.current_user)
    return jsonify({"session": event_session.to_dict()}), 201


@sessions_bp.put("/<int:session_id>")
@require_login
@require_admin
def update_session_route(session_id: int):
    event_session = event_session_service.update_session(
        session_id, request.get_json(silent=True) or {}, user=g.current_user
    )
    return jsonify({"session": event_session.to_dict()}), 200


@sessions_bp.post("/<int:session_id>/activate")
@require_login
@require_admin
def activate_session_route(session_id: int):
    """Make this the single active (writable) session."""
    event_session = event_session_service.activate_session(session_id, user=g.current_user)
    return jsonify({"session": event_session.to_dict()}), 200
