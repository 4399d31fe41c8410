# Overview: Flask API routes for the edit-approval workflow.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_admin, require_login
from ..services import edit_request_service


edits_bp = Blueprint("edits", __name__, url_prefix="/edits")


@edits_bp.get("/pending")
@require_login
@require_admin
def pending_edits_route():
    return jsonify({"edit_requests": edit_request_service.pending_approvals()}), 200


@edits_bp.post("/<int:edit_id>/approve")
@require_login
@require_admin
def approve_edit_route(edit_id: int):
    """Apply the proposed change exactly as a direct admin edit would."""
    entity = edit_request_service.approve_edit(edit_id, admin=g.current_user, event_session_id=g.scope.active_id)
    return jsonify({"message": "Edit approved", "entity": entity.to_dict()}), 200


@edits_bp.post("/<int:edit_id>/reject")
@require_login
@require_admin
def reject_edit_route(edit_id: int):
    data = request.get_json(silent=True) or {}
    row = edit_request_service.reject_edit(
        edit_id, data.get("rejection_reason"), admin=g.current_user, event_session_id=g.scope.active_id
    )
    return jsonify({"message": "Edit rejected", "edit_request": row.to_dict()}), 200


@edits_bp.get("/notifications")
@require_login
def notifications_route():
    return jsonify({"notifications": edit_request_service.notifications_for(g.current_user)}), 200


@edits_bp.post("/<int:edit_id>/dismiss")
@require_login
def dismiss_notification_route(edit_id: int):
    row = edit_request_service.dismiss_notification(edit_id, user=g.current_user)
    return jsonify({"edit_request": row.to_dict()}), 200
