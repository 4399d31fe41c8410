# Overview: Flask API route for the dashboard summary.

from flask import Blueprint, g, jsonify

from ..decorators import require_login, require_scope
from ..services import audit_service, edit_request_service, reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


@dashboard_bp.get("")
@require_login
@require_scope
def dashboard_route():
    """
    Space counts, per-category financials and recent activity for the viewed
    session; admins also get pending approvals, everyone else their own
    edit-request notifications.
    """
    user = g.current_user
    data = reporting_service.dashboard_summary(g.scope.viewing_id)
    data["recent_activity"] = [entry.to_dict() for entry in audit_service.recent_activity(g.scope.viewing_id)]
    if user.is_admin:
        data["pending_approvals"] = edit_request_service.pending_approvals()
    else:
        data["notifications"] = edit_request_service.notifications_for(user)
    data["scope"] = g.scope.to_dict()
    return jsonify(data), 200
