# Overview: Flask API routes for sheds, shed allocations and shed bills.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_BOOKING_MANAGER
from ..services import shed_service


sheds_bp = Blueprint("sheds", __name__, url_prefix="/shed")


@sheds_bp.get("")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_scope
def list_sheds_route():
    return jsonify({
        "sheds": [shed.to_dict() for shed in shed_service.list_sheds()],
        "allocations": shed_service.list_allocations(g.scope.viewing_id),
    }), 200


@sheds_bp.post("")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def create_shed_route():
    shed = shed_service.create_shed(request.get_json(silent=True) or {}, user=g.current_user)
    return jsonify({"shed": shed.to_dict()}), 201


@sheds_bp.put("/<int:shed_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def update_shed_route(shed_id: int):
    shed = shed_service.update_shed(shed_id, request.get_json(silent=True) or {}, user=g.current_user)
    return jsonify({"shed": shed.to_dict()}), 200


@sheds_bp.delete("/<int:shed_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def delete_shed_route(shed_id: int):
    """409 while the shed is allocated."""
    shed_service.delete_shed(shed_id, user=g.current_user)
    return jsonify({"message": "Shed deleted"}), 200


# =============================================================================
# ALLOCATIONS
# =============================================================================

@sheds_bp.post("/allocate")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def allocate_shed_route():
    """
    Request body:
        {"shed_id": int, "booking_id": int}
    """
    data = request.get_json(silent=True) or request.form.to_dict()
    allocation = shed_service.allocate_shed(
        data.get("shed_id"),
        data.get("booking_id"),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"allocation": allocation.to_dict()}), 201


@sheds_bp.delete("/allocations/<int:allocation_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def delete_allocation_route(allocation_id: int):
    shed_service.delete_allocation(allocation_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Shed allocation removed"}), 200


# =============================================================================
# BILLS
# =============================================================================

@sheds_bp.get("/bills")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_scope
def list_shed_bills_route():
    return jsonify({"bills": shed_service.list_bills(g.scope.viewing_id)}), 200


@sheds_bp.post("/bills")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def create_shed_bill_route():
    bill = shed_service.create_bill(
        request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"bill": bill.to_dict()}), 201


@sheds_bp.put("/bills/<int:bill_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def update_shed_bill_route(bill_id: int):
    bill = shed_service.update_bill(
        bill_id, request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"bill": bill.to_dict()}), 200


@sheds_bp.delete("/bills/<int:bill_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def delete_shed_bill_route(bill_id: int):
    shed_service.delete_bill(bill_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Shed bill deleted"}), 200
