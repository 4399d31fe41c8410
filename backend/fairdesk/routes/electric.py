# Overview: Flask API routes for the electric item catalogue and electric bills.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_admin, require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_BOOKING_MANAGER
from ..services import edit_request_service, electric_service


electric_bp = Blueprint("electric", __name__, url_prefix="/electric")


# =============================================================================
# ITEM CATALOGUE (admin)
# =============================================================================

@electric_bp.get("/items")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def list_items_route():
    return jsonify({"items": [item.to_dict() for item in electric_service.list_items()]}), 200


@electric_bp.post("/items")
@require_login
@require_admin
def create_item_route():
    item = electric_service.create_item(request.get_json(silent=True) or {}, user=g.current_user)
    return jsonify({"item": item.to_dict()}), 201


@electric_bp.put("/items/<int:item_id>")
@require_login
@require_admin
def update_item_route(item_id: int):
    item = electric_service.update_item(item_id, request.get_json(silent=True) or {}, user=g.current_user)
    return jsonify({"item": item.to_dict()}), 200


@electric_bp.delete("/items/<int:item_id>")
@require_login
@require_admin
def delete_item_route(item_id: int):
    electric_service.delete_item(item_id, user=g.current_user)
    return jsonify({"message": "Electric item deleted"}), 200


# =============================================================================
# BILLS
# =============================================================================

@electric_bp.get("/bills")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_scope
def list_bills_route():
    return jsonify({"bills": electric_service.list_bills(g.scope.viewing_id)}), 200


@electric_bp.get("/bills/booking/<int:booking_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def bills_for_booking_route(booking_id: int):
    bills = electric_service.bills_for_booking(booking_id)
    return jsonify({"bills": [bill.to_dict() for bill in bills]}), 200


@electric_bp.post("/bills")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def create_bill_route():
    """
    Add a bill; the booking's due grows by its total.

    Request body:
        {"booking_id": int, "items": [{"item_id"|"name", "quantity", ...}], "total_amount"?: float,
         "bill_date"?: "YYYY-MM-DD", "sl_no"?: str, "remarks"?: str}
    """
    bill = electric_service.create_bill(
        request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"bill": bill.to_dict()}), 201


@electric_bp.put("/bills/<int:bill_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def edit_bill_route(bill_id: int):
    """Admins edit directly (200); other roles get a pending edit request (202)."""
    applied, obj = edit_request_service.edit_or_request(
        "electric_bill",
        bill_id,
        request.get_json(silent=True) or {},
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    if applied:
        return jsonify({"applied": True, "bill": obj.to_dict()}), 200
    return jsonify({
        "applied": False,
        "edit_request": obj.to_dict(),
        "message": "Edit request submitted for approval.",
    }), 202


@electric_bp.delete("/bills/<int:bill_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def delete_bill_route(bill_id: int):
    booking_id = electric_service.delete_bill(bill_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Electric bill deleted", "booking_id": booking_id}), 200
