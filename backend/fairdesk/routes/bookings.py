# Overview: Flask API routes for bookings; parses input and returns JSON responses.

# backend/fairdesk/routes/bookings.py
"""
Booking API routes.

Reads use the viewed session (g.scope.viewing_id); writes need the viewed
session to be the active one.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_BOOKING_MANAGER
from ..services import booking_service, edit_request_service


bookings_bp = Blueprint("bookings", __name__, url_prefix="/booking")


@bookings_bp.get("")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_scope
def list_bookings_route():
    """
    List bookings of the viewed session.

    Query params:
        form_status: all | submitted | not_submitted (default all)
    """
    form_status = request.args.get("form_status") or "all"
    bookings = booking_service.list_bookings(g.scope.viewing_id, form_status)
    return jsonify({
        "bookings": [b.to_dict() for b in bookings],
        "form_status": form_status,
        "scope": g.scope.to_dict(),
    }), 200


@bookings_bp.get("/search")
@require_login
@require_scope
def search_bookings_route():
    """Dashboard search by exhibitor, facia or space name."""
    results = booking_service.search_bookings(g.scope.viewing_id, request.args.get("q") or "")
    return jsonify({"bookings": [b.to_dict() for b in results]}), 200


@bookings_bp.get("/<int:booking_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
def booking_details_route(booking_id: int):
    return jsonify(booking_service.get_booking_details(booking_id)), 200


@bookings_bp.post("")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def create_booking_route():
    """
    Create client + booking; the space becomes Booked.

    Returns:
        201: {"booking": {...}}
        400: missing space, exhibitor name, contact person or contact number
        409: space already booked in this session
    """
    data = request.get_json(silent=True) or request.form.to_dict()
    booking = booking_service.create_booking(data, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"booking": booking.to_dict()}), 201


@bookings_bp.put("/<int:booking_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def edit_booking_route(booking_id: int):
    """Admins edit directly (200); other roles get a pending edit request (202)."""
    applied, obj = edit_request_service.edit_or_request(
        "booking",
        booking_id,
        request.get_json(silent=True) or {},
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    if applied:
        return jsonify({"applied": True, "booking": obj.to_dict()}), 200
    return jsonify({
        "applied": False,
        "edit_request": obj.to_dict(),
        "message": "Edit request submitted for approval.",
    }), 202


@bookings_bp.delete("/<int:booking_id>")
@require_login
@require_role(ROLE_BOOKING_MANAGER)
@require_writable_session
def delete_booking_route(booking_id: int):
    booking_service.delete_booking(booking_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Booking deleted"}), 200
