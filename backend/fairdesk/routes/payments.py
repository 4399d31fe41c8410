# Overview: Flask API routes for booking charges and payments; parses input and returns JSON responses.

# backend/fairdesk/routes/payments.py
"""
Payment ("charges") API routes.

Each payment lands in one bucket (rent, electric, material, shed), reduces the
booking's due_amount and is mirrored as an accounting income row.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_admin, require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_ACCOUNTANT
from ..services import booking_service, edit_request_service, payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/charges")


@payments_bp.get("/booking/<int:booking_id>")
@require_login
@require_role(ROLE_ACCOUNTANT)
def booking_charges_route(booking_id: int):
    """Per-category dues and payment history for the payment form."""
    booking = booking_service.get_booking(booking_id)
    return jsonify({
        "booking": booking.to_dict(),
        "charges": payment_service.charge_details(booking_id),
        "payments": [p.to_dict() for p in payment_service.payments_for_booking(booking_id)],
    }), 200


@payments_bp.get("/next-receipt")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_scope
def next_receipt_route():
    return jsonify({"receipt_number": payment_service.next_receipt_number(g.scope.active_id)}), 200


@payments_bp.post("")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_writable_session
def record_payment_route():
    """
    Record a payment.

    Request body:
        {"booking_id": int, "payment_type": "rent"|"electric"|"material"|"shed",
         "cash_paid": float, "upi_paid": float, "receipt_number"?: str,
         "payment_date"?: "YYYY-MM-DD", "remarks"?: str}

    Returns:
        201: {"payment": {...}}
        400: missing booking, bad type or non-positive total
    """
    payment = payment_service.record_payment(
        request.get_json(silent=True) or request.form.to_dict(),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"payment": payment.to_dict()}), 201


@payments_bp.get("/receipt/<int:payment_id>")
@require_login
@require_role(ROLE_ACCOUNTANT)
def receipt_route(payment_id: int):
    return jsonify(payment_service.get_receipt(payment_id)), 200


@payments_bp.put("/<int:payment_id>")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_writable_session
def edit_payment_route(payment_id: int):
    """Admins edit directly (200); other roles get a pending edit request (202)."""
    applied, obj = edit_request_service.edit_or_request(
        "payment",
        payment_id,
        request.get_json(silent=True) or {},
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    if applied:
        return jsonify({"applied": True, "payment": obj.to_dict()}), 200
    return jsonify({
        "applied": False,
        "edit_request": obj.to_dict(),
        "message": "Edit request submitted for approval.",
    }), 202


@payments_bp.delete("/<int:payment_id>")
@require_login
@require_admin
@require_writable_session
def delete_payment_route(payment_id: int):
    booking_id = payment_service.delete_payment(payment_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Payment deleted", "booking_id": booking_id}), 200
