# Overview: Flask API routes for rides, ticket stock, distribution and settlement.

# backend/fairdesk/routes/ticketing.py
"""
Ticketing API routes (ticketing_manager).

Stock and distributions belong to the active session when written and are
listed for the viewed session.
"""

from flask import Blueprint, g, jsonify, request

from ..csv_export import uploaded_csv_text
from ..decorators import require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_TICKETING_MANAGER
from ..models.ticketing import TICKETS_AVAILABLE
from ..services import staff_service, ticketing_service
from ..services.query_helpers import ListFilters


ticketing_bp = Blueprint("ticketing", __name__, url_prefix="/ticketing")


# =============================================================================
# RIDES
# =============================================================================

@ticketing_bp.get("/rides")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
def list_rides_route():
    active_only = request.args.get("active") in ("1", "true")
    return jsonify({"rides": [r.to_dict() for r in ticketing_service.list_rides(active_only=active_only)]}), 200


@ticketing_bp.post("/rides")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
def add_ride_route():
    ride = ticketing_service.add_ride(request.get_json(silent=True) or request.form.to_dict(), user=g.current_user)
    return jsonify({"ride": ride.to_dict()}), 201


@ticketing_bp.delete("/rides/<int:ride_id>")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
def delete_ride_route(ride_id: int):
    ticketing_service.delete_ride(ride_id, user=g.current_user)
    return jsonify({"message": "Ride deleted"}), 200


@ticketing_bp.post("/rides/<int:ride_id>/toggle")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
def toggle_ride_route(ride_id: int):
    ride = ticketing_service.toggle_ride(ride_id, user=g.current_user)
    return jsonify({"ride": ride.to_dict()}), 200


# =============================================================================
# STOCK
# =============================================================================

@ticketing_bp.get("/stock")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_scope
def list_stock_route():
    stock = ticketing_service.list_stock(
        g.scope.viewing_id,
        q=request.args.get("q") or None,
        status=request.args.get("status") or None,
    )
    return jsonify({"stock": [s.to_dict() for s in stock]}), 200


@ticketing_bp.post("/stock")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def add_stock_route():
    """
    Request body:
        {"rate": float, "color": str, "start_number": int, "end_number": int}
    """
    stock = ticketing_service.add_stock(
        request.get_json(silent=True) or request.form.to_dict(),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"stock": stock.to_dict()}), 201


@ticketing_bp.post("/stock/import")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def import_stock_route():
    """Header-less CSV lines "rate,color,start_number,end_number"; one bad row rejects the file."""
    added = ticketing_service.import_stock_csv(
        uploaded_csv_text(), user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"added": added, "message": f"Successfully imported {added} stock entries."}), 201


@ticketing_bp.put("/stock/<int:stock_id>")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def update_stock_route(stock_id: int):
    stock = ticketing_service.update_stock(
        stock_id, request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"stock": stock.to_dict()}), 200


@ticketing_bp.delete("/stock/<int:stock_id>")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def delete_stock_route(stock_id: int):
    ticketing_service.delete_stock(stock_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Stock entry deleted"}), 200


# =============================================================================
# DISTRIBUTIONS
# =============================================================================

@ticketing_bp.get("/distributions")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_scope
def list_distributions_route():
    """Open distributions plus what the distribution form needs."""
    session_id = g.scope.viewing_id
    return jsonify({
        "distributions": [d.to_dict() for d in ticketing_service.list_distributions(session_id, q=request.args.get("q") or None)],
        "staff": [s.to_dict() for s in staff_service.list_staff()],
        "rides": [r.to_dict() for r in ticketing_service.list_rides(active_only=True)],
        "available_stock": [s.to_dict() for s in ticketing_service.list_stock(session_id, status=TICKETS_AVAILABLE)],
    }), 200


@ticketing_bp.post("/distributions")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def distribute_route():
    """
    Request body:
        {"staff_id": int, "ride_id": int, "stock_id": int, "distribution_date"?: "YYYY-MM-DD"}

    Returns:
        201: {"distribution": {...}}
        409: bundle not Available or ride inactive
    """
    row = ticketing_service.distribute(
        request.get_json(silent=True) or request.form.to_dict(),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"distribution": row.to_dict()}), 201


@ticketing_bp.put("/distributions/<int:distribution_id>")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def update_distribution_route(distribution_id: int):
    row = ticketing_service.update_distribution(
        distribution_id, request.get_json(silent=True) or {}, user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"distribution": row.to_dict()}), 200


@ticketing_bp.delete("/distributions/<int:distribution_id>")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def delete_distribution_route(distribution_id: int):
    """Recall an unsettled bundle."""
    ticketing_service.delete_distribution(distribution_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Distribution recalled"}), 200


@ticketing_bp.post("/distributions/<int:distribution_id>/cancel")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def cancel_distribution_route(distribution_id: int):
    row = ticketing_service.cancel_distribution(distribution_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"distribution": row.to_dict()}), 200


# =============================================================================
# SETTLEMENT
# =============================================================================

@ticketing_bp.get("/settlements")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_scope
def settlement_overview_route():
    return jsonify(ticketing_service.settlement_overview(g.scope.viewing_id, request.args.get("q") or None)), 200


@ticketing_bp.post("/distributions/<int:distribution_id>/settle/preview")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
def settlement_preview_route(distribution_id: int):
    data = request.get_json(silent=True) or {}
    return jsonify(ticketing_service.quote_settlement(distribution_id, data.get("returned_start_number"))), 200


@ticketing_bp.post("/distributions/<int:distribution_id>/settle")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def settle_route(distribution_id: int):
    """
    Request body:
        {"returned_start_number": int, "upi_amount": float}
    """
    row = ticketing_service.settle(
        distribution_id,
        request.get_json(silent=True) or request.form.to_dict(),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"distribution": row.to_dict()}), 200


@ticketing_bp.post("/distributions/<int:distribution_id>/unsettle")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_writable_session
def unsettle_route(distribution_id: int):
    row = ticketing_service.unsettle(distribution_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"distribution": row.to_dict()}), 200


@ticketing_bp.get("/reports/daily-sales")
@require_login
@require_role(ROLE_TICKETING_MANAGER)
@require_scope
def daily_sales_route():
    return jsonify(ticketing_service.daily_sales(g.scope.viewing_id, ListFilters.from_args(request.args))), 200
