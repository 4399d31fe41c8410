# Overview: Flask API routes for read-only reports over the viewed session, with CSV variants.

# backend/fairdesk/routes/reports.py
"""
Report API routes (admin only).

Every report reads the viewed session (view_session_id, default active). The
/csv variants download the same rows as text/csv attachments.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..csv_export import csv_response
from ..decorators import require_admin, require_login, require_scope
from ..services import audit_service, electric_service, reporting_service, shed_service, staff_service
from ..services.query_helpers import ListFilters


reports_bp = Blueprint("reports", __name__, url_prefix="/report")


def _q() -> str | None:
    return (request.args.get("q") or "").strip() or None


@reports_bp.get("/payments")
@require_login
@require_admin
@require_scope
def payments_received_route():
    """
    Payments received.

    Query params:
        start_date, end_date, q, category (rent|electric|material|shed), page
    """
    filters = ListFilters.from_args(request.args)
    result = reporting_service.payments_received(
        g.scope.viewing_id, filters, per_page=current_app.config["PAYMENT_REPORT_PAGE_SIZE"]
    )
    return jsonify(result), 200


@reports_bp.get("/payments/csv")
@require_login
@require_admin
@require_scope
def payments_received_csv_route():
    headers, rows = reporting_service.payments_received_csv(g.scope.viewing_id, ListFilters.from_args(request.args))
    return csv_response("payment_received_report.csv", headers, rows)


@reports_bp.get("/exhibitors")
@require_login
@require_admin
@require_scope
def exhibitors_route():
    return jsonify({"exhibitors": reporting_service.exhibitors(g.scope.viewing_id, _q())}), 200


@reports_bp.get("/exhibitors/csv")
@require_login
@require_admin
@require_scope
def exhibitors_csv_route():
    headers, rows = reporting_service.exhibitors_csv(g.scope.viewing_id, _q())
    return csv_response("exhibitors.csv", headers, rows)


@reports_bp.get("/dues")
@require_login
@require_admin
@require_scope
def due_list_route():
    """Active bookings with an outstanding balance, bucketed all/rent/electric/material/shed."""
    return jsonify({"dues": reporting_service.due_list(g.scope.viewing_id, _q())}), 200


@reports_bp.get("/dues/csv")
@require_login
@require_admin
@require_scope
def due_list_csv_route():
    category = request.args.get("category") or "all"
    headers, rows = reporting_service.due_list_csv(g.scope.viewing_id, _q(), category)
    return csv_response(f"due_list_{category}.csv", headers, rows)


@reports_bp.get("/bookings")
@require_login
@require_admin
@require_scope
def booking_summary_route():
    return jsonify({"bookings": reporting_service.booking_summary(g.scope.viewing_id, _q())}), 200


@reports_bp.get("/bookings/csv")
@require_login
@require_admin
@require_scope
def booking_summary_csv_route():
    headers, rows = reporting_service.booking_summary_csv(g.scope.viewing_id, _q())
    return csv_response("booking_summary.csv", headers, rows)


@reports_bp.get("/logs")
@require_login
@require_admin
def audit_log_route():
    """Audit trail across all sessions, newest first."""
    logs, pagination = audit_service.list_logs(
        q=_q(),
        page=request.args.get("page", 1, type=int),
        per_page=current_app.config["AUDIT_LOG_PAGE_SIZE"],
    )
    return jsonify({"logs": [entry.to_dict() for entry in logs], "pagination": pagination}), 200


@reports_bp.get("/electric")
@require_login
@require_admin
@require_scope
def electric_report_route():
    return jsonify({"bills": electric_service.list_bills(g.scope.viewing_id)}), 200


@reports_bp.get("/sheds")
@require_login
@require_admin
@require_scope
def shed_report_route():
    return jsonify({
        "allocations": shed_service.list_allocations(g.scope.viewing_id),
        "bills": shed_service.list_bills(g.scope.viewing_id),
    }), 200


@reports_bp.get("/sales-by-staff")
@require_login
@require_admin
@require_scope
def sales_by_staff_route():
    filters = ListFilters.from_args(request.args)
    return jsonify({
        "sales": reporting_service.sales_by_staff(g.scope.viewing_id, filters),
        "filters": filters.as_dict(),
    }), 200


@reports_bp.get("/sales-by-staff/<int:staff_id>")
@require_login
@require_admin
@require_scope
def staff_ride_breakdown_route(staff_id: int):
    staff = staff_service.get_staff(staff_id)
    filters = ListFilters.from_args(request.args)
    return jsonify({
        "staff": staff.to_dict(),
        "rides": reporting_service.staff_ride_breakdown(staff_id, g.scope.viewing_id, filters),
        "filters": filters.as_dict(),
    }), 200
