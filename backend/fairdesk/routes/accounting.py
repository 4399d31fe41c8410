# Overview: Flask API routes for the accounting ledger and its CSV exports.

from flask import Blueprint, current_app, g, jsonify, request

from ..csv_export import csv_response
from ..decorators import require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_ACCOUNTANT
from ..services import accounting_service
from ..services.query_helpers import ListFilters


accounting_bp = Blueprint("accounting", __name__, url_prefix="/accounting")


@accounting_bp.get("")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_scope
def list_transactions_route():
    """
    Ledger rows of the viewed session, newest first.

    Query params:
        start_date, end_date: YYYY-MM-DD
        type: all | income | expenditure
        q: matches category or description
        page: 1-based
    """
    filters = ListFilters.from_args(request.args)
    result = accounting_service.list_transactions(
        g.scope.viewing_id, filters, per_page=current_app.config["ACCOUNTING_PAGE_SIZE"]
    )
    return jsonify(result), 200


@accounting_bp.post("")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_writable_session
def add_transaction_route():
    row = accounting_service.add_transaction(
        request.get_json(silent=True) or request.form.to_dict(),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"transaction": row.to_dict()}), 201


@accounting_bp.put("/<int:transaction_id>")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_writable_session
def update_transaction_route(transaction_id: int):
    """409 for automated payment rows."""
    row = accounting_service.update_transaction(
        transaction_id,
        request.get_json(silent=True) or {},
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"transaction": row.to_dict()}), 200


@accounting_bp.delete("/<int:transaction_id>")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_writable_session
def delete_transaction_route(transaction_id: int):
    accounting_service.delete_transaction(transaction_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Transaction deleted"}), 200


@accounting_bp.get("/report")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_scope
def category_report_route():
    filters = ListFilters.from_args(request.args)
    rows = accounting_service.category_report(g.scope.viewing_id, filters)
    return jsonify({"report": rows, "filters": filters.as_dict()}), 200


@accounting_bp.get("/report/csv")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_scope
def category_report_csv_route():
    headers, rows = accounting_service.category_report_csv(g.scope.viewing_id, ListFilters.from_args(request.args))
    return csv_response("category_report.csv", headers, rows)


@accounting_bp.get("/csv")
@require_login
@require_role(ROLE_ACCOUNTANT)
@require_scope
def transactions_csv_route():
    headers, rows = accounting_service.transactions_csv(g.scope.viewing_id, ListFilters.from_args(request.args))
    return csv_response("transactions.csv", headers, rows)
