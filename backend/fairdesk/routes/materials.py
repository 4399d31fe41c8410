# Overview: Flask API routes for QR-tagged material stock, scan issue/return and issue records.

# backend/fairdesk/routes/materials.py
"""
Material API routes.

The scan endpoints (/issue, /return) answer {"success": bool, "message": str},
the contract the scanner page expects; everything else uses {"error": ...}.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..csv_export import uploaded_csv_text
from ..decorators import require_admin, require_login, require_role, require_scope, require_writable_session
from ..models.auth import ROLE_MATERIAL_HANDLER
from ..services import edit_request_service, material_service
from ..validation import ConflictError, NotFoundError, ValidationError


materials_bp = Blueprint("materials", __name__, url_prefix="/materials")


def _scan_error(exc: Exception):
    status = 404 if isinstance(exc, NotFoundError) else 409 if isinstance(exc, ConflictError) else 400
    return jsonify({"success": False, "message": str(exc)}), status


# =============================================================================
# STOCK
# =============================================================================

@materials_bp.get("/stock")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_scope
def list_stock_route():
    """
    Stock items of the viewed session.

    Query params:
        status: Available | Issued | Damaged
        name: exact item name (case-insensitive)
        q: matches name, unique id or location
    """
    items = material_service.list_stock(
        g.scope.viewing_id,
        status=request.args.get("status") or None,
        name=request.args.get("name") or None,
        q=request.args.get("q") or None,
    )
    return jsonify({
        "items": [item.to_dict() for item in items],
        "summary": material_service.stock_summary(g.scope.viewing_id),
    }), 200


@materials_bp.get("/stock/<unique_id>")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
def get_stock_item_route(unique_id: str):
    item = material_service.get_item_by_unique_id(unique_id)
    return jsonify({"item": item.to_dict(), "history": [h.to_dict() for h in item.history]}), 200


@materials_bp.post("/stock")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_writable_session
def create_stock_route():
    """
    Add quantity items, each with a generated unique id and QR image.

    Request body:
        {"name": str, "quantity": int, "description": str?, "location": str?}
    """
    data = request.get_json(silent=True) or request.form.to_dict()
    items = material_service.create_stock(
        data.get("name"),
        quantity=data.get("quantity"),
        description=data.get("description"),
        location=data.get("location"),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"items": [item.to_dict() for item in items]}), 201


@materials_bp.post("/stock/import")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_writable_session
def import_stock_route():
    """CSV with columns name, description, quantity, location."""
    added = material_service.import_stock_csv(
        uploaded_csv_text(), user=g.current_user, event_session_id=g.write_session_id
    )
    return jsonify({"added": added, "message": f"Successfully added {added} items from CSV."}), 201


@materials_bp.delete("/stock/<int:item_id>")
@require_login
@require_admin
@require_writable_session
def delete_stock_route(item_id: int):
    material_service.delete_stock(item_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Material item deleted"}), 200


@materials_bp.post("/stock/<int:item_id>/write-off")
@require_login
@require_admin
@require_writable_session
def write_off_stock_route(item_id: int):
    material_service.delete_stock(
        item_id, user=g.current_user, event_session_id=g.write_session_id, write_off=True
    )
    return jsonify({"message": "Material item written off"}), 200


# =============================================================================
# SCAN ISSUE / RETURN
# =============================================================================

@materials_bp.get("/clients")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_scope
def issue_clients_route():
    return jsonify({"clients": material_service.issue_clients(g.scope.viewing_id)}), 200


@materials_bp.get("/clients/<int:client_id>/items")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
def client_items_route(client_id: int):
    client, items = material_service.items_issued_to(client_id)
    return jsonify({"client": client.to_dict(), "items": [item.to_dict() for item in items]}), 200


@materials_bp.post("/issue")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_writable_session
def issue_item_route():
    """
    Scan-driven issue.

    Request body:
        {"unique_id": str, "client_id": int}

    Returns:
        200: {"success": true, "message": "..."}
        400/404/409: {"success": false, "message": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        _item, message = material_service.issue_item(
            data.get("unique_id"),
            data.get("client_id"),
            user=g.current_user,
            event_session_id=g.write_session_id,
        )
    except (ValidationError, NotFoundError, ConflictError) as exc:
        current_app.logger.info("Issue refused for %s: %s", data.get("unique_id"), exc)
        return _scan_error(exc)
    return jsonify({"success": True, "message": message}), 200


@materials_bp.post("/return")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_writable_session
def return_item_route():
    """
    Scan-driven return.

    Request body:
        {"unique_id": str, "status": "Available" | "Damaged"}
    """
    data = request.get_json(silent=True) or {}
    try:
        _item, message = material_service.return_item(
            data.get("unique_id"),
            data.get("status"),
            user=g.current_user,
            event_session_id=g.write_session_id,
        )
    except (ValidationError, NotFoundError, ConflictError) as exc:
        current_app.logger.info("Return refused for %s: %s", data.get("unique_id"), exc)
        return _scan_error(exc)
    return jsonify({"success": True, "message": message}), 200


# =============================================================================
# ISSUE RECORDS
# =============================================================================

@materials_bp.get("/issues")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_scope
def list_issue_records_route():
    client_id = request.args.get("client_id", type=int)
    records = material_service.list_issue_records(g.scope.viewing_id, client_id=client_id)
    return jsonify({
        "records": [r.to_dict() for r in records],
        "camps": material_service.camp_suggestions(),
    }), 200


@materials_bp.get("/issues/<int:record_id>")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
def get_issue_record_route(record_id: int):
    return jsonify({"record": material_service.get_issue_record(record_id).to_dict()}), 200


@materials_bp.post("/issues")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_writable_session
def create_issue_record_route():
    record = material_service.create_issue_record(
        request.get_json(silent=True) or request.form.to_dict(),
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    return jsonify({"record": record.to_dict()}), 201


@materials_bp.put("/issues/<int:record_id>")
@require_login
@require_role(ROLE_MATERIAL_HANDLER)
@require_writable_session
def edit_issue_record_route(record_id: int):
    """Admins edit directly (200); other roles get a pending edit request (202)."""
    applied, obj = edit_request_service.edit_or_request(
        "material_issue",
        record_id,
        request.get_json(silent=True) or {},
        user=g.current_user,
        event_session_id=g.write_session_id,
    )
    if applied:
        return jsonify({"applied": True, "record": obj.to_dict()}), 200
    return jsonify({
        "applied": False,
        "edit_request": obj.to_dict(),
        "message": "Edit request submitted for approval.",
    }), 202


@materials_bp.delete("/issues/<int:record_id>")
@require_login
@require_admin
@require_writable_session
def delete_issue_record_route(record_id: int):
    material_service.delete_issue_record(record_id, user=g.current_user, event_session_id=g.write_session_id)
    return jsonify({"message": "Material issue record deleted"}), 200
