# Overview: Service-layer operations for the edit-approval workflow.

"""
Edit Approval Service

WHY: Only admins change money-bearing rows directly. Everyone else proposes a
patch that an admin approves (applied with the same code path as a direct admin
edit, in one transaction) or rejects with a reason.

Supported entity types: booking, payment, electric_bill, material_issue.
"""

from __future__ import annotations

import json

from ..extensions import db
from ..models import Booking, Client, EditRequest, ElectricBill, MaterialIssueRecord, Payment
from ..models.edits import EDIT_APPROVED, EDIT_ENTITY_TYPES, EDIT_PENDING, EDIT_REJECTED
from fairdesk.time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .audit_service import log_action
from .concurrency import run_atomic


def _handlers(entity_type: str):
    """(validate, apply) pair for an entity type; imported lazily to avoid cycles."""
    if entity_type == "booking":
        from .booking_service import apply_booking_edit, validate_booking_edit
        return validate_booking_edit, apply_booking_edit
    if entity_type == "payment":
        from .payment_service import apply_payment_edit, validate_payment_edit
        return validate_payment_edit, apply_payment_edit
    if entity_type == "electric_bill":
        from .electric_service import apply_bill_edit, validate_bill_edit
        return validate_bill_edit, apply_bill_edit
    if entity_type == "material_issue":
        from .material_service import apply_issue_record_edit, validate_issue_record_edit
        return validate_issue_record_edit, apply_issue_record_edit
    raise ValidationError(f"Unknown edit type: {entity_type}")


def _entity_exists(entity_type: str, entity_id: int) -> bool:
    model = {
        "booking": Booking,
        "payment": Payment,
        "electric_bill": ElectricBill,
        "material_issue": MaterialIssueRecord,
    }[entity_type]
    return db.session.get(model, entity_id) is not None


def edit_or_request(entity_type: str, entity_id: int, payload: dict, *, user, event_session_id: int | None):
    """
    Admins apply the edit now; other users queue an EditRequest.

    Returns (applied, obj): obj is the updated entity when applied, else the
    pending EditRequest. The payload is validated either way.
    """
    validate, apply = _handlers(entity_type)
    patch = validate(payload or {})

    if user is not None and user.is_admin:
        def _apply():
            return apply(entity_id, patch, user=user, event_session_id=event_session_id)

        return True, run_atomic(_apply)

    return False, submit_edit(entity_type, entity_id, payload, user=user, event_session_id=event_session_id)


def submit_edit(entity_type: str, entity_id: int, payload: dict, *, user, event_session_id: int | None = None) -> EditRequest:
    if entity_type not in EDIT_ENTITY_TYPES:
        raise ValidationError(f"Unknown edit type: {entity_type}")
    if user is None:
        raise ValidationError("A user is required to submit an edit")
    if not _entity_exists(entity_type, entity_id):
        raise NotFoundError(f"{entity_type.replace('_', ' ').capitalize()} not found")

    def _op():
        request_row = EditRequest(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user.id,
            username=user.username,
            proposed_data=json.dumps(payload or {}, default=str),
            status=EDIT_PENDING,
        )
        db.session.add(request_row)
        db.session.flush()
        log_action(user, "edit_submitted", f"Submitted {entity_type} #{entity_id} edit for approval", event_session_id)
        return request_row

    return run_atomic(_op)


def get_edit_request(edit_id: int) -> EditRequest:
    row = db.session.get(EditRequest, edit_id)
    if row is None:
        raise NotFoundError("Edit request not found")
    return row


def approve_edit(edit_id: int, *, admin, event_session_id: int | None = None):
    """Apply the proposed patch and mark the request approved, atomically."""
    def _op():
        row = get_edit_request(edit_id)
        if row.status != EDIT_PENDING:
            raise ConflictError("Edit request not found or already processed.")
        validate, apply = _handlers(row.entity_type)
        patch = validate(row.proposed)
        entity = apply(row.entity_id, patch, user=admin, event_session_id=event_session_id)
        row.status = EDIT_APPROVED
        row.reviewed_by_user_id = getattr(admin, "id", None)
        row.reviewed_at = utcnow()
        log_action(admin, "edit_approved", f"Approved {row.entity_type} #{row.entity_id} edit from '{row.username}'", event_session_id)
        return entity

    return run_atomic(_op)


def reject_edit(edit_id: int, reason: str | None, *, admin, event_session_id: int | None = None) -> EditRequest:
    def _op():
        row = get_edit_request(edit_id)
        if row.status != EDIT_PENDING:
            raise ConflictError("Edit request not found or already processed.")
        row.status = EDIT_REJECTED
        row.rejection_reason = (reason or "").strip() or None
        row.reviewed_by_user_id = getattr(admin, "id", None)
        row.reviewed_at = utcnow()
        log_action(admin, "edit_rejected", f"Rejected {row.entity_type} #{row.entity_id} edit from '{row.username}'", event_session_id)
        return row

    return run_atomic(_op)


def dismiss_notification(edit_id: int, *, user) -> EditRequest:
    """Requester acknowledges an approved/rejected request."""
    def _op():
        row = get_edit_request(edit_id)
        if row.user_id != user.id:
            raise NotFoundError("Edit request not found")
        if row.status == EDIT_PENDING:
            raise ConflictError("Pending requests cannot be dismissed")
        row.user_notified = True
        return row

    return run_atomic(_op)


def _with_exhibitor(rows: list[EditRequest]) -> list[dict]:
    result = []
    for row in rows:
        data = row.to_dict()
        data["exhibitor_name"] = _exhibitor_for(row)
        result.append(data)
    return result


def _exhibitor_for(row: EditRequest) -> str | None:
    if row.entity_type == "booking":
        booking = db.session.get(Booking, row.entity_id)
    elif row.entity_type == "payment":
        payment = db.session.get(Payment, row.entity_id)
        booking = payment.booking if payment else None
    elif row.entity_type == "electric_bill":
        bill = db.session.get(ElectricBill, row.entity_id)
        booking = bill.booking if bill else None
    else:
        record = db.session.get(MaterialIssueRecord, row.entity_id)
        client = db.session.get(Client, record.client_id) if record else None
        return client.name if client else None
    return booking.exhibitor_name if booking else None


def pending_approvals() -> list[dict]:
    rows = (
        db.session.query(EditRequest)
        .filter(EditRequest.status == EDIT_PENDING)
        .order_by(EditRequest.request_date.desc(), EditRequest.id.desc())
        .all()
    )
    return _with_exhibitor(rows)


def notifications_for(user) -> list[dict]:
    """The user's pending requests plus decided ones not yet dismissed."""
    rows = (
        db.session.query(EditRequest)
        .filter(
            EditRequest.user_id == user.id,
            db.or_(
                EditRequest.status == EDIT_PENDING,
                db.and_(
                    EditRequest.status.in_([EDIT_APPROVED, EDIT_REJECTED]),
                    EditRequest.user_notified.is_(False),
                ),
            ),
        )
        .order_by(EditRequest.request_date.desc(), EditRequest.id.desc())
        .all()
    )
    return _with_exhibitor(rows)
