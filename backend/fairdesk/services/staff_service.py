# Overview: Service-layer operations for fair-ground staff (ticket distribution recipients).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BookingStaff
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, validate_payload
from .audit_service import log_action
from .concurrency import run_atomic


STAFF_POLICY = ModelValidationPolicy(
    writable_fields={"name", "dob", "address", "phone", "secondary_phone", "aadhaar", "role"},
    required_on_create={"name", "phone", "role"},
)


def list_staff() -> list[BookingStaff]:
    return db.session.query(BookingStaff).order_by(BookingStaff.name).all()


def get_staff(staff_id: int) -> BookingStaff:
    staff = db.session.get(BookingStaff, staff_id)
    if staff is None:
        raise NotFoundError("Staff member not found.")
    return staff


def create_staff(payload: dict, *, user=None) -> BookingStaff:
    """Blank aadhaar is stored as NULL so several staff may omit it."""
    patch = validate_payload(model=BookingStaff, payload=payload, policy=STAFF_POLICY, partial=False)
    if not (patch.get("aadhaar") or "").strip():
        patch["aadhaar"] = None

    def _op():
        if patch["aadhaar"] and db.session.query(BookingStaff.id).filter_by(aadhaar=patch["aadhaar"]).first():
            raise ConflictError("A staff member with this Aadhaar number already exists.")
        staff = BookingStaff(**patch)
        db.session.add(staff)
        db.session.flush()
        log_action(user, "staff_created", f"Added staff member '{staff.name}'")
        return staff

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError("A staff member with this Aadhaar number already exists.")
