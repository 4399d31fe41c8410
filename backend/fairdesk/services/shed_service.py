# Overview: Service-layer operations for sheds; catalogue, allocation to bookings and shed bills.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Booking, Shed, ShedAllocation, ShedBill, Space
from ..models.venue import SHED_ALLOCATED, SHED_AVAILABLE
from fairdesk.time_utils import parse_iso_date, today
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_amount,
    validate_payload,
)
from .audit_service import log_action
from .concurrency import lock_for_update, run_atomic


SHED_POLICY = ModelValidationPolicy(
    writable_fields={"name", "size", "rent"},
    required_on_create={"name", "rent"},
)

DEFAULT_SHEDS = [("Shed A-1", "10x10", 5000.0), ("Shed A-2", "10x10", 5000.0), ("Shed B-1", "15x10", 7500.0)]


def _locked_booking(booking_id) -> Booking:
    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        raise ValidationError("booking_id is required")
    booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


# =============================================================================
# SHEDS
# =============================================================================

def list_sheds() -> list[Shed]:
    return db.session.query(Shed).order_by(Shed.name).all()


def get_shed(shed_id: int) -> Shed:
    shed = db.session.get(Shed, shed_id)
    if shed is None:
        raise NotFoundError("Shed not found.")
    return shed


def create_shed(payload: dict, *, user=None) -> Shed:
    patch = validate_payload(model=Shed, payload=payload, policy=SHED_POLICY, partial=False)
    if patch["rent"] < 0:
        raise ValidationError("rent cannot be negative")

    def _op():
        shed = Shed(status=SHED_AVAILABLE, **patch)
        db.session.add(shed)
        db.session.flush()
        log_action(user, "shed_created", f"Added shed '{shed.name}'")
        return shed

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError(f"Shed '{patch['name']}' already exists.")


def update_shed(shed_id: int, payload: dict, *, user=None) -> Shed:
    """Rent changes apply to future allocations; existing allocations keep the rent they were charged."""
    patch = validate_payload(model=Shed, payload=payload, policy=SHED_POLICY, partial=True)
    if patch.get("rent") is not None and patch["rent"] < 0:
        raise ValidationError("rent cannot be negative")

    def _op():
        shed = get_shed(shed_id)
        for key, value in patch.items():
            setattr(shed, key, value)
        log_action(user, "shed_updated", f"Updated shed '{shed.name}'")
        return shed

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError("A shed with that name already exists.")


def delete_shed(shed_id: int, *, user=None) -> None:
    def _op():
        shed = get_shed(shed_id)
        if shed.status == SHED_ALLOCATED or db.session.query(ShedAllocation.id).filter_by(shed_id=shed_id).first():
            raise ConflictError("Cannot delete an allocated shed. Remove the allocation first.")
        log_action(user, "shed_deleted", f"Deleted shed '{shed.name}'")
        db.session.delete(shed)

    run_atomic(_op)


def seed_default_sheds() -> int:
    if db.session.query(Shed.id).first():
        return 0
    for name, size, rent in DEFAULT_SHEDS:
        db.session.add(Shed(name=name, size=size, rent=rent, status=SHED_AVAILABLE))
    db.session.commit()
    return len(DEFAULT_SHEDS)


# =============================================================================
# ALLOCATIONS
# =============================================================================

def allocate_shed(shed_id, booking_id, *, user=None, event_session_id: int | None = None) -> ShedAllocation:
    """
    Allocation row + shed Allocated + booking due += rent, in one transaction.

    Raises:
        NotFoundError: shed or booking missing
        ConflictError: shed already allocated
    """
    try:
        shed_id = int(shed_id)
    except (TypeError, ValueError):
        raise ValidationError("shed_id is required")

    def _op():
        shed = lock_for_update(db.session.query(Shed).filter_by(id=shed_id)).first()
        if shed is None:
            raise NotFoundError("Selected shed not found.")
        if shed.status == SHED_ALLOCATED:
            raise ConflictError(f"Shed '{shed.name}' is already allocated.")
        booking = _locked_booking(booking_id)

        allocation = ShedAllocation(
            booking_id=booking.id,
            shed_id=shed.id,
            event_session_id=event_session_id,
            allocation_date=today(),
            rent=shed.rent or 0.0,
        )
        db.session.add(allocation)
        shed.status = SHED_ALLOCATED
        booking.due_amount = (booking.due_amount or 0) + allocation.rent
        db.session.flush()
        log_action(user, "shed_allocated", f"Allocated shed '{shed.name}' to booking #{booking.id}", event_session_id)
        return allocation

    allocation = run_atomic(_op)
    current_app.logger.info("Shed #%s allocated to booking #%s", allocation.shed_id, allocation.booking_id)
    return allocation


def delete_allocation(allocation_id: int, *, user=None, event_session_id: int | None = None) -> None:
    """Reverse an allocation: due -= the rent it charged, shed Available, row removed."""
    def _op():
        allocation = db.session.get(ShedAllocation, allocation_id)
        if allocation is None:
            raise NotFoundError("Shed allocation not found.")
        shed = lock_for_update(db.session.query(Shed).filter_by(id=allocation.shed_id)).first()
        if shed is None:
            raise NotFoundError("Associated shed not found.")
        booking = _locked_booking(allocation.booking_id)
        booking.due_amount = (booking.due_amount or 0) - (allocation.rent or 0)
        shed.status = SHED_AVAILABLE
        log_action(user, "shed_allocation_deleted", f"Removed shed '{shed.name}' from booking #{booking.id}", event_session_id)
        db.session.delete(allocation)

    run_atomic(_op)


def list_allocations(event_session_id: int | None) -> list[dict]:
    rows = (
        db.session.query(ShedAllocation, Shed, Booking.exhibitor_name, Space.name)
        .join(Shed, ShedAllocation.shed_id == Shed.id)
        .join(Booking, ShedAllocation.booking_id == Booking.id)
        .join(Space, Booking.space_id == Space.id)
        .filter(Booking.event_session_id == event_session_id)
        .order_by(Shed.name)
        .all()
    )
    result = []
    for allocation, shed, exhibitor, space_name in rows:
        data = allocation.to_dict()
        data.update({"shed_size": shed.size, "exhibitor_name": exhibitor, "space_name": space_name})
        result.append(data)
    return result


# =============================================================================
# SHED BILLS
# =============================================================================

def _validate_bill(payload: dict, *, partial: bool) -> dict:
    payload = payload or {}
    patch: dict = {}
    if "booking_id" in payload or not partial:
        try:
            patch["booking_id"] = int(payload.get("booking_id"))
        except (TypeError, ValueError):
            raise ValidationError("Exhibitor, description and a positive amount are required.")
    if "description" in payload or not partial:
        description = (payload.get("description") or "").strip()
        if not description:
            raise ValidationError("Exhibitor, description and a positive amount are required.")
        patch["description"] = description
    if "amount" in payload or not partial:
        amount = parse_amount(payload.get("amount"))
        if amount <= 0:
            raise ValidationError("Exhibitor, description and a positive amount are required.")
        patch["amount"] = amount
    if payload.get("bill_date") not in (None, ""):
        try:
            patch["bill_date"] = parse_iso_date(payload["bill_date"])
        except ValueError:
            raise ValidationError("bill_date must be a YYYY-MM-DD date")
    return patch


def get_bill(bill_id: int) -> ShedBill:
    bill = db.session.get(ShedBill, bill_id)
    if bill is None:
        raise NotFoundError("Shed bill not found.")
    return bill


def create_bill(payload: dict, *, user=None, event_session_id: int | None = None) -> ShedBill:
    patch = _validate_bill(payload, partial=False)

    def _op():
        booking = _locked_booking(patch["booking_id"])
        bill = ShedBill(
            booking_id=booking.id,
            event_session_id=event_session_id,
            bill_date=patch.get("bill_date") or today(),
            description=patch["description"],
            amount=patch["amount"],
        )
        db.session.add(bill)
        booking.due_amount = (booking.due_amount or 0) + bill.amount
        db.session.flush()
        log_action(user, "shed_bill_created", f"Shed bill #{bill.id} of {bill.amount:.2f} for booking #{booking.id}", event_session_id)
        return bill

    return run_atomic(_op)


def update_bill(bill_id: int, payload: dict, *, user=None, event_session_id: int | None = None) -> ShedBill:
    """A booking change moves the charge; otherwise due moves by the difference."""
    patch = _validate_bill(payload, partial=True)

    def _op():
        bill = lock_for_update(db.session.query(ShedBill).filter_by(id=bill_id)).first()
        if bill is None:
            raise NotFoundError("Shed bill not found.")
        old_booking_id, old_amount = bill.booking_id, bill.amount or 0
        new_booking_id = patch.get("booking_id", old_booking_id)
        new_amount = patch.get("amount", old_amount)

        if new_booking_id != old_booking_id:
            old_booking = _locked_booking(old_booking_id)
            new_booking = _locked_booking(new_booking_id)
            old_booking.due_amount = (old_booking.due_amount or 0) - old_amount
            new_booking.due_amount = (new_booking.due_amount or 0) + new_amount
        elif new_amount != old_amount:
            booking = _locked_booking(old_booking_id)
            booking.due_amount = (booking.due_amount or 0) + (new_amount - old_amount)

        bill.booking_id = new_booking_id
        bill.amount = new_amount
        for key in ("description", "bill_date"):
            if key in patch:
                setattr(bill, key, patch[key])
        log_action(user, "shed_bill_updated", f"Updated shed bill #{bill.id}", event_session_id)
        return bill

    return run_atomic(_op)


def delete_bill(bill_id: int, *, user=None, event_session_id: int | None = None) -> None:
    def _op():
        bill = get_bill(bill_id)
        booking = _locked_booking(bill.booking_id)
        booking.due_amount = (booking.due_amount or 0) - (bill.amount or 0)
        log_action(user, "shed_bill_deleted", f"Deleted shed bill #{bill.id}", event_session_id)
        db.session.delete(bill)

    run_atomic(_op)


def list_bills(event_session_id: int | None) -> list[dict]:
    rows = (
        db.session.query(ShedBill, Booking.exhibitor_name)
        .join(Booking, ShedBill.booking_id == Booking.id)
        .filter(Booking.event_session_id == event_session_id)
        .order_by(ShedBill.bill_date.desc(), ShedBill.id.desc())
        .all()
    )
    result = []
    for bill, exhibitor in rows:
        data = bill.to_dict()
        data["exhibitor_name"] = exhibitor
        result.append(data)
    return result
