# Overview: Service-layer operations for electric billing (item catalogue and per-booking bills).

from __future__ import annotations

import json

from flask import current_app

from ..extensions import db
from ..models import Booking, ElectricBill, ElectricItem
from ..models.billing import decode_items
from fairdesk.time_utils import parse_iso_date, today
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_amount,
    validate_payload,
)
from .audit_service import log_action
from .concurrency import lock_for_update, run_atomic


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "service_charge", "fitting_charge"},
    required_on_create={"name"},
)

# Seeded by `flask system init`: (name, service_charge, fitting_charge)
DEFAULT_ELECTRIC_ITEMS = [
    ("LED / CFL-Minimum (up to 40 Watts)", 800, 0),
    ("LED / CFL-40 -100 watts", 1300, 0),
    ("Tube 40 watts", 750, 250),
    ("Tube 40 watts full night period", 2200, 0),
    ("Bulbs 25-100 watts", 1050, 250),
    ("Bulbs 200 watts", 2100, 300),
    ("Flood Light 500 watts", 4300, 0),
    ("5 AMP Plug Point", 3000, 0),
    ("Motor 1 HP", 6000, 0),
    ("Fan (Connection Only)", 2300, 0),
    ("Series 1 (24-60)", 4200, 0),
    ("Series 2 (60-100)", 5500, 0),
    ("Mercury 200 watts", 2300, 0),
]


# =============================================================================
# ITEM CATALOGUE
# =============================================================================

def list_items() -> list[ElectricItem]:
    return db.session.query(ElectricItem).order_by(ElectricItem.name).all()


def get_item(item_id: int) -> ElectricItem:
    item = db.session.get(ElectricItem, item_id)
    if item is None:
        raise NotFoundError("Electric item not found")
    return item


def _check_charges(patch: dict) -> None:
    for key in ("service_charge", "fitting_charge"):
        if key in patch:
            if patch[key] is None:
                patch[key] = 0.0
            if patch[key] < 0:
                raise ValidationError(f"{key} cannot be negative")


def create_item(payload: dict, *, user=None) -> ElectricItem:
    patch = validate_payload(model=ElectricItem, payload=payload, policy=ITEM_POLICY, partial=False)
    _check_charges(patch)

    def _op():
        item = ElectricItem(service_charge=0.0, fitting_charge=0.0)
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.add(item)
        db.session.flush()
        log_action(user, "electric_item_created", f"Added electric item '{item.name}'")
        return item

    return run_atomic(_op)


def update_item(item_id: int, payload: dict, *, user=None) -> ElectricItem:
    patch = validate_payload(model=ElectricItem, payload=payload, policy=ITEM_POLICY, partial=True)
    _check_charges(patch)

    def _op():
        item = get_item(item_id)
        for key, value in patch.items():
            setattr(item, key, value)
        log_action(user, "electric_item_updated", f"Updated electric item '{item.name}'")
        return item

    return run_atomic(_op)


def delete_item(item_id: int, *, user=None) -> None:
    def _op():
        item = get_item(item_id)
        log_action(user, "electric_item_deleted", f"Deleted electric item '{item.name}'")
        db.session.delete(item)

    run_atomic(_op)


def seed_default_items() -> int:
    """Insert the default catalogue when it is empty; returns rows added."""
    if db.session.query(ElectricItem.id).first():
        return 0
    for name, service, fitting in DEFAULT_ELECTRIC_ITEMS:
        db.session.add(ElectricItem(name=name, service_charge=float(service), fitting_charge=float(fitting)))
    db.session.commit()
    return len(DEFAULT_ELECTRIC_ITEMS)


# =============================================================================
# BILLS
# =============================================================================

def parse_items(raw) -> list:
    """Bill lines from a list or a (possibly double-encoded) JSON string."""
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        return decode_items(raw)
    return []


def _line_total(line: dict) -> float:
    """quantity * (service_charge + fitting_charge); charges default to the catalogue."""
    if not isinstance(line, dict):
        raise ValidationError("Each bill item must be an object")
    quantity = parse_amount(line.get("quantity", 1), field="quantity")
    service = line.get("service_charge")
    fitting = line.get("fitting_charge")
    if (service is None or fitting is None) and line.get("item_id"):
        try:
            catalogue = get_item(int(line["item_id"]))
        except (TypeError, ValueError):
            raise ValidationError("item_id must be an integer")
        service = catalogue.service_charge if service is None else service
        fitting = catalogue.fitting_charge if fitting is None else fitting
    return quantity * (parse_amount(service, field="service_charge") + parse_amount(fitting, field="fitting_charge"))


def compute_total(items: list) -> float:
    return sum(_line_total(line) for line in items)


def validate_bill(payload: dict, *, partial: bool) -> dict:
    """
    Normalise a bill payload to {sl_no, booking_id, items, total_amount, remarks, bill_date}.

    total_amount is taken as given, else computed from the items.
    """
    payload = payload or {}
    patch: dict = {}

    if "booking_id" in payload or not partial:
        try:
            patch["booking_id"] = int(payload.get("booking_id"))
        except (TypeError, ValueError):
            raise ValidationError("Missing required fields: Exhibitor, Items, and Total are required.")

    if "items" in payload or not partial:
        items = parse_items(payload.get("items"))
        if not items and not partial:
            raise ValidationError("Missing required fields: Exhibitor, Items, and Total are required.")
        patch["items"] = items

    total = payload.get("total_amount")
    if total not in (None, ""):
        patch["total_amount"] = parse_amount(total, field="total_amount")
    elif "items" in patch:
        patch["total_amount"] = compute_total(patch["items"])
    if patch.get("total_amount") is not None and patch["total_amount"] < 0:
        raise ValidationError("total_amount cannot be negative")

    for key in ("sl_no", "remarks"):
        if key in payload:
            value = payload.get(key)
            patch[key] = str(value).strip() if value not in (None, "") else None

    if payload.get("bill_date") not in (None, ""):
        try:
            patch["bill_date"] = parse_iso_date(payload["bill_date"])
        except ValueError:
            raise ValidationError("bill_date must be a YYYY-MM-DD date")
    return patch


def validate_bill_edit(payload: dict) -> dict:
    return validate_bill(payload, partial=True)


def get_bill(bill_id: int) -> ElectricBill:
    bill = db.session.get(ElectricBill, bill_id)
    if bill is None:
        raise NotFoundError("Electric bill not found.")
    return bill


def _locked_booking(booking_id: int) -> Booking:
    booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def bills_for_booking(booking_id: int) -> list[ElectricBill]:
    return (
        db.session.query(ElectricBill)
        .filter_by(booking_id=booking_id)
        .order_by(ElectricBill.bill_date.desc(), ElectricBill.id.desc())
        .all()
    )


def create_bill(payload: dict, *, user=None, event_session_id: int | None = None) -> ElectricBill:
    """Insert the bill and add its total to the booking's due, atomically."""
    patch = validate_bill(payload, partial=False)

    def _op():
        booking = _locked_booking(patch["booking_id"])
        bill = ElectricBill(
            sl_no=patch.get("sl_no"),
            booking_id=booking.id,
            event_session_id=event_session_id,
            bill_date=patch.get("bill_date") or today(),
            items_json=json.dumps(patch["items"]),
            total_amount=patch["total_amount"],
            remarks=patch.get("remarks"),
        )
        db.session.add(bill)
        booking.due_amount = (booking.due_amount or 0) + bill.total_amount
        db.session.flush()
        log_action(user, "electric_bill_created", f"Electric bill #{bill.id} of {bill.total_amount:.2f} for booking #{booking.id}", event_session_id)
        return bill

    bill = run_atomic(_op)
    current_app.logger.info("Electric bill #%s saved for booking #%s", bill.id, bill.booking_id)
    return bill


def apply_bill_edit(bill_id: int, patch: dict, *, user=None, event_session_id: int | None = None) -> ElectricBill:
    """
    Apply a validated bill patch inside the caller's unit of work.

    A booking change moves the whole charge; otherwise the due moves by the
    difference.
    """
    bill = lock_for_update(db.session.query(ElectricBill).filter_by(id=bill_id)).first()
    if bill is None:
        raise NotFoundError("Electric bill not found.")

    old_booking_id = bill.booking_id
    old_total = bill.total_amount or 0
    new_booking_id = patch.get("booking_id", old_booking_id)
    new_total = patch.get("total_amount", old_total)

    if new_booking_id != old_booking_id:
        old_booking = _locked_booking(old_booking_id)
        new_booking = _locked_booking(new_booking_id)
        old_booking.due_amount = (old_booking.due_amount or 0) - old_total
        new_booking.due_amount = (new_booking.due_amount or 0) + new_total
    elif new_total != old_total:
        booking = _locked_booking(old_booking_id)
        booking.due_amount = (booking.due_amount or 0) + (new_total - old_total)

    bill.booking_id = new_booking_id
    bill.total_amount = new_total
    if "items" in patch:
        bill.items_json = json.dumps(patch["items"])
    for key in ("sl_no", "remarks", "bill_date"):
        if key in patch:
            setattr(bill, key, patch[key])

    log_action(user, "electric_bill_updated", f"Updated electric bill #{bill.id}", event_session_id)
    return bill


def delete_bill(bill_id: int, *, user=None, event_session_id: int | None = None) -> int:
    """Delete and take the total back off the booking's due. Returns the booking id."""
    def _op():
        bill = get_bill(bill_id)
        booking = _locked_booking(bill.booking_id)
        booking.due_amount = (booking.due_amount or 0) - (bill.total_amount or 0)
        log_action(user, "electric_bill_deleted", f"Deleted electric bill #{bill.id}", event_session_id)
        db.session.delete(bill)
        return booking.id

    return run_atomic(_op)


def list_bills(event_session_id: int | None) -> list[dict]:
    """Electric report rows for the session, with exhibitor and space."""
    from ..models import Space

    rows = (
        db.session.query(ElectricBill, Booking.exhibitor_name, Space.name)
        .join(Booking, ElectricBill.booking_id == Booking.id)
        .join(Space, Booking.space_id == Space.id)
        .filter(Booking.event_session_id == event_session_id)
        .order_by(ElectricBill.bill_date.desc(), ElectricBill.id.desc())
        .all()
    )
    result = []
    for bill, exhibitor, space_name in rows:
        data = bill.to_dict()
        data["exhibitor_name"] = exhibitor
        data["space_name"] = space_name
        result.append(data)
    return result
