# Overview: Service-layer operations for clients and bookings.

"""
Booking Service

WHY: A booking ties an exhibitor (client) to a space for one event session and
carries the running due_amount every billing flow adjusts.

DESIGN PRINCIPLES:
- Client and booking are created together in one unit of work
- A space holds at most one active booking per session
- Money edits move due_amount by the net difference, never overwrite it
- Deleting a booking with money attached (payments, bills, allocations) is refused
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Booking,
    Client,
    ElectricBill,
    MaterialIssueRecord,
    Payment,
    ShedAllocation,
    ShedBill,
    Space,
)
from ..models.bookings import BOOKING_ACTIVE
from ..models.venue import SPACE_AVAILABLE, SPACE_BOOKED
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from .audit_service import log_action
from .concurrency import lock_for_update, run_atomic
from .space_service import is_booked_in_session, space_type_rank


# =============================================================================
# POLICIES
# =============================================================================

BOOKING_FIELDS = {
    "exhibitor_name",
    "facia_name",
    "product_category",
    "contact_person",
    "full_address",
    "contact_number",
    "secondary_number",
    "id_proof",
    "rent_amount",
    "discount",
    "advance_amount",
    "form_submitted",
}

BOOKING_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=BOOKING_FIELDS | {"space_id"},
    required_on_create={"space_id", "exhibitor_name", "contact_person", "contact_number"},
)

BOOKING_EDIT_POLICY = ModelValidationPolicy(
    writable_fields=BOOKING_FIELDS,
    required_on_create={"exhibitor_name", "contact_person", "contact_number"},
)

FORM_STATUS_FILTERS = ("all", "submitted", "not_submitted")


def net_rent(booking: Booking) -> float:
    """Rent still owed at booking time: rent - discount - advance."""
    return (booking.rent_amount or 0) - (booking.discount or 0) - (booking.advance_amount or 0)


# =============================================================================
# READS
# =============================================================================

def get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def get_active_booking_for_client(client_id: int, event_session_id: int | None) -> Booking | None:
    """The client's active booking in the session, or None."""
    query = db.session.query(Booking).filter(
        Booking.client_id == client_id,
        Booking.booking_status == BOOKING_ACTIVE,
    )
    if event_session_id is not None:
        query = query.filter(Booking.event_session_id == event_session_id)
    return query.order_by(Booking.id.desc()).first()


def _ordered_query(event_session_id: int | None):
    return (
        db.session.query(Booking)
        .join(Space, Booking.space_id == Space.id)
        .filter(Booking.event_session_id == event_session_id)
        .order_by(space_type_rank(Space.type), Space.name.asc(), Booking.id.asc())
    )


def list_bookings(event_session_id: int | None, form_status: str = "all") -> list[Booking]:
    """Bookings of the session in Pavilion, Stall, Booth, other order, then by space name."""
    if form_status not in FORM_STATUS_FILTERS:
        raise ValidationError(f"form_status must be one of {', '.join(FORM_STATUS_FILTERS)}")
    query = _ordered_query(event_session_id)
    if form_status == "submitted":
        query = query.filter(Booking.form_submitted.is_(True))
    elif form_status == "not_submitted":
        query = query.filter(Booking.form_submitted.is_(False))
    return query.all()


def search_bookings(event_session_id: int | None, q: str) -> list[Booking]:
    """Dashboard search by exhibitor, facia or space name."""
    q = (q or "").strip()
    if not q:
        return []
    like = f"%{q}%"
    return (
        _ordered_query(event_session_id)
        .filter(or_(Booking.exhibitor_name.ilike(like), Booking.facia_name.ilike(like), Space.name.ilike(like)))
        .all()
    )


def latest_booking_for_space(space_id: int, event_session_id: int | None) -> Booking | None:
    return (
        db.session.query(Booking)
        .filter(Booking.space_id == space_id, Booking.event_session_id == event_session_id)
        .order_by(Booking.booking_date.desc(), Booking.id.desc())
        .first()
    )


def get_booking_details(booking_id: int) -> dict:
    """
    Everything the booking detail page shows: the booking, its client and space,
    material issue records (by client), electric bills, shed allocations and bills,
    typed payments, per-category financials and previous/next ids in list order.
    """
    from .reporting_service import compute_dues

    booking = get_booking(booking_id)
    session_id = booking.event_session_id

    ordered_ids = [row.id for row in _ordered_query(session_id).with_entities(Booking.id).all()]
    index = ordered_ids.index(booking.id) if booking.id in ordered_ids else -1
    previous_id = ordered_ids[index - 1] if index > 0 else None
    next_id = ordered_ids[index + 1] if 0 <= index < len(ordered_ids) - 1 else None

    materials = (
        db.session.query(MaterialIssueRecord)
        .filter(
            MaterialIssueRecord.client_id == booking.client_id,
            MaterialIssueRecord.event_session_id == session_id,
        )
        .order_by(MaterialIssueRecord.issue_date.desc(), MaterialIssueRecord.id.desc())
        .all()
    )
    electric_bills = db.session.query(ElectricBill).filter_by(booking_id=booking.id).order_by(ElectricBill.id).all()
    allocations = db.session.query(ShedAllocation).filter_by(booking_id=booking.id).order_by(ShedAllocation.id).all()
    shed_bills = db.session.query(ShedBill).filter_by(booking_id=booking.id).order_by(ShedBill.id).all()
    payments = (
        db.session.query(Payment)
        .filter_by(booking_id=booking.id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )

    dues = compute_dues(session_id, booking_ids=[booking.id], active_only=False)
    financials = dues[0]["categories"] if dues else None

    return {
        "booking": booking.to_dict(),
        "client": booking.client.to_dict() if booking.client else None,
        "space": booking.space.to_dict() if booking.space else None,
        "materials": [m.to_dict() for m in materials],
        "electric_bills": [b.to_dict() for b in electric_bills],
        "shed_allocations": [a.to_dict() for a in allocations],
        "shed_bills": [b.to_dict() for b in shed_bills],
        "payments": [
            {
                "id": p.id,
                "payment_date": p.to_dict()["payment_date"],
                "receipt_number": p.receipt_number,
                "type": (p.payment_type or "unknown").capitalize(),
                "amount": p.amount,
            }
            for p in payments
        ],
        "financials": financials,
        "previous_id": previous_id,
        "next_id": next_id,
    }


# =============================================================================
# WRITES
# =============================================================================

def create_booking(payload: dict, *, user=None, event_session_id: int) -> Booking:
    """
    Create the client and the booking in one transaction and mark the space Booked.

    rent_amount defaults to the space's rent when omitted.

    Raises:
        ValidationError: required field missing or malformed
        NotFoundError: space does not exist
        ConflictError: space already has an active booking in this session
    """
    patch = validate_payload(model=Booking, payload=payload, policy=BOOKING_CREATE_POLICY, partial=False)
    for money in ("rent_amount", "discount", "advance_amount"):
        if (patch.get(money) or 0) < 0:
            raise ValidationError(f"{money} cannot be negative")

    def _op():
        space = lock_for_update(db.session.query(Space).filter_by(id=patch["space_id"])).first()
        if space is None:
            raise NotFoundError("Space not found")
        if is_booked_in_session(space.id, event_session_id):
            raise ConflictError(f"Space '{space.name}' is already booked in this session")

        client = Client(
            name=patch["exhibitor_name"],
            contact_person=patch.get("contact_person"),
            contact_number=patch.get("contact_number"),
            full_address=patch.get("full_address"),
        )
        db.session.add(client)
        db.session.flush()

        fields = {k: v for k, v in patch.items() if k != "space_id"}
        if fields.get("rent_amount") is None:
            fields["rent_amount"] = space.rent_amount or 0.0
        booking = Booking(
            space_id=space.id,
            client_id=client.id,
            event_session_id=event_session_id,
            booking_status=BOOKING_ACTIVE,
            **fields,
        )
        booking.discount = booking.discount or 0.0
        booking.advance_amount = booking.advance_amount or 0.0
        booking.form_submitted = bool(booking.form_submitted)
        booking.due_amount = net_rent(booking)
        db.session.add(booking)
        space.status = SPACE_BOOKED
        db.session.flush()

        log_action(
            user,
            "booking_created",
            f"Booked space '{space.name}' for '{booking.exhibitor_name}' (booking #{booking.id})",
            event_session_id,
        )
        return booking

    return run_atomic(_op)


def validate_booking_edit(payload: dict) -> dict:
    patch = validate_payload(model=Booking, payload=payload, policy=BOOKING_EDIT_POLICY, partial=False)
    for money in ("rent_amount", "discount", "advance_amount"):
        if (patch.get(money) or 0) < 0:
            raise ValidationError(f"{money} cannot be negative")
    return patch


def apply_booking_edit(booking_id: int, patch: dict, *, user=None, event_session_id: int | None = None) -> Booking:
    """
    Apply a validated booking patch inside the caller's unit of work.

    due_amount moves by the change in rent - discount - advance, so charges and
    payments already folded into it survive the edit.
    """
    booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
    if booking is None:
        raise NotFoundError("Booking not found")

    before = net_rent(booking)
    for key, value in patch.items():
        if key in ("rent_amount", "discount", "advance_amount") and value is None:
            value = 0.0
        setattr(booking, key, value)
    booking.due_amount = (booking.due_amount or 0) + (net_rent(booking) - before)

    log_action(user, "booking_updated", f"Updated booking #{booking.id}", event_session_id)
    return booking


def delete_booking(booking_id: int, *, user=None, event_session_id: int | None = None) -> None:
    """
    Delete the booking and free its space.

    Refused while payments, electric bills, shed allocations or shed bills still
    reference the booking; the client row is kept for material history.
    """
    def _op():
        booking = get_booking(booking_id)
        dependents = (
            (Payment, "payments"),
            (ElectricBill, "electric bills"),
            (ShedAllocation, "shed allocations"),
            (ShedBill, "shed bills"),
        )
        for model, label in dependents:
            if db.session.query(model.id).filter(model.booking_id == booking_id).first():
                raise ConflictError(f"Cannot delete booking #{booking_id} while it has {label}")

        space = booking.space
        log_action(
            user,
            "booking_deleted",
            f"Deleted booking #{booking.id} for '{booking.exhibitor_name}'",
            event_session_id,
        )
        db.session.delete(booking)
        db.session.flush()
        if space is not None:
            still_booked = (
                db.session.query(Booking.id)
                .filter(Booking.space_id == space.id, Booking.booking_status == BOOKING_ACTIVE)
                .first()
            )
            if not still_booked:
                space.status = SPACE_AVAILABLE

    run_atomic(_op)
