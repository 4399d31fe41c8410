# Overview: Service-layer operations for exhibition spaces.

from __future__ import annotations

from sqlalchemy import and_, case

from ..extensions import db
from ..models import Booking, Space
from ..models.bookings import BOOKING_ACTIVE
from ..models.venue import SPACE_AVAILABLE, SPACE_BOOKED
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, validate_payload
from .audit_service import log_action
from .concurrency import run_atomic


SPACE_POLICY = ModelValidationPolicy(
    writable_fields={"type", "name", "size", "rent_amount", "facilities", "location"},
    required_on_create={"type", "name"},
)

# Display order used by every booking/space listing
SPACE_TYPE_ORDER = {"Pavilion": 1, "Stall": 2, "Booth": 3}


def space_type_rank(column):
    """SQL expression ranking Pavilion, Stall, Booth, then everything else."""
    return case(SPACE_TYPE_ORDER, value=column, else_=4)


def get_space(space_id: int) -> Space:
    space = db.session.get(Space, space_id)
    if space is None:
        raise NotFoundError("Space not found")
    return space


def list_spaces(event_session_id: int | None) -> list[dict]:
    """
    All spaces with session_status for the given session: Booked when an active
    booking of that session references the space, else Available.
    """
    rows = (
        db.session.query(Space, Booking.id)
        .outerjoin(
            Booking,
            and_(
                Booking.space_id == Space.id,
                Booking.event_session_id == event_session_id,
                Booking.booking_status == BOOKING_ACTIVE,
            ),
        )
        .order_by(Space.type.asc(), Space.name.asc())
        .all()
    )
    result = []
    seen = set()
    for space, booking_id in rows:
        if space.id in seen:
            continue
        seen.add(space.id)
        data = space.to_dict()
        data["session_status"] = SPACE_BOOKED if booking_id else SPACE_AVAILABLE
        data["booking_id"] = booking_id
        result.append(data)
    return result


def is_booked_in_session(space_id: int, event_session_id: int) -> bool:
    return (
        db.session.query(Booking.id)
        .filter(
            Booking.space_id == space_id,
            Booking.event_session_id == event_session_id,
            Booking.booking_status == BOOKING_ACTIVE,
        )
        .first()
        is not None
    )


def create_space(payload: dict, *, user=None, event_session_id: int | None = None) -> Space:
    patch = validate_payload(model=Space, payload=payload, policy=SPACE_POLICY, partial=False)

    def _op():
        space = Space(status=SPACE_AVAILABLE, **patch)
        db.session.add(space)
        db.session.flush()
        log_action(user, "space_created", f"Added space '{space.name}' ({space.type})", event_session_id)
        return space

    return run_atomic(_op)


def update_space(space_id: int, payload: dict, *, user=None, event_session_id: int | None = None) -> Space:
    patch = validate_payload(model=Space, payload=payload, policy=SPACE_POLICY, partial=True)

    def _op():
        space = get_space(space_id)
        for key, value in patch.items():
            setattr(space, key, value)
        log_action(user, "space_updated", f"Updated space '{space.name}'", event_session_id)
        return space

    return run_atomic(_op)


def delete_space(space_id: int, *, user=None, event_session_id: int | None = None) -> None:
    """A space referenced by any booking (in any session) cannot be deleted."""
    def _op():
        space = get_space(space_id)
        if db.session.query(Booking.id).filter(Booking.space_id == space_id).first():
            raise ConflictError("Cannot delete a space that is currently booked. Please cancel the booking first.")
        log_action(user, "space_deleted", f"Deleted space '{space.name}'", event_session_id)
        db.session.delete(space)

    run_atomic(_op)
