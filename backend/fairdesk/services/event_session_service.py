# Overview: Service-layer operations for event sessions; resolves the read/write scope of a request.

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import EventSession
from ..validation import (
    ArchivedSessionError,
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from .audit_service import log_action
from .concurrency import run_atomic


SESSION_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location", "address", "place", "start_date", "end_date"},
    required_on_create={"name"},
)

NO_SESSION_MESSAGE = "No event session configured. Create one first."


@dataclass(frozen=True)
class SessionScope:
    """
    Request-scoped view of the event sessions.

    active is where new rows are written; viewing is what reads are filtered by.
    Both are None only when no session exists at all.
    """
    active: EventSession | None
    viewing: EventSession | None
    sessions: list = field(default_factory=list)

    @property
    def active_id(self) -> int | None:
        return self.active.id if self.active else None

    @property
    def viewing_id(self) -> int | None:
        return self.viewing.id if self.viewing else None

    @property
    def is_archived_view(self) -> bool:
        return self.viewing_id != self.active_id

    def ensure_writable(self) -> int:
        """Return the active session id, refusing writes from an archived view."""
        if self.active is None:
            raise ConflictError(NO_SESSION_MESSAGE)
        if self.is_archived_view:
            raise ArchivedSessionError(
                f"Viewing archived session '{self.viewing.name}'; switch to the active session to make changes"
            )
        return self.active.id

    def to_dict(self) -> dict:
        return {
            "active": self.active.to_dict() if self.active else None,
            "viewing": self.viewing.to_dict() if self.viewing else None,
            "is_archived_view": self.is_archived_view,
        }


def get_active_session() -> EventSession | None:
    """The session flagged active, falling back to the oldest session when none is."""
    active = db.session.query(EventSession).filter(EventSession.is_active.is_(True)).first()
    if active is None:
        active = db.session.query(EventSession).order_by(EventSession.id.asc()).first()
    return active


def list_sessions() -> list[EventSession]:
    return (
        db.session.query(EventSession)
        .order_by(EventSession.is_active.desc(), EventSession.start_date.desc(), EventSession.name.asc())
        .all()
    )


def resolve_scope(view_session_id: str | int | None) -> SessionScope:
    """
    Build the scope for one request.

    view_session_id of None, "" or "active" selects the active session; an id that
    does not exist also falls back to it.
    """
    active = get_active_session()
    viewing = None
    if view_session_id not in (None, "", "active"):
        try:
            viewing = db.session.get(EventSession, int(view_session_id))
        except (TypeError, ValueError):
            viewing = None
    if viewing is None:
        viewing = active
    return SessionScope(active=active, viewing=viewing, sessions=list_sessions())


def get_session(session_id: int) -> EventSession:
    event_session = db.session.get(EventSession, session_id)
    if event_session is None:
        raise NotFoundError("Session not found")
    return event_session


def create_session(payload: dict, *, user=None) -> EventSession:
    """New sessions start inactive; activation is a separate step."""
    patch = validate_payload(model=EventSession, payload=payload, policy=SESSION_POLICY, partial=False)
    _check_dates(patch)

    def _op():
        event_session = EventSession(is_active=False, **patch)
        db.session.add(event_session)
        db.session.flush()
        log_action(user, "session_created", f"Created event session '{event_session.name}'")
        return event_session

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError("Failed to create session. The name might already exist.")


def update_session(session_id: int, payload: dict, *, user=None) -> EventSession:
    patch = validate_payload(model=EventSession, payload=payload, policy=SESSION_POLICY, partial=True)
    if "name" in patch and not patch["name"]:
        raise ValidationError("Session Name is required.")

    def _op():
        event_session = get_session(session_id)
        for key, value in patch.items():
            setattr(event_session, key, value)
        _check_dates({"start_date": event_session.start_date, "end_date": event_session.end_date})
        db.session.flush()
        log_action(user, "session_updated", f"Updated event session #{session_id}")
        return event_session

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError("Failed to update session. The name might already exist.")


def activate_session(session_id: int, *, user=None) -> EventSession:
    """Make session_id the single active session (one transaction)."""
    def _op():
        event_session = get_session(session_id)
        db.session.query(EventSession).filter(EventSession.is_active.is_(True)).update(
            {EventSession.is_active: False}, synchronize_session="fetch"
        )
        event_session.is_active = True
        log_action(user, "session_activated", f"Activated event session '{event_session.name}'")
        return event_session

    return run_atomic(_op)


def _check_dates(patch: dict) -> None:
    start, end = patch.get("start_date"), patch.get("end_date")
    if start and end and end < start:
        raise ValidationError("end_date cannot be before start_date")
