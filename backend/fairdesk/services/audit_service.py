# Overview: Append-only business audit trail (the "logs" table).

from __future__ import annotations

from ..extensions import db
from ..models import AuditLog
from .query_helpers import paginate


def log_action(user, action: str, details: str | None = None, event_session_id: int | None = None) -> AuditLog:
    """
    Append an audit row to the caller's transaction.

    No commit here: the row lands or disappears together with the change it
    describes. user may be None for system actions (CLI, seeding).
    """
    entry = AuditLog(
        user_id=getattr(user, "id", None),
        username=getattr(user, "username", None) or "system",
        action=action,
        details=details,
        event_session_id=event_session_id,
    )
    db.session.add(entry)
    return entry


def _scoped(event_session_id: int | None):
    query = db.session.query(AuditLog)
    if event_session_id is not None:
        query = query.filter(AuditLog.event_session_id == event_session_id)
    return query


def list_logs(
    *,
    event_session_id: int | None = None,
    q: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[AuditLog], dict]:
    """Newest first; q matches username, action or details."""
    query = _scoped(event_session_id)
    if q:
        like = f"%{q}%"
        query = query.filter(
            db.or_(AuditLog.username.ilike(like), AuditLog.action.ilike(like), AuditLog.details.ilike(like))
        )
    query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    return paginate(query, page=page, per_page=per_page)


def recent_activity(event_session_id: int | None = None, limit: int = 10) -> list[AuditLog]:
    return _scoped(event_session_id).order_by(AuditLog.id.desc()).limit(limit).all()
