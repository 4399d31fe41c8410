# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import g, jsonify, session

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN
from .services.event_session_service import NO_SESSION_MESSAGE
from .validation import ConflictError


SESSION_USER_KEY = "user"


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_login(f):
    """
    Require a logged-in user.

    The signed session cookie carries {id, username, role}; the user row is
    re-read so a role change or deletion takes effect on the next request.

    Sets g.current_user to the User object.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        cookie_user = session.get(SESSION_USER_KEY)
        if not cookie_user or not cookie_user.get("id"):
            return jsonify({"error": "Authentication required"}), 401

        user = db.session.get(User, cookie_user["id"])
        if user is None:
            session.pop(SESSION_USER_KEY, None)
            return jsonify({"error": "Invalid or expired session"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require one of the given roles. Admin passes every role check.

    Must be stacked under @require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.role != ROLE_ADMIN and user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Requires one of: {', '.join(roles)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    """Require the authenticated user to be an admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_scope(f):
    """Require at least one event session to exist (g.scope has an active session)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        scope = getattr(g, "scope", None)
        if scope is None or scope.active is None:
            return jsonify({"error": NO_SESSION_MESSAGE}), 409
        return f(*args, **kwargs)
    return decorated_function


def require_writable_session(f):
    """
    Refuse writes while an archived session is being viewed.

    Sets g.write_session_id to the active session id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        scope = getattr(g, "scope", None)
        if scope is None:
            raise ConflictError(NO_SESSION_MESSAGE)
        # ArchivedSessionError is a ConflictError; the app handler answers 409
        g.write_session_id = scope.ensure_writable()
        return f(*args, **kwargs)
    return decorated_function
