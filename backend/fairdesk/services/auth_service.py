# Overview: Service-layer operations for auth; password hashing, login and user administration.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Roles are a fixed list; admin passes every role check
- The last remaining admin cannot be demoted
"""

from __future__ import annotations

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_ADMIN, ROLES
from fairdesk.time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .audit_service import log_action
from .concurrency import run_atomic


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost from BCRYPT_ROUNDS, default 12)."""
    if not password or not password.strip():
        raise ValidationError("Password is required")
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate(username: str, password: str) -> User | None:
    """
    Return the user when the credentials match, else None.

    Successful logins stamp last_login_at and are written to the audit log.
    """
    username = (username or "").strip()
    if not username:
        return None
    user = db.session.query(User).filter_by(username=username).first()
    if not user or not verify_password(password, user.password_hash):
        return None

    def _op():
        user.last_login_at = utcnow()
        log_action(user, "login", f"User '{user.username}' logged in")
        return user

    return run_atomic(_op)


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def create_user(username: str, password: str, role: str, *, actor=None) -> User:
    """
    Create a user with a bcrypt hash.

    Raises:
        ValidationError: missing field or unknown role
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username or not password or not role:
        raise ValidationError("Username, password, and role are required.")
    if role not in ROLES:
        raise ValidationError("Invalid role selected.")

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError(f"Username '{username}' already exists.")

    password_hash = hash_password(password)

    def _op():
        user = User(username=username, password_hash=password_hash, role=role)
        db.session.add(user)
        db.session.flush()
        log_action(actor, "user_created", f"Created user '{username}' with role '{role}'")
        return user

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError(f"Username '{username}' already exists.")


def set_role(user_id: int, role: str, *, actor=None) -> User:
    """Change a user's role; demoting the only admin is refused."""
    if role not in ROLES:
        raise ValidationError("Invalid role selected.")

    def _op():
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.role == ROLE_ADMIN and role != ROLE_ADMIN:
            admin_count = db.session.query(User).filter_by(role=ROLE_ADMIN).count()
            if admin_count <= 1:
                raise ConflictError("Cannot change role. This is the only administrator.")
        previous = user.role
        user.role = role
        log_action(actor, "user_role_changed", f"Changed role of '{user.username}' from '{previous}' to '{role}'")
        return user

    return run_atomic(_op)


def ensure_default_admin(password: str = "admin") -> User:
    """Seed the 'admin' account if no user with that name exists."""
    user = db.session.query(User).filter_by(username="admin").first()
    if user:
        return user
    user = User(username="admin", password_hash=hash_password(password), role=ROLE_ADMIN)
    db.session.add(user)
    db.session.commit()
    return user
