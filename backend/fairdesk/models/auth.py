from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z


ROLE_ADMIN = "admin"
ROLE_ACCOUNTANT = "accountant"
ROLE_BOOKING_MANAGER = "booking_manager"
ROLE_TICKETING_MANAGER = "ticketing_manager"
ROLE_MATERIAL_HANDLER = "material_handler"
ROLE_USER = "user"

ROLES = (
    ROLE_ADMIN,
    ROLE_ACCOUNTANT,
    ROLE_BOOKING_MANAGER,
    ROLE_TICKETING_MANAGER,
    ROLE_MATERIAL_HANDLER,
    ROLE_USER,
)


class User(db.Model):
    """
    Back-office login.

    WHY: Every action must be attributable. The role is a single value from ROLES;
    admin passes every role check.
    """
    __tablename__ = "users"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default=ROLE_USER)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class AuditLog(db.Model):
    """
    Business audit trail.

    IMMUTABLE: Never update or delete. Rows are written in the same transaction as
    the change they describe.
    """
    __tablename__ = "logs"
    __table_args__ = (
        db.Index("ix_logs_timestamp", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    user_id = db.Column(db.Integer, nullable=True)
    username = db.Column(db.String(64), nullable=True)
    action = db.Column(db.String(64), nullable=False)
    details = db.Column(db.Text, nullable=True)
    event_session_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "user_id": self.user_id,
            "username": self.username,
            "action": self.action,
            "details": self.details,
            "event_session_id": self.event_session_id,
        }
