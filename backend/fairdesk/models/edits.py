from __future__ import annotations

import json

from ..extensions import db
from fairdesk.time_utils import to_utc_z


EDIT_PENDING = "pending"
EDIT_APPROVED = "approved"
EDIT_REJECTED = "rejected"

EDIT_ENTITY_TYPES = ("booking", "payment", "electric_bill", "material_issue")


class EditRequest(db.Model):
    """
    Change proposed by a non-admin user, applied only once an admin approves it.

    One table covers every editable entity; (entity_type, entity_id) names the row
    and proposed_data holds the JSON patch.
    """
    __tablename__ = "edit_requests"
    __table_args__ = (
        db.Index("ix_edit_requests_status", "status"),
        db.Index("ix_edit_requests_entity", "entity_type", "entity_id"),
        db.Index("ix_edit_requests_user", "user_id", "user_notified"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    username = db.Column(db.String(64), nullable=False)
    proposed_data = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=EDIT_PENDING)
    request_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    rejection_reason = db.Column(db.Text, nullable=True)
    user_notified = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    reviewed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def proposed(self) -> dict:
        try:
            data = json.loads(self.proposed_data or "{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "username": self.username,
            "proposed_data": self.proposed,
            "status": self.status,
            "request_date": to_utc_z(self.request_date),
            "rejection_reason": self.rejection_reason,
            "user_notified": self.user_notified,
            "reviewed_by_user_id": self.reviewed_by_user_id,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
        }
