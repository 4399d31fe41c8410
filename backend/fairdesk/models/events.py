from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z, to_iso_date


class EventSession(db.Model):
    """
    One edition of the fair.

    WHY: Every operational row carries event_session_id so editions stay isolated.
    Exactly one session is active (the write target); any session can be viewed.
    """
    __tablename__ = "event_sessions"
    __table_args__ = (
        db.Index("ix_event_sessions_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    location = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    place = db.Column(db.String(120), nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "address": self.address,
            "place": self.place,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
