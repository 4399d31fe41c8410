from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z


SPACE_AVAILABLE = "Available"
SPACE_BOOKED = "Booked"

SHED_AVAILABLE = "Available"
SHED_ALLOCATED = "Allocated"


class Space(db.Model):
    """
    Bookable exhibition ground (Pavilion, Stall, Booth, ...).

    Spaces are shared by all event sessions; whether a space is taken in a given
    session is derived from that session's active bookings. The stored status
    tracks the most recent booking activity.
    """
    __tablename__ = "spaces"
    __table_args__ = (
        db.Index("ix_spaces_type_name", "type", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    size = db.Column(db.String(32), nullable=True)
    rent_amount = db.Column(db.Float, nullable=True)
    facilities = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=SPACE_AVAILABLE)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_pavilion(self) -> bool:
        return (self.type or "").strip().lower() == "pavilion"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "size": self.size,
            "rent_amount": self.rent_amount,
            "facilities": self.facilities,
            "location": self.location,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Shed(db.Model):
    """Storage shed rented to exhibitors on top of their space."""
    __tablename__ = "sheds"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    size = db.Column(db.String(32), nullable=True)
    rent = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(16), nullable=False, default=SHED_AVAILABLE)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "rent": self.rent,
            "status": self.status,
        }
