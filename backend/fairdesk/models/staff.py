from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_iso_date


class BookingStaff(db.Model):
    """Fair-ground staff; ticket bundles are distributed to them."""
    __tablename__ = "booking_staff"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    dob = db.Column(db.Date, nullable=True)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    secondary_phone = db.Column(db.String(32), nullable=True)
    aadhaar = db.Column(db.String(32), nullable=True, unique=True)
    role = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dob": to_iso_date(self.dob),
            "address": self.address,
            "phone": self.phone,
            "secondary_phone": self.secondary_phone,
            "aadhaar": self.aadhaar,
            "role": self.role,
        }
