from __future__ import annotations

import json

from ..extensions import db
from fairdesk.time_utils import to_utc_z, to_iso_date


PAYMENT_BUCKETS = ("rent", "electric", "material", "shed")


def decode_items(raw) -> list:
    """Decode items_json; tolerates double-encoded JSON and bad data (returns [])."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
        if isinstance(items, str):
            items = json.loads(items)
    except (TypeError, ValueError):
        return []
    return items if isinstance(items, list) else []


class ElectricItem(db.Model):
    """Catalogue entry for electric connections (lights, plug points, motors)."""
    __tablename__ = "electric_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    service_charge = db.Column(db.Float, nullable=False, default=0.0)
    fitting_charge = db.Column(db.Float, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "service_charge": self.service_charge,
            "fitting_charge": self.fitting_charge,
        }


class ElectricBill(db.Model):
    __tablename__ = "electric_bills"
    __table_args__ = (
        db.Index("ix_electric_bills_booking", "booking_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sl_no = db.Column(db.String(32), nullable=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True, index=True)
    bill_date = db.Column(db.Date, nullable=False)
    items_json = db.Column(db.Text, nullable=True)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    remarks = db.Column(db.Text, nullable=True)

    booking = db.relationship("Booking")

    @property
    def items(self) -> list:
        return decode_items(self.items_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sl_no": self.sl_no,
            "booking_id": self.booking_id,
            "event_session_id": self.event_session_id,
            "bill_date": to_iso_date(self.bill_date),
            "items": self.items,
            "total_amount": self.total_amount,
            "remarks": self.remarks,
        }


class ShedAllocation(db.Model):
    """A shed handed to a booking; its rent is a shed charge for the booking."""
    __tablename__ = "shed_allocations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    shed_id = db.Column(db.Integer, db.ForeignKey("sheds.id"), nullable=False, index=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True, index=True)
    allocation_date = db.Column(db.Date, nullable=False)
    # Rent charged at allocation time; later shed rent edits do not reprice it
    rent = db.Column(db.Float, nullable=False, default=0.0, server_default="0")

    shed = db.relationship("Shed")
    booking = db.relationship("Booking")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "shed_id": self.shed_id,
            "shed_name": self.shed.name if self.shed else None,
            "rent": self.rent,
            "event_session_id": self.event_session_id,
            "allocation_date": to_iso_date(self.allocation_date),
        }


class ShedBill(db.Model):
    """Miscellaneous shed charge outside the allocation rent."""
    __tablename__ = "shed_bills"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True, index=True)
    bill_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "event_session_id": self.event_session_id,
            "bill_date": to_iso_date(self.bill_date),
            "description": self.description,
            "amount": self.amount,
        }


class Payment(db.Model):
    """
    Booking-linked payment.

    The paid total (cash + upi) lands in exactly one bucket column
    (rent/electric/material/shed); the bucket is the payment's type.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_booking", "booking_id"),
        db.Index("ix_payments_session_date", "event_session_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True)
    receipt_number = db.Column(db.String(32), nullable=True)
    payment_date = db.Column(db.Date, nullable=False)
    payment_mode = db.Column(db.String(16), nullable=True)
    cash_paid = db.Column(db.Float, nullable=False, default=0.0)
    upi_paid = db.Column(db.Float, nullable=False, default=0.0)
    rent_paid = db.Column(db.Float, nullable=False, default=0.0)
    electric_paid = db.Column(db.Float, nullable=False, default=0.0)
    material_paid = db.Column(db.Float, nullable=False, default=0.0)
    shed_paid = db.Column(db.Float, nullable=False, default=0.0)
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    booking = db.relationship("Booking", backref=db.backref("payments", lazy=True))

    @property
    def payment_type(self) -> str | None:
        for bucket in PAYMENT_BUCKETS:
            if (getattr(self, f"{bucket}_paid") or 0) > 0:
                return bucket
        return None

    @property
    def amount(self) -> float:
        return sum((getattr(self, f"{bucket}_paid") or 0) for bucket in PAYMENT_BUCKETS)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "event_session_id": self.event_session_id,
            "receipt_number": self.receipt_number,
            "payment_date": to_iso_date(self.payment_date),
            "payment_mode": self.payment_mode,
            "payment_type": self.payment_type,
            "amount": self.amount,
            "cash_paid": self.cash_paid,
            "upi_paid": self.upi_paid,
            "rent_paid": self.rent_paid,
            "electric_paid": self.electric_paid,
            "material_paid": self.material_paid,
            "shed_paid": self.shed_paid,
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }
