from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z


BOOKING_ACTIVE = "active"


class Client(db.Model):
    """Exhibitor identity; material stock and issue records are keyed by client."""
    __tablename__ = "clients"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    contact_number = db.Column(db.String(32), nullable=True)
    full_address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "contact_number": self.contact_number,
            "full_address": self.full_address,
        }


class Booking(db.Model):
    """
    Reservation of a space by an exhibitor for one event session.

    due_amount is a denormalized running balance: every billing side effect
    (material overage, electric bill, shed allocation/bill, payment) adjusts it in
    the same transaction. The due-list report recomputes the balance from the raw
    charge and payment tables; that computation is the canonical one and
    `flask dues check` reports bookings where the two disagree.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        db.Index("ix_bookings_session_status", "event_session_id", "booking_status"),
        db.Index("ix_bookings_client_session", "client_id", "event_session_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    space_id = db.Column(db.Integer, db.ForeignKey("spaces.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=False)

    booking_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    exhibitor_name = db.Column(db.String(255), nullable=False)
    facia_name = db.Column(db.String(255), nullable=True)
    product_category = db.Column(db.String(255), nullable=True)
    contact_person = db.Column(db.String(255), nullable=True)
    full_address = db.Column(db.Text, nullable=True)
    contact_number = db.Column(db.String(32), nullable=True)
    secondary_number = db.Column(db.String(32), nullable=True)
    id_proof = db.Column(db.String(120), nullable=True)

    rent_amount = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    advance_amount = db.Column(db.Float, nullable=False, default=0.0)
    due_amount = db.Column(db.Float, nullable=False, default=0.0)

    form_submitted = db.Column(db.Boolean, nullable=False, default=False)
    booking_status = db.Column(db.String(16), nullable=False, default=BOOKING_ACTIVE)

    space = db.relationship("Space", backref=db.backref("bookings", lazy=True))
    client = db.relationship("Client", backref=db.backref("bookings", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "space_id": self.space_id,
            "space_name": self.space.name if self.space else None,
            "space_type": self.space.type if self.space else None,
            "client_id": self.client_id,
            "event_session_id": self.event_session_id,
            "booking_date": to_utc_z(self.booking_date),
            "exhibitor_name": self.exhibitor_name,
            "facia_name": self.facia_name,
            "product_category": self.product_category,
            "contact_person": self.contact_person,
            "full_address": self.full_address,
            "contact_number": self.contact_number,
            "secondary_number": self.secondary_number,
            "id_proof": self.id_proof,
            "rent_amount": self.rent_amount,
            "discount": self.discount,
            "advance_amount": self.advance_amount,
            "due_amount": self.due_amount,
            "form_submitted": self.form_submitted,
            "booking_status": self.booking_status,
        }
