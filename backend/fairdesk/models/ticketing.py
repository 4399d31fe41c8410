from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z, to_iso_date


TICKETS_AVAILABLE = "Available"
TICKETS_DISTRIBUTED = "Distributed"
TICKETS_SETTLED = "Settled"
# Distribution-only status: the bundle was recalled before settlement
DISTRIBUTION_CANCELLED = "Cancelled"


class Ride(db.Model):
    __tablename__ = "rides"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    rate = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default="1")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "rate": self.rate, "is_active": self.is_active}


class TicketStock(db.Model):
    """
    A bundle of consecutively numbered paper tickets.

    Numbers run start_number..end_number inclusive. Settlement closes the bundle and
    re-stocks the unsold tail as a fresh Available bundle.
    """
    __tablename__ = "ticket_stock"
    __table_args__ = (
        db.Index("ix_ticket_stock_session_status", "event_session_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rate = db.Column(db.Float, nullable=False)
    color = db.Column(db.String(32), nullable=True)
    start_number = db.Column(db.Integer, nullable=False)
    end_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TICKETS_AVAILABLE)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def ticket_count(self) -> int:
        return self.end_number - self.start_number + 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rate": self.rate,
            "color": self.color,
            "start_number": self.start_number,
            "end_number": self.end_number,
            "ticket_count": self.ticket_count,
            "status": self.status,
            "event_session_id": self.event_session_id,
            "created_at": to_utc_z(self.created_at),
        }


class TicketDistribution(db.Model):
    """Hand-over of a ticket bundle to a staff member for one ride, then its settlement."""
    __tablename__ = "ticket_distributions"
    __table_args__ = (
        db.Index("ix_ticket_distributions_session_status", "event_session_id", "status"),
        db.Index("ix_ticket_distributions_staff", "staff_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    distribution_date = db.Column(db.Date, nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("booking_staff.id"), nullable=False)
    ride_id = db.Column(db.Integer, db.ForeignKey("rides.id"), nullable=False)
    stock_id = db.Column(db.Integer, db.ForeignKey("ticket_stock.id"), nullable=False)
    distributed_start_number = db.Column(db.Integer, nullable=False)
    distributed_end_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TICKETS_DISTRIBUTED)

    returned_start_number = db.Column(db.Integer, nullable=True)
    tickets_sold = db.Column(db.Integer, nullable=True)
    calculated_revenue = db.Column(db.Float, nullable=True)
    upi_amount = db.Column(db.Float, nullable=True)
    cash_amount = db.Column(db.Float, nullable=True)
    settlement_date = db.Column(db.Date, nullable=True)
    settled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    # Unsold tail re-stocked at settlement; removed again by unsettle while untouched
    remainder_stock_id = db.Column(db.Integer, db.ForeignKey("ticket_stock.id"), nullable=True)

    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True)

    staff = db.relationship("BookingStaff")
    ride = db.relationship("Ride")
    stock = db.relationship("TicketStock", foreign_keys=[stock_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "distribution_date": to_iso_date(self.distribution_date),
            "staff_id": self.staff_id,
            "staff_name": self.staff.name if self.staff else None,
            "ride_id": self.ride_id,
            "ride_name": self.ride.name if self.ride else None,
            "stock_id": self.stock_id,
            "color": self.stock.color if self.stock else None,
            "distributed_start_number": self.distributed_start_number,
            "distributed_end_number": self.distributed_end_number,
            "status": self.status,
            "returned_start_number": self.returned_start_number,
            "tickets_sold": self.tickets_sold,
            "calculated_revenue": self.calculated_revenue,
            "upi_amount": self.upi_amount,
            "cash_amount": self.cash_amount,
            "settlement_date": to_iso_date(self.settlement_date),
            "settled_by_user_id": self.settled_by_user_id,
            "remainder_stock_id": self.remainder_stock_id,
            "event_session_id": self.event_session_id,
        }
