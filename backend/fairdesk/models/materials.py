from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z, to_iso_date


STOCK_AVAILABLE = "Available"
STOCK_ISSUED = "Issued"
STOCK_DAMAGED = "Damaged"


class MaterialStockItem(db.Model):
    """
    One physical, QR-tagged furniture item (table, chair, plywood sheet, ...).

    Lifecycle: Available -> Issued -> Available | Damaged. unique_id is the value
    encoded in the QR image; it is built from the first letter of the name, a
    three-letter location code and a zero-padded sequence (e.g. "TMAI001").
    """
    __tablename__ = "material_stock"
    __table_args__ = (
        db.Index("ix_material_stock_client_status", "issued_to_client_id", "status"),
        db.Index("ix_material_stock_session_name", "event_session_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unique_id = db.Column(db.String(64), nullable=False, unique=True)
    qr_code_path = db.Column(db.String(255), nullable=True)
    location = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=STOCK_AVAILABLE)
    issued_to_client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    issued_to = db.relationship("Client", foreign_keys=[issued_to_client_id])
    history = db.relationship(
        "MaterialHistory",
        backref="stock_item",
        cascade="all, delete-orphan",
        order_by="MaterialHistory.id",
        lazy=True,
    )

    @property
    def asset_number(self) -> str:
        """unique_id without the leading name letter, e.g. "MAI001"."""
        return self.unique_id[1:] if len(self.unique_id) > 1 else self.unique_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "unique_id": self.unique_id,
            "asset_number": self.asset_number,
            "qr_code_path": self.qr_code_path,
            "location": self.location,
            "status": self.status,
            "issued_to_client_id": self.issued_to_client_id,
            "client_name": self.issued_to.name if self.issued_to else None,
            "event_session_id": self.event_session_id,
            "created_at": to_utc_z(self.created_at),
        }


class MaterialHistory(db.Model):
    """Append-only log of stock item status transitions."""
    __tablename__ = "material_history"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("material_stock.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action = db.Column(db.String(32), nullable=False)  # created, issued, returned
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)
    client_id = db.Column(db.Integer, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_item_id": self.stock_item_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "client_id": self.client_id,
            "user_id": self.user_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class MaterialIssueRecord(db.Model):
    """
    Consolidated per-day, per-client material billing record.

    Scan-driven issues locate-or-create today's record for the client and fold each
    item into it: free/paid counters, the comma-joined asset numbers and the
    running total_payable/balance_due. Records can also be written by hand.
    """
    __tablename__ = "material_issues"
    __table_args__ = (
        db.Index("ix_material_issues_client_date", "client_id", "issue_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sl_no = db.Column(db.String(32), nullable=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True, index=True)
    stall_number = db.Column(db.String(64), nullable=True)
    camp = db.Column(db.String(120), nullable=True)

    plywood_free = db.Column(db.Integer, nullable=False, default=0)
    table_free = db.Column(db.Integer, nullable=False, default=0)
    chair_free = db.Column(db.Integer, nullable=False, default=0)
    rod_free = db.Column(db.Integer, nullable=False, default=0)
    plywood_paid = db.Column(db.Integer, nullable=False, default=0)
    table_paid = db.Column(db.Integer, nullable=False, default=0)
    chair_paid = db.Column(db.Integer, nullable=False, default=0)

    table_numbers = db.Column(db.Text, nullable=True)
    chair_numbers = db.Column(db.Text, nullable=True)

    total_payable = db.Column(db.Float, nullable=False, default=0.0)
    advance_paid = db.Column(db.Float, nullable=False, default=0.0)
    balance_due = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)
    issue_date = db.Column(db.Date, nullable=False)

    client = db.relationship("Client")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sl_no": self.sl_no,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else None,
            "event_session_id": self.event_session_id,
            "stall_number": self.stall_number,
            "camp": self.camp,
            "plywood_free": self.plywood_free,
            "table_free": self.table_free,
            "chair_free": self.chair_free,
            "rod_free": self.rod_free,
            "plywood_paid": self.plywood_paid,
            "table_paid": self.table_paid,
            "chair_paid": self.chair_paid,
            "table_numbers": self.table_numbers,
            "chair_numbers": self.chair_numbers,
            "total_payable": self.total_payable,
            "advance_paid": self.advance_paid,
            "balance_due": self.balance_due,
            "notes": self.notes,
            "issue_date": to_iso_date(self.issue_date),
        }


class MaterialDefaults(db.Model):
    """Single-row settings used to prefill manual issue records (id is always 1)."""
    __tablename__ = "material_defaults"

    id = db.Column(db.Integer, primary_key=True)
    free_tables = db.Column(db.Integer, nullable=False, default=1)
    free_chairs = db.Column(db.Integer, nullable=False, default=2)
    free_plywood = db.Column(db.Integer, nullable=False, default=0)
    free_rods = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "free_tables": self.free_tables,
            "free_chairs": self.free_chairs,
            "free_plywood": self.free_plywood,
            "free_rods": self.free_rods,
        }
