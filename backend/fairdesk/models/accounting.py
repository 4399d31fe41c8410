from __future__ import annotations

from ..extensions import db
from fairdesk.time_utils import to_utc_z, to_iso_date


TRANSACTION_INCOME = "income"
TRANSACTION_EXPENDITURE = "expenditure"
TRANSACTION_TYPES = (TRANSACTION_INCOME, TRANSACTION_EXPENDITURE)

# Categories written by payment recording; rows carrying them are system-owned.
AUTOMATED_CATEGORY_SUFFIX = " Payment"


class AccountingTransaction(db.Model):
    """
    General ledger row.

    WHY: Payments and ticket settlements mirror themselves here so the ledger is
    the single income/expenditure view. Mirrored rows link back via payment_id or
    distribution_id and are maintained by the code that owns them.
    """
    __tablename__ = "accounting_transactions"
    __table_args__ = (
        db.Index("ix_accounting_session_date", "event_session_id", "transaction_date"),
        db.Index("ix_accounting_type_category", "transaction_type", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_type = db.Column(db.String(16), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount = db.Column(db.Float, nullable=False)
    transaction_date = db.Column(db.Date, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id", ondelete="SET NULL"), nullable=True, index=True)
    distribution_id = db.Column(db.Integer, nullable=True, index=True)
    event_session_id = db.Column(db.Integer, db.ForeignKey("event_sessions.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")

    @property
    def is_automated(self) -> bool:
        return (self.category or "").endswith(AUTOMATED_CATEGORY_SUFFIX)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_type": self.transaction_type,
            "category": self.category,
            "description": self.description,
            "amount": self.amount,
            "transaction_date": to_iso_date(self.transaction_date),
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "payment_id": self.payment_id,
            "distribution_id": self.distribution_id,
            "event_session_id": self.event_session_id,
            "is_automated": self.is_automated,
            "created_at": to_utc_z(self.created_at),
        }
