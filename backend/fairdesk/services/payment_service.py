# Overview: Service-layer operations for booking payments (charges) and receipts.

"""
Payment Service

WHY: A payment is money received against one booking. Its total (cash + upi)
lands in exactly one bucket column, the booking's running due_amount drops by
the same total and an income row is mirrored into the accounting ledger, all
in one unit of work.

DESIGN PRINCIPLES:
- The bucket (payment type) never changes after recording
- Receipt numbers are kept for rent payments only; other buckets store "NA"
- Edit and delete keep due_amount and the mirrored ledger row in sync
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AccountingTransaction, Booking, Payment
from ..models.accounting import TRANSACTION_INCOME
from ..models.billing import PAYMENT_BUCKETS
from fairdesk.time_utils import parse_iso_date, today
from ..validation import NotFoundError, ValidationError, parse_amount
from .audit_service import log_action
from .concurrency import lock_for_update, run_atomic


# =============================================================================
# CONSTANTS
# =============================================================================

MODE_CASH = "Cash"
MODE_UPI = "UPI"
MODE_SPLIT = "Cash & UPI"

NO_RECEIPT = "NA"

LEDGER_CATEGORIES = {
    "rent": "Rent Payment",
    "electric": "Electric Bill Payment",
    "material": "Material Issue Payment",
    "shed": "Shed Rent Payment",
}


def payment_mode(cash: float, upi: float) -> str:
    if cash > 0 and upi > 0:
        return MODE_SPLIT
    return MODE_CASH if cash > 0 else MODE_UPI


def _parse_date(value):
    if value in (None, ""):
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError("payment_date must be a YYYY-MM-DD date")


def _split_amounts(payload: dict) -> tuple[float, float]:
    cash = parse_amount(payload.get("cash_paid"), field="cash_paid")
    upi = parse_amount(payload.get("upi_paid"), field="upi_paid")
    if cash < 0 or upi < 0:
        raise ValidationError("Payment amounts cannot be negative.")
    if cash + upi <= 0:
        raise ValidationError("Payment amount must be greater than zero.")
    return cash, upi


def _clean_receipt(value) -> str | None:
    text = str(value).strip() if value not in (None, "") else ""
    return text or None


# =============================================================================
# READS
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found.")
    return payment


def next_receipt_number(event_session_id: int | None) -> int:
    """Highest numeric receipt in the session plus one; "NA" and free text are skipped."""
    rows = (
        db.session.query(Payment.receipt_number)
        .filter(Payment.event_session_id == event_session_id, Payment.receipt_number.isnot(None))
        .all()
    )
    numbers = [int(value) for (value,) in rows if str(value).strip().isdigit()]
    return max(numbers, default=0) + 1


def payments_for_booking(booking_id: int) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter_by(booking_id=booking_id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )


def charge_details(booking_id: int) -> dict:
    """Per-category dues for the payment form, from the canonical due computation."""
    from .reporting_service import compute_dues

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    rows = compute_dues(booking.event_session_id, booking_ids=[booking.id], active_only=False)
    categories = rows[0]["categories"] if rows else {}
    result = {f"{bucket}_due": categories.get(bucket, {}).get("due", 0.0) for bucket in PAYMENT_BUCKETS}
    result["total_due"] = rows[0]["total_due"] if rows else 0.0
    return result


def get_receipt(payment_id: int) -> dict:
    """
    Printable receipt: the payment with exhibitor and space plus the booking's
    balance before and after this payment.
    """
    from .reporting_service import compute_dues

    payment = get_payment(payment_id)
    booking = payment.booking
    rows = compute_dues(booking.event_session_id, booking_ids=[booking.id], active_only=False)
    balance_due = rows[0]["total_due"] if rows else 0.0

    data = payment.to_dict()
    data.update({
        "exhibitor_name": booking.exhibitor_name,
        "facia_name": booking.facia_name,
        "space_name": booking.space.name if booking.space else None,
    })
    return {
        "title": f"Receipt #{payment.receipt_number if payment.receipt_number not in (None, NO_RECEIPT) else payment.id}",
        "payment": data,
        "financial_summary": {
            "previous_balance": balance_due + payment.amount,
            "amount_paid": payment.amount,
            "balance_due": balance_due,
        },
    }


# =============================================================================
# WRITES
# =============================================================================

def record_payment(payload: dict, *, user=None, event_session_id: int | None = None) -> Payment:
    """
    Record a payment, reduce the booking's due and mirror a ledger income row.

    Raises:
        ValidationError: booking missing, bad payment type or non-positive total
        NotFoundError: booking does not exist
    """
    payload = payload or {}
    try:
        booking_id = int(payload.get("booking_id"))
    except (TypeError, ValueError):
        raise ValidationError("Booking is required.")
    payment_type = (payload.get("payment_type") or "").strip().lower()
    if payment_type not in PAYMENT_BUCKETS:
        raise ValidationError("Invalid payment type specified.")
    cash, upi = _split_amounts(payload)
    total = cash + upi
    payment_date = _parse_date(payload.get("payment_date")) or today()
    remarks = (payload.get("remarks") or "").strip() or None

    def _op():
        booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
        if booking is None:
            raise NotFoundError("Booking not found")

        if payment_type == "rent":
            receipt = _clean_receipt(payload.get("receipt_number")) or str(next_receipt_number(event_session_id))
        else:
            receipt = NO_RECEIPT

        payment = Payment(
            booking_id=booking.id,
            event_session_id=event_session_id,
            receipt_number=receipt,
            payment_date=payment_date,
            payment_mode=payment_mode(cash, upi),
            cash_paid=cash,
            upi_paid=upi,
            remarks=remarks,
        )
        setattr(payment, f"{payment_type}_paid", total)
        db.session.add(payment)
        booking.due_amount = (booking.due_amount or 0) - total
        db.session.flush()

        db.session.add(AccountingTransaction(
            payment_id=payment.id,
            transaction_type=TRANSACTION_INCOME,
            category=LEDGER_CATEGORIES[payment_type],
            description=f"Payment from {booking.exhibitor_name}",
            amount=total,
            transaction_date=payment_date,
            user_id=getattr(user, "id", None),
            event_session_id=event_session_id,
        ))
        log_action(
            user,
            "payment_recorded",
            f"{payment_type.capitalize()} payment of {total:.2f} for booking #{booking.id}",
            event_session_id,
        )
        return payment

    payment = run_atomic(_op)
    current_app.logger.info("Payment #%s (%s, %.2f) recorded for booking #%s", payment.id, payment_type, total, booking_id)
    return payment


def validate_payment_edit(payload: dict) -> dict:
    payload = payload or {}
    cash, upi = _split_amounts(payload)
    patch = {"cash_paid": cash, "upi_paid": upi}
    if "receipt_number" in payload:
        patch["receipt_number"] = _clean_receipt(payload.get("receipt_number"))
    payment_date = _parse_date(payload.get("payment_date"))
    if payment_date is not None:
        patch["payment_date"] = payment_date
    if "remarks" in payload:
        patch["remarks"] = (payload.get("remarks") or "").strip() or None
    return patch


def apply_payment_edit(payment_id: int, patch: dict, *, user=None, event_session_id: int | None = None) -> Payment:
    """
    Apply a validated payment patch inside the caller's unit of work.

    The new total stays in the payment's original bucket; due_amount moves by
    old total - new total and the mirrored ledger row takes the new amount and date.
    """
    payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
    if payment is None:
        raise NotFoundError("Payment not found.")
    bucket = payment.payment_type
    if bucket is None:
        raise ValidationError("Could not determine payment type for this payment.")
    booking = lock_for_update(db.session.query(Booking).filter_by(id=payment.booking_id)).first()
    if booking is None:
        raise NotFoundError("Booking not found")

    old_total = payment.amount
    cash, upi = patch["cash_paid"], patch["upi_paid"]
    new_total = cash + upi

    payment.cash_paid = cash
    payment.upi_paid = upi
    payment.payment_mode = payment_mode(cash, upi)
    setattr(payment, f"{bucket}_paid", new_total)
    if "payment_date" in patch:
        payment.payment_date = patch["payment_date"]
    if "remarks" in patch:
        payment.remarks = patch["remarks"]
    if bucket == "rent" and patch.get("receipt_number"):
        payment.receipt_number = patch["receipt_number"]

    booking.due_amount = (booking.due_amount or 0) + (old_total - new_total)

    ledger = db.session.query(AccountingTransaction).filter_by(payment_id=payment.id).all()
    for row in ledger:
        row.amount = new_total
        row.transaction_date = payment.payment_date

    log_action(user, "payment_updated", f"Updated payment #{payment.id} from {old_total:.2f} to {new_total:.2f}", event_session_id)
    return payment


def delete_payment(payment_id: int, *, user=None, event_session_id: int | None = None) -> int:
    """Delete the payment and its ledger mirror, adding the total back to due. Returns the booking id."""
    def _op():
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if payment is None:
            raise NotFoundError("Payment not found.")
        booking = lock_for_update(db.session.query(Booking).filter_by(id=payment.booking_id)).first()
        if booking is not None:
            booking.due_amount = (booking.due_amount or 0) + payment.amount

        db.session.query(AccountingTransaction).filter_by(payment_id=payment.id).delete(synchronize_session=False)
        log_action(user, "payment_deleted", f"Deleted payment #{payment.id} of {payment.amount:.2f}", event_session_id)
        booking_id = payment.booking_id
        db.session.delete(payment)
        return booking_id

    return run_atomic(_op)
