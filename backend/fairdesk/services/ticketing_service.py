# Overview: Service-layer operations for ride ticketing; rides, ticket stock, distribution and settlement.

"""
Ticketing Service

WHY: Paper ticket bundles are handed to staff per ride and settled at the end of
the day from the first unsold ticket number. Settlement books the revenue into
the accounting ledger and re-stocks the unsold tail.

Lifecycle:
- TicketStock: Available -> Distributed -> Settled (unsettle: Settled -> Distributed)
- TicketDistribution: Distributed -> Settled | Cancelled (unsettle: Settled -> Distributed)
"""

from __future__ import annotations

import csv
import io

from flask import current_app
from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AccountingTransaction, BookingStaff, Ride, TicketDistribution, TicketStock, User
from ..models.accounting import TRANSACTION_INCOME
from ..models.ticketing import (
    DISTRIBUTION_CANCELLED,
    TICKETS_AVAILABLE,
    TICKETS_DISTRIBUTED,
    TICKETS_SETTLED,
)
from fairdesk.time_utils import parse_iso_date, today
from ..validation import ConflictError, NotFoundError, ValidationError, parse_amount
from .audit_service import log_action
from .concurrency import lock_for_update, run_atomic
from .query_helpers import ListFilters, apply_date_range


TICKET_SALES_CATEGORY = "Ticket Sales"


def _int(value, field: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number")


def _required_id(payload: dict, field: str) -> int:
    if payload.get(field) in (None, ""):
        raise ValidationError("All fields are required.")
    return _int(payload.get(field), field)


# =============================================================================
# RIDES
# =============================================================================

def list_rides(*, active_only: bool = False) -> list[Ride]:
    query = db.session.query(Ride)
    if active_only:
        query = query.filter(Ride.is_active.is_(True))
    return query.order_by(Ride.name).all()


def get_ride(ride_id: int) -> Ride:
    ride = db.session.get(Ride, ride_id)
    if ride is None:
        raise NotFoundError("Ride not found.")
    return ride


def add_ride(payload: dict, *, user=None) -> Ride:
    payload = payload or {}
    name = (payload.get("name") or "").strip()
    if not name or payload.get("rate") in (None, ""):
        raise ValidationError("Ride Name and Rate are required.")
    rate = parse_amount(payload.get("rate"), field="rate")
    if rate < 0:
        raise ValidationError("rate cannot be negative")

    def _op():
        ride = Ride(name=name, rate=rate, is_active=True)
        db.session.add(ride)
        db.session.flush()
        log_action(user, "ride_added", f"Added ride '{name}' at {rate:.2f}")
        return ride

    try:
        return run_atomic(_op)
    except IntegrityError:
        raise ConflictError(f"Ride '{name}' already exists.")


def delete_ride(ride_id: int, *, user=None) -> None:
    def _op():
        ride = get_ride(ride_id)
        if db.session.query(TicketDistribution.id).filter_by(ride_id=ride.id).first():
            raise ConflictError("Cannot delete a ride with ticket distributions. Deactivate it instead.")
        log_action(user, "ride_deleted", f"Deleted ride '{ride.name}'")
        db.session.delete(ride)

    run_atomic(_op)


def toggle_ride(ride_id: int, *, user=None) -> Ride:
    def _op():
        ride = get_ride(ride_id)
        ride.is_active = not ride.is_active
        log_action(user, "ride_toggled", f"Ride '{ride.name}' is now {'active' if ride.is_active else 'inactive'}")
        return ride

    return run_atomic(_op)


# =============================================================================
# STOCK
# =============================================================================

def _validate_stock(payload: dict) -> dict:
    payload = payload or {}
    fields = ("rate", "color", "start_number", "end_number")
    if any(payload.get(f) in (None, "") for f in fields):
        raise ValidationError("All fields are required.")
    rate = parse_amount(payload.get("rate"), field="rate")
    start = _int(payload.get("start_number"), "start_number")
    end = _int(payload.get("end_number"), "end_number")
    if rate < 0:
        raise ValidationError("rate cannot be negative")
    if start < 0 or end < start:
        raise ValidationError("end_number must be greater than or equal to start_number")
    return {"rate": rate, "color": str(payload.get("color")).strip(), "start_number": start, "end_number": end}


def list_stock(event_session_id: int | None, *, q: str | None = None, status: str | None = None) -> list[TicketStock]:
    query = db.session.query(TicketStock).filter(TicketStock.event_session_id == event_session_id)
    if status:
        query = query.filter(TicketStock.status == status)
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                TicketStock.color.ilike(like),
                cast(TicketStock.start_number, String).ilike(like),
                cast(TicketStock.end_number, String).ilike(like),
            )
        )
    return query.order_by(TicketStock.created_at.desc(), TicketStock.rate, TicketStock.start_number).all()


def get_stock(stock_id: int) -> TicketStock:
    stock = db.session.get(TicketStock, stock_id)
    if stock is None:
        raise NotFoundError("Stock entry not found.")
    return stock


def add_stock(payload: dict, *, user=None, event_session_id: int | None = None) -> TicketStock:
    patch = _validate_stock(payload)

    def _op():
        stock = TicketStock(status=TICKETS_AVAILABLE, event_session_id=event_session_id, **patch)
        db.session.add(stock)
        db.session.flush()
        log_action(user, "ticket_stock_added", f"Added {stock.color} tickets {stock.start_number}-{stock.end_number}", event_session_id)
        return stock

    return run_atomic(_op)


def import_stock_csv(text: str, *, user=None, event_session_id: int | None = None) -> int:
    """
    Bulk-add bundles from "rate,color,start_number,end_number" lines (no header).

    All-or-nothing: one bad row rejects the whole file.
    """
    rows = [row for row in csv.reader(io.StringIO(text or "")) if any(cell.strip() for cell in row)]
    if not rows:
        raise ValidationError("The uploaded file has no rows.")

    bundles = []
    for index, row in enumerate(rows, start=1):
        cells = [cell.strip() for cell in row] + [""] * 4
        try:
            bundles.append(_validate_stock(dict(zip(("rate", "color", "start_number", "end_number"), cells[:4]))))
        except ValidationError as exc:
            raise ValidationError(f"Row {index}: {exc}")

    def _op():
        for patch in bundles:
            db.session.add(TicketStock(status=TICKETS_AVAILABLE, event_session_id=event_session_id, **patch))
        log_action(user, "ticket_stock_imported", f"Imported {len(bundles)} stock bundles", event_session_id)
        return len(bundles)

    return run_atomic(_op)


def update_stock(stock_id: int, payload: dict, *, user=None, event_session_id: int | None = None) -> TicketStock:
    patch = _validate_stock(payload)

    def _op():
        stock = lock_for_update(db.session.query(TicketStock).filter_by(id=stock_id)).first()
        if stock is None:
            raise NotFoundError("Stock entry not found.")
        if stock.status == TICKETS_DISTRIBUTED:
            raise ConflictError("Cannot edit stock that is currently distributed. Please recall it first.")
        for key, value in patch.items():
            setattr(stock, key, value)
        log_action(user, "ticket_stock_updated", f"Updated ticket stock #{stock.id}", event_session_id)
        return stock

    return run_atomic(_op)


def delete_stock(stock_id: int, *, user=None, event_session_id: int | None = None) -> None:
    def _op():
        stock = lock_for_update(db.session.query(TicketStock).filter_by(id=stock_id)).first()
        if stock is None:
            raise NotFoundError("Stock entry not found.")
        if stock.status != TICKETS_AVAILABLE:
            raise ConflictError("Could not delete stock. It may have already been distributed.")
        log_action(user, "ticket_stock_deleted", f"Deleted ticket stock #{stock.id}", event_session_id)
        db.session.delete(stock)

    run_atomic(_op)


# =============================================================================
# DISTRIBUTION
# =============================================================================

def get_distribution(distribution_id: int) -> TicketDistribution:
    row = db.session.get(TicketDistribution, distribution_id)
    if row is None:
        raise NotFoundError("Distribution not found.")
    return row


def _locked_distribution(distribution_id: int, status: str, message: str) -> TicketDistribution:
    row = lock_for_update(db.session.query(TicketDistribution).filter_by(id=distribution_id)).first()
    if row is None:
        raise NotFoundError("Distribution not found.")
    if row.status != status:
        raise ConflictError(message)
    return row


def _available_stock(stock_id: int) -> TicketStock:
    stock = lock_for_update(db.session.query(TicketStock).filter_by(id=stock_id)).first()
    if stock is None:
        raise NotFoundError("Stock entry not found.")
    if stock.status != TICKETS_AVAILABLE:
        raise ConflictError("This ticket bundle is not available.")
    return stock


def _active_ride(ride_id: int) -> Ride:
    ride = get_ride(ride_id)
    if not ride.is_active:
        raise ConflictError(f"Ride '{ride.name}' is not active.")
    return ride


def list_distributions(event_session_id: int | None, *, status: str = TICKETS_DISTRIBUTED, q: str | None = None, limit: int | None = None) -> list[TicketDistribution]:
    query = (
        db.session.query(TicketDistribution)
        .join(BookingStaff, TicketDistribution.staff_id == BookingStaff.id)
        .join(Ride, TicketDistribution.ride_id == Ride.id)
        .filter(TicketDistribution.status == status, TicketDistribution.event_session_id == event_session_id)
    )
    if q:
        like = f"%{q}%"
        query = query.filter(or_(BookingStaff.name.ilike(like), Ride.name.ilike(like)))
    if status == TICKETS_SETTLED:
        query = query.order_by(TicketDistribution.settlement_date.desc(), TicketDistribution.id.desc())
    else:
        query = query.order_by(TicketDistribution.distribution_date.desc(), TicketDistribution.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def distribute(payload: dict, *, user=None, event_session_id: int | None = None) -> TicketDistribution:
    """Hand an Available bundle to a staff member for one ride; the bundle becomes Distributed."""
    payload = payload or {}
    staff_id = _required_id(payload, "staff_id")
    ride_id = _required_id(payload, "ride_id")
    stock_id = _required_id(payload, "stock_id")
    try:
        distribution_date = parse_iso_date(payload.get("distribution_date")) or today()
    except ValueError:
        raise ValidationError("distribution_date must be a YYYY-MM-DD date")

    def _op():
        staff = db.session.get(BookingStaff, staff_id)
        if staff is None:
            raise NotFoundError("Staff member not found.")
        ride = _active_ride(ride_id)
        stock = _available_stock(stock_id)
        row = TicketDistribution(
            distribution_date=distribution_date,
            staff_id=staff.id,
            ride_id=ride.id,
            stock_id=stock.id,
            distributed_start_number=stock.start_number,
            distributed_end_number=stock.end_number,
            status=TICKETS_DISTRIBUTED,
            event_session_id=event_session_id,
        )
        db.session.add(row)
        stock.status = TICKETS_DISTRIBUTED
        db.session.flush()
        log_action(
            user,
            "tickets_distributed",
            f"Distributed tickets {stock.start_number}-{stock.end_number} to '{staff.name}' for '{ride.name}'",
            event_session_id,
        )
        return row

    row = run_atomic(_op)
    current_app.logger.info("Ticket distribution #%s created", row.id)
    return row


def update_distribution(distribution_id: int, payload: dict, *, user=None, event_session_id: int | None = None) -> TicketDistribution:
    """Swap staff, ride or bundle of an unsettled distribution; a replaced bundle returns to Available."""
    payload = payload or {}
    staff_id = _required_id(payload, "staff_id")
    ride_id = _required_id(payload, "ride_id")
    stock_id = _required_id(payload, "stock_id")

    def _op():
        row = _locked_distribution(distribution_id, TICKETS_DISTRIBUTED, "This distribution cannot be edited.")
        if db.session.get(BookingStaff, staff_id) is None:
            raise NotFoundError("Staff member not found.")
        ride = _active_ride(ride_id) if ride_id != row.ride_id else get_ride(ride_id)

        if stock_id != row.stock_id:
            new_stock = _available_stock(stock_id)
            old_stock = db.session.get(TicketStock, row.stock_id)
            if old_stock is not None:
                old_stock.status = TICKETS_AVAILABLE
            new_stock.status = TICKETS_DISTRIBUTED
            row.stock_id = new_stock.id
            row.distributed_start_number = new_stock.start_number
            row.distributed_end_number = new_stock.end_number

        row.staff_id = staff_id
        row.ride_id = ride.id
        log_action(user, "distribution_updated", f"Updated ticket distribution #{row.id}", event_session_id)
        return row

    return run_atomic(_op)


def delete_distribution(distribution_id: int, *, user=None, event_session_id: int | None = None) -> None:
    """Recall an unsettled bundle: the stock is Available again and the distribution row goes."""
    def _op():
        row = _locked_distribution(distribution_id, TICKETS_DISTRIBUTED, "Distribution not found or cannot be recalled.")
        stock = db.session.get(TicketStock, row.stock_id)
        if stock is not None:
            stock.status = TICKETS_AVAILABLE
        log_action(user, "distribution_deleted", f"Recalled ticket distribution #{row.id}", event_session_id)
        db.session.delete(row)

    run_atomic(_op)


def cancel_distribution(distribution_id: int, *, user=None, event_session_id: int | None = None) -> TicketDistribution:
    """Like a recall, but the distribution row stays with status Cancelled."""
    def _op():
        row = _locked_distribution(distribution_id, TICKETS_DISTRIBUTED, "Distribution not found or has already been settled.")
        stock = db.session.get(TicketStock, row.stock_id)
        if stock is not None:
            stock.status = TICKETS_AVAILABLE
        row.status = DISTRIBUTION_CANCELLED
        log_action(user, "distribution_cancelled", f"Cancelled ticket distribution #{row.id}", event_session_id)
        return row

    return run_atomic(_op)


# =============================================================================
# SETTLEMENT
# =============================================================================

def quote_settlement(distribution_id: int, returned_start_number) -> dict:
    """Preview for the confirmation step; nothing is written."""
    row = get_distribution(distribution_id)
    if row.status != TICKETS_DISTRIBUTED:
        raise ConflictError("Distribution not found or already settled.")
    returned = _checked_return(row, returned_start_number)
    sold = returned - row.distributed_start_number
    return {
        "distribution": row.to_dict(),
        "returned_start_number": returned,
        "tickets_sold": sold,
        "total_revenue": sold * (row.ride.rate or 0),
    }


def _checked_return(row: TicketDistribution, returned_start_number) -> int:
    if returned_start_number in (None, ""):
        raise ValidationError("returned_start_number is required")
    returned = _int(returned_start_number, "returned_start_number")
    stock = db.session.get(TicketStock, row.stock_id)
    end = stock.end_number if stock is not None else row.distributed_end_number
    if returned < row.distributed_start_number or returned > end + 1:
        raise ValidationError("Invalid returned start number. It is outside the bundle range.")
    return returned


def settle(distribution_id: int, payload: dict, *, user=None, event_session_id: int | None = None) -> TicketDistribution:
    """
    Close a distribution from the first unsold ticket number.

    tickets_sold = returned_start - distributed_start, revenue = sold * ride rate,
    cash = revenue - upi. The bundle becomes Settled, any unsold tail is
    re-stocked as a new Available bundle and the revenue is booked as
    "Ticket Sales" income dated on the distribution day.

    Raises:
        ValidationError: returned start outside [start, end + 1] or bad UPI amount
        ConflictError: distribution is not Distributed
    """
    payload = payload or {}
    upi = parse_amount(payload.get("upi_amount"), field="upi_amount")
    if upi < 0:
        raise ValidationError("upi_amount cannot be negative")

    def _op():
        row = _locked_distribution(distribution_id, TICKETS_DISTRIBUTED, "Distribution not found or already settled.")
        returned = _checked_return(row, payload.get("returned_start_number"))
        stock = lock_for_update(db.session.query(TicketStock).filter_by(id=row.stock_id)).first()
        rate = row.ride.rate or 0
        sold = returned - row.distributed_start_number
        revenue = sold * rate
        if upi > revenue:
            raise ValidationError("UPI amount cannot exceed the calculated revenue.")

        row.returned_start_number = returned
        row.settlement_date = row.distribution_date
        row.tickets_sold = sold
        row.calculated_revenue = revenue
        row.upi_amount = upi
        row.cash_amount = revenue - upi
        row.status = TICKETS_SETTLED
        row.settled_by_user_id = getattr(user, "id", None)

        if stock is not None:
            stock.status = TICKETS_SETTLED
            if returned <= stock.end_number:
                remainder = TicketStock(
                    rate=stock.rate,
                    color=stock.color,
                    start_number=returned,
                    end_number=stock.end_number,
                    status=TICKETS_AVAILABLE,
                    event_session_id=stock.event_session_id,
                )
                db.session.add(remainder)
                db.session.flush()
                row.remainder_stock_id = remainder.id

        db.session.add(AccountingTransaction(
            transaction_type=TRANSACTION_INCOME,
            category=TICKET_SALES_CATEGORY,
            description=f"Settlement for distribution #{row.id}",
            amount=revenue,
            transaction_date=row.settlement_date,
            user_id=getattr(user, "id", None),
            distribution_id=row.id,
            event_session_id=row.event_session_id,
        ))
        log_action(user, "distribution_settled", f"Settled distribution #{row.id}: {sold} tickets, {revenue:.2f}", event_session_id)
        return row

    row = run_atomic(_op)
    current_app.logger.info("Ticket distribution #%s settled (revenue %.2f)", row.id, row.calculated_revenue)
    return row


def unsettle(distribution_id: int, *, user=None, event_session_id: int | None = None) -> TicketDistribution:
    """
    Reverse a settlement: ledger row removed, bundle back to Distributed, the
    re-stocked remainder removed and the settlement fields cleared.

    Raises:
        ConflictError: not Settled, or the remainder bundle was handed out since
    """
    def _op():
        row = _locked_distribution(distribution_id, TICKETS_SETTLED, "Settlement not found or already unsettled.")

        if row.remainder_stock_id:
            remainder = lock_for_update(db.session.query(TicketStock).filter_by(id=row.remainder_stock_id)).first()
            if remainder is not None:
                if remainder.status != TICKETS_AVAILABLE:
                    raise ConflictError("The unsold remainder of this bundle has been distributed; recall it first.")
                row.remainder_stock_id = None
                db.session.flush()
                db.session.delete(remainder)

        db.session.query(AccountingTransaction).filter(
            or_(
                AccountingTransaction.distribution_id == row.id,
                AccountingTransaction.description == f"Settlement for distribution #{row.id}",
            )
        ).delete(synchronize_session=False)

        stock = db.session.get(TicketStock, row.stock_id)
        if stock is not None:
            stock.status = TICKETS_DISTRIBUTED

        row.status = TICKETS_DISTRIBUTED
        for field in (
            "returned_start_number",
            "settlement_date",
            "tickets_sold",
            "calculated_revenue",
            "upi_amount",
            "cash_amount",
            "settled_by_user_id",
            "remainder_stock_id",
        ):
            setattr(row, field, None)
        log_action(user, "distribution_unsettled", f"Reversed settlement of distribution #{row.id}", event_session_id)
        return row

    return run_atomic(_op)


def settlement_overview(event_session_id: int | None, q: str | None = None) -> dict:
    """Unsettled distributions plus the ten most recent settlements."""
    settled = list_distributions(event_session_id, status=TICKETS_SETTLED, q=q, limit=10)
    user_ids = {row.settled_by_user_id for row in settled if row.settled_by_user_id}
    names = dict(db.session.query(User.id, User.username).filter(User.id.in_(user_ids)).all()) if user_ids else {}
    settled_rows = []
    for row in settled:
        data = row.to_dict()
        data["settled_by"] = names.get(row.settled_by_user_id)
        settled_rows.append(data)
    return {
        "distributions": [
            dict(row.to_dict(), rate=row.ride.rate if row.ride else None)
            for row in list_distributions(event_session_id, status=TICKETS_DISTRIBUTED, q=q)
        ],
        "settled_distributions": settled_rows,
    }


# =============================================================================
# REPORTS
# =============================================================================

def daily_sales(event_session_id: int | None, filters: ListFilters) -> dict:
    """Settled sales grouped by settlement date then ride, newest date first."""
    query = (
        db.session.query(
            TicketDistribution.settlement_date,
            Ride.name,
            Ride.rate,
            func.coalesce(func.sum(TicketDistribution.tickets_sold), 0),
            func.coalesce(func.sum(TicketDistribution.calculated_revenue), 0.0),
            func.coalesce(func.sum(TicketDistribution.upi_amount), 0.0),
            func.coalesce(func.sum(TicketDistribution.cash_amount), 0.0),
        )
        .join(Ride, TicketDistribution.ride_id == Ride.id)
        .filter(
            TicketDistribution.status == TICKETS_SETTLED,
            TicketDistribution.event_session_id == event_session_id,
        )
    )
    query = apply_date_range(query, TicketDistribution.settlement_date, filters)
    rows = (
        query.group_by(TicketDistribution.settlement_date, Ride.name, Ride.rate)
        .order_by(TicketDistribution.settlement_date.desc(), Ride.name)
        .all()
    )

    by_date: dict[str, dict] = {}
    grand_total = {"revenue": 0.0, "tickets": 0, "upi": 0.0, "cash": 0.0}
    for settled_on, ride_name, rate, sold, revenue, upi, cash in rows:
        key = settled_on.isoformat()
        day = by_date.setdefault(key, {
            "date": key,
            "rides": [],
            "daily_total_tickets": 0,
            "daily_total_revenue": 0.0,
            "daily_total_upi": 0.0,
            "daily_total_cash": 0.0,
        })
        day["rides"].append({
            "ride_name": ride_name,
            "rate": rate,
            "total_tickets_sold": int(sold or 0),
            "total_revenue": float(revenue or 0),
            "total_upi": float(upi or 0),
            "total_cash": float(cash or 0),
        })
        day["daily_total_tickets"] += int(sold or 0)
        day["daily_total_revenue"] += float(revenue or 0)
        day["daily_total_upi"] += float(upi or 0)
        day["daily_total_cash"] += float(cash or 0)
        grand_total["tickets"] += int(sold or 0)
        grand_total["revenue"] += float(revenue or 0)
        grand_total["upi"] += float(upi or 0)
        grand_total["cash"] += float(cash or 0)

    for day in by_date.values():
        day["rides"].sort(key=lambda r: r["total_revenue"], reverse=True)

    # List, not mapping: JSON responses sort object keys
    return {"sales_by_date": list(by_date.values()), "grand_total": grand_total, "filters": filters.as_dict()}
