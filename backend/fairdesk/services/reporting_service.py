# Overview: Read-only report queries for the viewed event session (dues, payments, exhibitors, sales).

"""
Reporting Service

WHY: Reports never trust stored running totals. The due list rebuilds every
booking's charged/paid/due per category from the raw charge and payment tables;
that computation is the canonical balance (see check_dues for the comparison
against bookings.due_amount).

Charge sources per booking:
- rent      rent_amount - discount (advance counts as rent paid)
- electric  sum of electric_bills.total_amount
- material  sum of material_issues.total_payable for the booking's client in the
            booking's session
- shed      sum of shed_allocations.rent (charged at allocation) + sum of shed_bills.amount
"""

from __future__ import annotations

from sqlalchemy import and_, func, or_

from ..extensions import db
from ..models import (
    Booking,
    BookingStaff,
    ElectricBill,
    MaterialIssueRecord,
    Payment,
    Ride,
    ShedAllocation,
    ShedBill,
    Space,
    TicketDistribution,
)
from ..models.billing import PAYMENT_BUCKETS
from ..models.bookings import BOOKING_ACTIVE
from ..models.ticketing import TICKETS_SETTLED
from .query_helpers import ListFilters, apply_date_range, paginate_meta


# Dues at or below this are rounding noise
DUE_THRESHOLD = 0.01

DUE_CATEGORIES = ("all",) + PAYMENT_BUCKETS


# =============================================================================
# DUE LIST
# =============================================================================

def _sum(column):
    return func.coalesce(func.sum(column), 0.0)


def compute_dues(
    event_session_id: int | None,
    q: str | None = None,
    *,
    booking_ids: list[int] | None = None,
    active_only: bool = True,
) -> list[dict]:
    """
    Per-booking charged/paid/due for each category, ordered by exhibitor name.

    Each row carries `categories` ({bucket: {charged, paid, due}}), the totals and
    the stored due_amount for comparison.
    """
    paid = (
        db.session.query(
            Payment.booking_id.label("booking_id"),
            _sum(Payment.rent_paid).label("rent"),
            _sum(Payment.electric_paid).label("electric"),
            _sum(Payment.material_paid).label("material"),
            _sum(Payment.shed_paid).label("shed"),
        )
        .group_by(Payment.booking_id)
        .subquery()
    )
    electric = (
        db.session.query(ElectricBill.booking_id.label("booking_id"), _sum(ElectricBill.total_amount).label("total"))
        .group_by(ElectricBill.booking_id)
        .subquery()
    )
    material = (
        db.session.query(
            MaterialIssueRecord.client_id.label("client_id"),
            MaterialIssueRecord.event_session_id.label("event_session_id"),
            _sum(MaterialIssueRecord.total_payable).label("total"),
        )
        .group_by(MaterialIssueRecord.client_id, MaterialIssueRecord.event_session_id)
        .subquery()
    )
    shed_rent = (
        db.session.query(ShedAllocation.booking_id.label("booking_id"), _sum(ShedAllocation.rent).label("total"))
        .group_by(ShedAllocation.booking_id)
        .subquery()
    )
    shed_bills = (
        db.session.query(ShedBill.booking_id.label("booking_id"), _sum(ShedBill.amount).label("total"))
        .group_by(ShedBill.booking_id)
        .subquery()
    )

    query = (
        db.session.query(
            Booking,
            Space.name.label("space_name"),
            func.coalesce(paid.c.rent, 0.0).label("rent_paid"),
            func.coalesce(paid.c.electric, 0.0).label("electric_paid"),
            func.coalesce(paid.c.material, 0.0).label("material_paid"),
            func.coalesce(paid.c.shed, 0.0).label("shed_paid"),
            func.coalesce(electric.c.total, 0.0).label("electric_charged"),
            func.coalesce(material.c.total, 0.0).label("material_charged"),
            func.coalesce(shed_rent.c.total, 0.0).label("shed_rent"),
            func.coalesce(shed_bills.c.total, 0.0).label("shed_billed"),
        )
        .join(Space, Booking.space_id == Space.id)
        .outerjoin(paid, paid.c.booking_id == Booking.id)
        .outerjoin(electric, electric.c.booking_id == Booking.id)
        .outerjoin(
            material,
            and_(
                material.c.client_id == Booking.client_id,
                material.c.event_session_id == Booking.event_session_id,
            ),
        )
        .outerjoin(shed_rent, shed_rent.c.booking_id == Booking.id)
        .outerjoin(shed_bills, shed_bills.c.booking_id == Booking.id)
        .filter(Booking.event_session_id == event_session_id)
    )
    if active_only:
        query = query.filter(Booking.booking_status == BOOKING_ACTIVE)
    if booking_ids is not None:
        query = query.filter(Booking.id.in_(booking_ids))
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Booking.exhibitor_name.ilike(like), Space.name.ilike(like)))

    rows = []
    for row in query.order_by(Booking.exhibitor_name, Booking.id).all():
        booking = row.Booking
        charged = {
            "rent": (booking.rent_amount or 0) - (booking.discount or 0),
            "electric": float(row.electric_charged or 0),
            "material": float(row.material_charged or 0),
            "shed": float(row.shed_rent or 0) + float(row.shed_billed or 0),
        }
        paid_by_bucket = {
            "rent": float(row.rent_paid or 0) + (booking.advance_amount or 0),
            "electric": float(row.electric_paid or 0),
            "material": float(row.material_paid or 0),
            "shed": float(row.shed_paid or 0),
        }
        categories = {
            bucket: {
                "charged": charged[bucket],
                "paid": paid_by_bucket[bucket],
                "due": charged[bucket] - paid_by_bucket[bucket],
            }
            for bucket in PAYMENT_BUCKETS
        }
        total_charged = sum(charged.values())
        total_paid = sum(paid_by_bucket.values())
        rows.append({
            "booking_id": booking.id,
            "client_id": booking.client_id,
            "exhibitor_name": booking.exhibitor_name,
            "facia_name": booking.facia_name,
            "space_name": row.space_name,
            "contact_number": booking.contact_number,
            "categories": categories,
            "total_charged": total_charged,
            "total_paid": total_paid,
            "total_due": total_charged - total_paid,
            "stored_due_amount": booking.due_amount or 0.0,
        })
    return rows


def _category_due(row: dict, category: str) -> float:
    if category == "all":
        return row["total_due"]
    return row["categories"][category]["due"]


def bucket_dues(rows: list[dict]) -> dict[str, list[dict]]:
    """Split rows into the overlapping all/rent/electric/material/shed views."""
    return {
        category: [row for row in rows if _category_due(row, category) > DUE_THRESHOLD]
        for category in DUE_CATEGORIES
    }


def due_list(event_session_id: int | None, q: str | None = None) -> dict[str, list[dict]]:
    return bucket_dues(compute_dues(event_session_id, q))


_DUE_CSV_COLUMNS = {
    "all": ("Total Amount", "Paid Amount", "Balance Due"),
    "rent": ("Total Rent", "Rent Paid", "Rent Due"),
    "electric": ("Total Electric", "Electric Paid", "Electric Due"),
    "material": ("Total Material", "Material Paid", "Material Due"),
    "shed": ("Total Shed", "Shed Paid", "Shed Due"),
}


def due_list_csv(event_session_id: int | None, q: str | None = None, category: str = "all") -> tuple[list[str], list[list]]:
    """Headers and rows for one due-list view; unknown categories fall back to all."""
    if category not in DUE_CATEGORIES:
        category = "all"
    headers = ["Exhibitor Name", "Facia Name", "Space", *_DUE_CSV_COLUMNS[category]]
    result = []
    for row in due_list(event_session_id, q)[category]:
        if category == "all":
            money = [row["total_charged"], row["total_paid"], row["total_due"]]
        else:
            bucket = row["categories"][category]
            money = [bucket["charged"], bucket["paid"], bucket["due"]]
        result.append([row["exhibitor_name"], row["facia_name"], row["space_name"], *[round(v, 2) for v in money]])
    return headers, result


def check_dues(event_session_id: int | None) -> list[dict]:
    """Bookings whose stored due_amount differs from the recomputed balance."""
    mismatches = []
    for row in compute_dues(event_session_id, active_only=False):
        difference = row["stored_due_amount"] - row["total_due"]
        if abs(difference) > DUE_THRESHOLD:
            mismatches.append({
                "booking_id": row["booking_id"],
                "exhibitor_name": row["exhibitor_name"],
                "stored_due_amount": row["stored_due_amount"],
                "computed_due": row["total_due"],
                "difference": difference,
            })
    return mismatches


# =============================================================================
# PAYMENTS RECEIVED
# =============================================================================

_PAYMENT_CATEGORY_COLUMNS = {
    "rent": Payment.rent_paid,
    "electric": Payment.electric_paid,
    "material": Payment.material_paid,
    "shed": Payment.shed_paid,
}


def _payments_query(event_session_id: int | None, filters: ListFilters):
    query = (
        db.session.query(Payment, Booking.exhibitor_name, Space.name.label("space_name"))
        .join(Booking, Payment.booking_id == Booking.id)
        .join(Space, Booking.space_id == Space.id)
        .filter(Payment.event_session_id == event_session_id)
    )
    query = apply_date_range(query, Payment.payment_date, filters)
    if filters.q:
        like = f"%{filters.q}%"
        query = query.filter(
            or_(Booking.exhibitor_name.ilike(like), Space.name.ilike(like), Payment.receipt_number.ilike(like))
        )
    column = _PAYMENT_CATEGORY_COLUMNS.get((filters.category or "").lower())
    if column is not None:
        query = query.filter(column > 0)
    return query


def _payment_row(payment: Payment, exhibitor_name: str, space_name: str) -> dict:
    return {
        "id": payment.id,
        "payment_date": payment.to_dict()["payment_date"],
        "receipt_number": payment.receipt_number,
        "exhibitor_name": exhibitor_name,
        "space_name": space_name,
        "payment_category": (payment.payment_type or "unknown").capitalize(),
        "payment_mode": payment.payment_mode,
        "cash_paid": payment.cash_paid or 0.0,
        "upi_paid": payment.upi_paid or 0.0,
        "total_paid": (payment.cash_paid or 0.0) + (payment.upi_paid or 0.0),
    }


def payments_received(event_session_id: int | None, filters: ListFilters, *, per_page: int = 25) -> dict:
    query = _payments_query(event_session_id, filters)
    totals = query.with_entities(
        func.count(Payment.id),
        _sum(Payment.cash_paid),
        _sum(Payment.upi_paid),
    ).order_by(None).one()
    count, total_cash, total_upi = totals

    page = max(filters.page, 1)
    rows = (
        query.order_by(Payment.payment_date.desc(), Payment.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "payments": [_payment_row(p, exhibitor, space) for p, exhibitor, space in rows],
        "pagination": paginate_meta(page, per_page, int(count or 0)),
        "summary": {
            "total_cash": float(total_cash or 0),
            "total_upi": float(total_upi or 0),
            "total_paid": float(total_cash or 0) + float(total_upi or 0),
        },
        "filters": filters.as_dict(),
    }


PAYMENT_CSV_HEADERS = ["Date", "Receipt No", "Exhibitor Name", "Space", "Category", "Mode", "Cash", "UPI", "Total"]


def payments_received_csv(event_session_id: int | None, filters: ListFilters) -> tuple[list[str], list[list]]:
    rows = _payments_query(event_session_id, filters).order_by(Payment.payment_date.desc(), Payment.id.desc()).all()
    result = []
    for payment, exhibitor, space in rows:
        data = _payment_row(payment, exhibitor, space)
        result.append([
            data["payment_date"],
            data["receipt_number"],
            data["exhibitor_name"],
            data["space_name"],
            data["payment_category"],
            data["payment_mode"],
            data["cash_paid"],
            data["upi_paid"],
            data["total_paid"],
        ])
    return PAYMENT_CSV_HEADERS, result


# =============================================================================
# EXHIBITORS / BOOKING SUMMARY
# =============================================================================

def exhibitors(event_session_id: int | None, q: str | None = None) -> list[dict]:
    query = (
        db.session.query(Booking, Space)
        .join(Space, Booking.space_id == Space.id)
        .filter(Booking.event_session_id == event_session_id)
    )
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Booking.exhibitor_name.ilike(like),
                Booking.facia_name.ilike(like),
                Space.name.ilike(like),
                Booking.product_category.ilike(like),
            )
        )
    return [
        {
            "booking_id": booking.id,
            "exhibitor_name": booking.exhibitor_name,
            "facia_name": booking.facia_name,
            "space_name": space.name,
            "space_type": space.type,
            "contact_person": booking.contact_person,
            "contact_number": booking.contact_number,
            "product_category": booking.product_category,
        }
        for booking, space in query.order_by(Booking.exhibitor_name, Booking.id).all()
    ]


EXHIBITOR_CSV_HEADERS = ["Exhibitor Name", "Facia Name", "Space", "Type", "Contact Person", "Contact Number", "Product Category"]


def exhibitors_csv(event_session_id: int | None, q: str | None = None) -> tuple[list[str], list[list]]:
    keys = ("exhibitor_name", "facia_name", "space_name", "space_type", "contact_person", "contact_number", "product_category")
    return EXHIBITOR_CSV_HEADERS, [[row[k] for k in keys] for row in exhibitors(event_session_id, q)]


def booking_summary(event_session_id: int | None, q: str | None = None) -> list[dict]:
    query = (
        db.session.query(Booking, Space)
        .join(Space, Booking.space_id == Space.id)
        .filter(Booking.event_session_id == event_session_id)
    )
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(Booking.exhibitor_name.ilike(like), Space.name.ilike(like), Booking.facia_name.ilike(like))
        )
    return [
        {
            "id": booking.id,
            "exhibitor_name": booking.exhibitor_name,
            "facia_name": booking.facia_name,
            "space_name": space.name,
            "space_type": space.type,
            "rent_amount": booking.rent_amount or 0.0,
            "discount": booking.discount or 0.0,
            "advance_amount": booking.advance_amount or 0.0,
            "due_amount": booking.due_amount or 0.0,
            "form_submitted": bool(booking.form_submitted),
        }
        for booking, space in query.order_by(Space.type, Space.name).all()
    ]


BOOKING_SUMMARY_CSV_HEADERS = [
    "Exhibitor Name", "Facia Name", "Space", "Type", "Rent", "Discount", "Advance", "Due", "Form Submitted",
]


def booking_summary_csv(event_session_id: int | None, q: str | None = None) -> tuple[list[str], list[list]]:
    rows = [
        [
            row["exhibitor_name"],
            row["facia_name"] or "",
            row["space_name"],
            row["space_type"],
            row["rent_amount"],
            row["discount"],
            row["advance_amount"],
            row["due_amount"],
            "Yes" if row["form_submitted"] else "No",
        ]
        for row in booking_summary(event_session_id, q)
    ]
    return BOOKING_SUMMARY_CSV_HEADERS, rows


# =============================================================================
# TICKET SALES BY STAFF
# =============================================================================

def _settled(event_session_id: int | None, filters: ListFilters):
    query = db.session.query(TicketDistribution).filter(
        TicketDistribution.status == TICKETS_SETTLED,
        TicketDistribution.event_session_id == event_session_id,
    )
    return apply_date_range(query, TicketDistribution.settlement_date, filters)


def sales_by_staff(event_session_id: int | None, filters: ListFilters) -> list[dict]:
    rows = (
        _settled(event_session_id, filters)
        .join(BookingStaff, TicketDistribution.staff_id == BookingStaff.id)
        .with_entities(
            BookingStaff.id,
            BookingStaff.name,
            func.coalesce(func.sum(TicketDistribution.tickets_sold), 0),
            _sum(TicketDistribution.calculated_revenue),
            _sum(TicketDistribution.upi_amount),
            _sum(TicketDistribution.cash_amount),
        )
        .group_by(BookingStaff.id, BookingStaff.name)
        .all()
    )
    result = [
        {
            "staff_id": staff_id,
            "staff_name": name,
            "total_tickets_sold": int(sold or 0),
            "total_revenue": float(revenue or 0),
            "total_upi": float(upi or 0),
            "total_cash": float(cash or 0),
        }
        for staff_id, name, sold, revenue, upi, cash in rows
    ]
    return sorted(result, key=lambda r: r["total_revenue"], reverse=True)


def staff_ride_breakdown(staff_id: int, event_session_id: int | None, filters: ListFilters) -> list[dict]:
    rows = (
        _settled(event_session_id, filters)
        .filter(TicketDistribution.staff_id == staff_id)
        .join(Ride, TicketDistribution.ride_id == Ride.id)
        .with_entities(
            Ride.id,
            Ride.name,
            Ride.rate,
            func.coalesce(func.sum(TicketDistribution.tickets_sold), 0),
            _sum(TicketDistribution.calculated_revenue),
        )
        .group_by(Ride.id, Ride.name, Ride.rate)
        .all()
    )
    result = [
        {
            "ride_id": ride_id,
            "ride_name": name,
            "rate": rate,
            "total_tickets_sold": int(sold or 0),
            "total_revenue": float(revenue or 0),
        }
        for ride_id, name, rate, sold, revenue in rows
    ]
    return sorted(result, key=lambda r: r["total_revenue"], reverse=True)


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_summary(event_session_id: int | None) -> dict:
    """Space counts and per-category session financials for the dashboard."""
    by_type = dict(
        db.session.query(Space.type, func.count(Space.id)).group_by(Space.type).all()
    )
    total_spaces = sum(by_type.values())
    booked = (
        db.session.query(func.count(func.distinct(Booking.space_id)))
        .filter(Booking.event_session_id == event_session_id, Booking.booking_status == BOOKING_ACTIVE)
        .scalar()
    ) or 0

    financials = {bucket: {"charged": 0.0, "paid": 0.0, "due": 0.0} for bucket in PAYMENT_BUCKETS}
    for row in compute_dues(event_session_id, active_only=False):
        for bucket, values in row["categories"].items():
            for key in ("charged", "paid", "due"):
                financials[bucket][key] += values[key]
    financials["total"] = {
        key: sum(financials[bucket][key] for bucket in PAYMENT_BUCKETS) for key in ("charged", "paid", "due")
    }

    return {
        "space_counts": {
            "by_type": by_type,
            "total": total_spaces,
            "booked": int(booked),
            "available": total_spaces - int(booked),
        },
        "financials": financials,
    }
