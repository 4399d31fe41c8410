# Overview: Service-layer operations for the income/expenditure ledger.

"""
Accounting Service

WHY: The ledger is the single income/expenditure view of the fair. Staff add
manual rows (expenses, sponsorships); payments and ticket settlements mirror
themselves in automatically.

DESIGN PRINCIPLES:
- Rows whose category ends with " Payment" belong to payment recording and are
  read-only here (edit/delete go through the payment)
- Lists and reports are scoped to one event session
- Category totals always equal the sum of their constituent rows
"""

from __future__ import annotations

from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import AccountingTransaction, User
from ..models.accounting import TRANSACTION_EXPENDITURE, TRANSACTION_INCOME, TRANSACTION_TYPES
from fairdesk.time_utils import parse_iso_date
from ..validation import ConflictError, NotFoundError, ValidationError, parse_amount
from .audit_service import log_action
from .concurrency import run_atomic
from .query_helpers import ListFilters, apply_date_range, paginate_meta


def _validate(payload: dict) -> dict:
    payload = payload or {}
    transaction_type = (payload.get("transaction_type") or "").strip().lower()
    category = (payload.get("category") or "").strip()
    raw_date = payload.get("transaction_date")
    if not transaction_type or not category or payload.get("amount") in (None, "") or not raw_date:
        raise ValidationError("Please fill in all required fields.")
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError("transaction_type must be income or expenditure")
    amount = parse_amount(payload.get("amount"))
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    try:
        transaction_date = parse_iso_date(raw_date)
    except ValueError:
        raise ValidationError("transaction_date must be a YYYY-MM-DD date")
    return {
        "transaction_type": transaction_type,
        "category": category,
        "description": (payload.get("description") or "").strip() or None,
        "amount": amount,
        "transaction_date": transaction_date,
    }


def get_transaction(transaction_id: int) -> AccountingTransaction:
    row = db.session.get(AccountingTransaction, transaction_id)
    if row is None:
        raise NotFoundError("Transaction not found.")
    return row


def _filtered(event_session_id: int | None, filters: ListFilters):
    query = db.session.query(AccountingTransaction).filter(
        AccountingTransaction.event_session_id == event_session_id
    )
    query = apply_date_range(query, AccountingTransaction.transaction_date, filters)
    if filters.kind and filters.kind != "all":
        query = query.filter(AccountingTransaction.transaction_type == filters.kind)
    if filters.q:
        like = f"%{filters.q}%"
        query = query.filter(
            or_(AccountingTransaction.category.ilike(like), AccountingTransaction.description.ilike(like))
        )
    return query


def _income_sum():
    return func.coalesce(
        func.sum(case((AccountingTransaction.transaction_type == TRANSACTION_INCOME, AccountingTransaction.amount), else_=0.0)),
        0.0,
    )


def _expenditure_sum():
    return func.coalesce(
        func.sum(case((AccountingTransaction.transaction_type == TRANSACTION_EXPENDITURE, AccountingTransaction.amount), else_=0.0)),
        0.0,
    )


def list_transactions(event_session_id: int | None, filters: ListFilters, *, per_page: int = 25) -> dict:
    """Newest first, paginated, with the income/expenditure summary of the whole filter."""
    query = _filtered(event_session_id, filters)
    count, income, expenditure = query.with_entities(
        func.count(AccountingTransaction.id), _income_sum(), _expenditure_sum()
    ).one()

    page = max(filters.page, 1)
    rows = (
        query.order_by(AccountingTransaction.transaction_date.desc(), AccountingTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    income, expenditure = float(income or 0), float(expenditure or 0)
    return {
        "transactions": [row.to_dict() for row in rows],
        "pagination": paginate_meta(page, per_page, int(count or 0)),
        "summary": {
            "total_income": income,
            "total_expenditure": expenditure,
            "balance": income - expenditure,
        },
        "filters": filters.as_dict(),
    }


def add_transaction(payload: dict, *, user=None, event_session_id: int | None = None) -> AccountingTransaction:
    patch = _validate(payload)

    def _op():
        row = AccountingTransaction(user_id=getattr(user, "id", None), event_session_id=event_session_id, **patch)
        db.session.add(row)
        db.session.flush()
        log_action(user, "accounting_added", f"Added {row.transaction_type} '{row.category}' of {row.amount:.2f}", event_session_id)
        return row

    return run_atomic(_op)


def update_transaction(transaction_id: int, payload: dict, *, user=None, event_session_id: int | None = None) -> AccountingTransaction:
    """
    Raises:
        ConflictError: the row is an automated payment mirror
    """
    patch = _validate(payload)

    def _op():
        row = get_transaction(transaction_id)
        if row.is_automated:
            raise ConflictError("Automated payment transactions cannot be edited.")
        for key, value in patch.items():
            setattr(row, key, value)
        log_action(user, "accounting_updated", f"Updated transaction #{row.id}", event_session_id)
        return row

    return run_atomic(_op)


def delete_transaction(transaction_id: int, *, user=None, event_session_id: int | None = None) -> None:
    def _op():
        row = get_transaction(transaction_id)
        if row.is_automated:
            raise ConflictError("Automated payment transactions cannot be deleted.")
        log_action(user, "accounting_deleted", f"Deleted transaction #{row.id} ({row.category})", event_session_id)
        db.session.delete(row)

    run_atomic(_op)


# =============================================================================
# REPORTS / CSV
# =============================================================================

def category_report(event_session_id: int | None, filters: ListFilters) -> list[dict]:
    """Income, expenditure and net per category, ordered by category."""
    query = db.session.query(AccountingTransaction).filter(
        AccountingTransaction.event_session_id == event_session_id
    )
    query = apply_date_range(query, AccountingTransaction.transaction_date, filters)
    rows = (
        query.with_entities(AccountingTransaction.category, _income_sum(), _expenditure_sum())
        .group_by(AccountingTransaction.category)
        .order_by(AccountingTransaction.category)
        .all()
    )
    return [
        {
            "category": category,
            "income": float(income or 0),
            "expenditure": float(expenditure or 0),
            "net_change": float(income or 0) - float(expenditure or 0),
        }
        for category, income, expenditure in rows
    ]


CATEGORY_CSV_HEADERS = ["Category", "Total Income", "Total Expenditure", "Net Change"]
TRANSACTION_CSV_HEADERS = ["Date", "Type", "Category", "Description", "Amount", "Added By"]


def category_report_csv(event_session_id: int | None, filters: ListFilters) -> tuple[list[str], list[list]]:
    rows = [
        [r["category"], f"{r['income']:.2f}", f"{r['expenditure']:.2f}", f"{r['net_change']:.2f}"]
        for r in category_report(event_session_id, filters)
    ]
    return CATEGORY_CSV_HEADERS, rows


def transactions_csv(event_session_id: int | None, filters: ListFilters) -> tuple[list[str], list[list]]:
    rows = (
        _filtered(event_session_id, filters)
        .outerjoin(User, AccountingTransaction.user_id == User.id)
        .with_entities(AccountingTransaction, User.username)
        .order_by(AccountingTransaction.transaction_date.desc(), AccountingTransaction.id.desc())
        .all()
    )
    return TRANSACTION_CSV_HEADERS, [
        [
            row.transaction_date.isoformat(),
            row.transaction_type,
            row.category,
            row.description or "",
            f"{row.amount:.2f}",
            username or "N/A",
        ]
        for row, username in rows
    ]
