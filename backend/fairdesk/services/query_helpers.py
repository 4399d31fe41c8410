# Overview: Shared query plumbing for list/report endpoints (filter parameters, pagination).

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..time_utils import parse_iso_date
from ..validation import ValidationError


@dataclass(frozen=True)
class ListFilters:
    """
    Parameter object for the filter bar shared by report and ledger lists.

    Every filter is optional; services turn the populated ones into bound
    SQLAlchemy criteria, never into SQL text.
    """
    start_date: date | None = None
    end_date: date | None = None
    q: str | None = None
    category: str | None = None
    kind: str | None = None
    page: int = 1

    @classmethod
    def from_args(cls, args) -> "ListFilters":
        try:
            start = parse_iso_date(args.get("start_date"))
            end = parse_iso_date(args.get("end_date"))
        except ValueError:
            raise ValidationError("Dates must be YYYY-MM-DD")
        try:
            page = int(args.get("page") or 1)
        except (TypeError, ValueError):
            page = 1
        q = (args.get("q") or "").strip() or None
        category = (args.get("category") or "").strip() or None
        kind = (args.get("type") or "").strip() or None
        return cls(start_date=start, end_date=end, q=q, category=category, kind=kind, page=max(page, 1))

    def as_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "q": self.q,
            "category": self.category,
            "type": self.kind,
        }


def apply_date_range(query, column, filters: ListFilters):
    if filters.start_date:
        query = query.filter(column >= filters.start_date)
    if filters.end_date:
        query = query.filter(column <= filters.end_date)
    return query


def paginate_meta(page: int, per_page: int, total: int) -> dict:
    total_pages = max((total + per_page - 1) // per_page, 1)
    return {
        "current_page": page,
        "total_pages": total_pages,
        "has_prev_page": page > 1,
        "has_next_page": page < total_pages,
        "total_items": total,
    }


def paginate(query, *, page: int, per_page: int) -> tuple[list, dict]:
    """Return (rows, pagination) for an already ordered query."""
    total = query.order_by(None).count()
    page = max(page or 1, 1)
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    return rows, paginate_meta(page, per_page, total)
