# Overview: Service-layer operations for material stock; QR-tagged items, issue/return billing, issue records.

"""
Material Stock & Issuance Service

WHY: Furniture (tables, chairs, plywood, rods) is handed to exhibitors by scanning
the item's QR code. Each exhibitor gets a free quota; anything beyond it is billed
and folded into both the day's consolidated issue record and the booking's due.

DESIGN PRINCIPLES:
- Pricing and applying are separate steps: price_issue() reads the quota and
  returns an IssueQuote, apply_issue() performs every write in one unit of work
- The quota check is a plain read; two quotes taken before either is applied
  both see the same issued count (no lock on the client's quota)
- Returning an item strips its asset number from the record but keeps the charge
- QR files live outside the transaction (write before insert, remove after delete)
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Booking,
    Client,
    MaterialDefaults,
    MaterialHistory,
    MaterialIssueRecord,
    MaterialStockItem,
    Space,
)
from ..models.materials import STOCK_AVAILABLE, STOCK_DAMAGED, STOCK_ISSUED
from fairdesk.time_utils import today
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from .audit_service import log_action
from .booking_service import get_active_booking_for_client
from .concurrency import lock_for_update, run_atomic
from .qr_service import remove_qr, write_qr


# =============================================================================
# PRICING RULES (CONSTANTS)
# =============================================================================

KIND_TABLE = "table"
KIND_CHAIR = "chair"
KIND_PLYWOOD = "plywood"
KIND_ROD = "rod"

BILLABLE_KINDS = (KIND_TABLE, KIND_CHAIR)

UNIT_PRICES = {
    KIND_TABLE: 600.0,
    KIND_CHAIR: 100.0,
}

PAVILION_FREE_TABLES = 2
STANDARD_FREE_TABLES = 1
FREE_CHAIRS = 2

LOCATION_CODE_LENGTH = 3
SEQUENCE_WIDTH = 3

MAX_BATCH_QUANTITY = 1000


def item_kind(name: str | None) -> str | None:
    """Classify a stock item by name: table, chair, plywood, rod or None."""
    normalized = (name or "").strip().lower()
    if normalized in BILLABLE_KINDS:
        return normalized
    if KIND_PLYWOOD in normalized:
        return KIND_PLYWOOD
    if KIND_ROD in normalized:
        return KIND_ROD
    return None


def free_limit(kind: str, space_type: str | None) -> int:
    if kind == KIND_TABLE:
        is_pavilion = (space_type or "").strip().lower() == "pavilion"
        return PAVILION_FREE_TABLES if is_pavilion else STANDARD_FREE_TABLES
    if kind == KIND_CHAIR:
        return FREE_CHAIRS
    return 0


@dataclass(frozen=True)
class IssueQuote:
    """Outcome of the quota check for one scan, before anything is written."""
    item_id: int
    unique_id: str
    item_name: str
    kind: str | None
    client_id: int
    booking_id: int | None
    already_issued: int
    free_limit: int
    billable: bool
    unit_cost: float


# =============================================================================
# STOCK LOOKUPS
# =============================================================================

def get_item(item_id: int) -> MaterialStockItem:
    item = db.session.get(MaterialStockItem, item_id)
    if item is None:
        raise NotFoundError("Material not found")
    return item


def scanned_id(value) -> str:
    """Scanners may post the QR payload as a JSON number; ids are always text."""
    return "" if value is None else str(value).strip()


def get_item_by_unique_id(unique_id) -> MaterialStockItem:
    unique_id = scanned_id(unique_id)
    item = db.session.query(MaterialStockItem).filter_by(unique_id=unique_id).first()
    if item is None:
        raise NotFoundError(f"Material with ID {unique_id} not found.")
    return item


def list_stock(
    event_session_id: int | None,
    *,
    status: str | None = None,
    name: str | None = None,
    q: str | None = None,
) -> list[MaterialStockItem]:
    query = db.session.query(MaterialStockItem).filter(MaterialStockItem.event_session_id == event_session_id)
    if status:
        query = query.filter(MaterialStockItem.status == status)
    if name:
        query = query.filter(func.lower(MaterialStockItem.name) == name.strip().lower())
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            db.or_(
                MaterialStockItem.name.ilike(like),
                MaterialStockItem.unique_id.ilike(like),
                MaterialStockItem.location.ilike(like),
            )
        )
    return query.order_by(MaterialStockItem.created_at.desc(), MaterialStockItem.id.desc()).all()


def stock_summary(event_session_id: int | None) -> list[dict]:
    """Per item name: counts by status."""
    rows = (
        db.session.query(MaterialStockItem.name, MaterialStockItem.status, func.count(MaterialStockItem.id))
        .filter(MaterialStockItem.event_session_id == event_session_id)
        .group_by(MaterialStockItem.name, MaterialStockItem.status)
        .order_by(MaterialStockItem.name)
        .all()
    )
    summary: dict[str, dict] = {}
    for name, status, count in rows:
        entry = summary.setdefault(name, {"name": name, STOCK_AVAILABLE: 0, STOCK_ISSUED: 0, STOCK_DAMAGED: 0})
        entry[status] = entry.get(status, 0) + count
    return list(summary.values())


def items_issued_to(client_id: int) -> tuple[Client, list[MaterialStockItem]]:
    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFoundError("Client not found.")
    items = (
        db.session.query(MaterialStockItem)
        .filter(MaterialStockItem.issued_to_client_id == client_id, MaterialStockItem.status == STOCK_ISSUED)
        .order_by(MaterialStockItem.name, MaterialStockItem.unique_id)
        .all()
    )
    return client, items


def issue_clients(event_session_id: int | None) -> list[dict]:
    """Clients with an active booking in the session, for the scan page picker."""
    rows = (
        db.session.query(Client.id, Client.name, Space.name, Booking.facia_name)
        .join(Booking, Booking.client_id == Client.id)
        .join(Space, Booking.space_id == Space.id)
        .filter(Booking.booking_status == "active", Booking.event_session_id == event_session_id)
        .order_by(Client.name)
        .all()
    )
    return [
        {"id": cid, "name": name, "space_name": space_name, "facia_name": facia}
        for cid, name, space_name, facia in rows
    ]


# =============================================================================
# STOCK CREATION
# =============================================================================

def location_code(location: str | None) -> str:
    """Three upper-case alphanumerics from the location, padded with X."""
    cleaned = re.sub(r"[^A-Za-z0-9]", "", location or "").upper()
    return cleaned[:LOCATION_CODE_LENGTH].ljust(LOCATION_CODE_LENGTH, "X")


def unique_id_prefix(name: str, location: str | None) -> str:
    letters = re.sub(r"[^A-Za-z0-9]", "", name or "")
    if not letters:
        raise ValidationError("Material Name is required.")
    return letters[0].upper() + location_code(location)


def next_sequence(prefix: str) -> int:
    """Highest numeric suffix already used under prefix, plus one."""
    existing = (
        db.session.query(MaterialStockItem.unique_id)
        .filter(MaterialStockItem.unique_id.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (unique_id,) in existing:
        suffix = unique_id[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def format_unique_id(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def create_stock(
    name: str,
    *,
    quantity=1,
    description: str | None = None,
    location: str | None = None,
    user=None,
    event_session_id: int | None = None,
) -> list[MaterialStockItem]:
    """
    Add quantity items named name, each with its own sequential unique id and QR file.

    Every item commits on its own: a failure part-way leaves the earlier items in
    place.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Material Name is required.")
    try:
        quantity = int(quantity) if quantity not in (None, "") else 1
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer")
    if quantity < 1 or quantity > MAX_BATCH_QUANTITY:
        raise ValidationError(f"quantity must be between 1 and {MAX_BATCH_QUANTITY}")

    description = (description or "").strip() or None
    location = (location or "").strip() or None
    prefix = unique_id_prefix(name, location)

    created = []
    for _ in range(quantity):
        unique_id = format_unique_id(prefix, next_sequence(prefix))
        qr_path = write_qr(unique_id)

        def _op(unique_id=unique_id, qr_path=qr_path):
            item = MaterialStockItem(
                name=name,
                description=description,
                unique_id=unique_id,
                qr_code_path=qr_path,
                location=location,
                status=STOCK_AVAILABLE,
                event_session_id=event_session_id,
            )
            db.session.add(item)
            db.session.flush()
            _append_history(item, "created", None, STOCK_AVAILABLE, user=user)
            return item

        created.append(run_atomic(_op))

    def _log():
        log_action(user, "create_material_stock", f"Added {len(created)} x {name} to stock.", event_session_id)

    run_atomic(_log)
    current_app.logger.info("Material stock created: %s x %s (prefix %s)", len(created), name, prefix)
    return created


def import_stock_csv(text: str, *, user=None, event_session_id: int | None = None) -> int:
    """
    Bulk add from CSV with columns name, description, quantity, location.

    Rows without a name are skipped; quantity defaults to 1. Returns the number of
    items created.
    """
    if not text or not text.strip():
        raise ValidationError("No CSV file uploaded.")
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or "name" not in [f.strip().lower() for f in reader.fieldnames]:
        raise ValidationError("CSV must have a 'name' column")

    added = 0
    for row in reader:
        row = {(k or "").strip().lower(): (v or "").strip() for k, v in row.items() if k}
        if not row.get("name"):
            continue
        try:
            quantity = int(row.get("quantity") or 1)
        except ValueError:
            quantity = 1
        items = create_stock(
            row["name"],
            quantity=max(quantity, 1),
            description=row.get("description"),
            location=row.get("location"),
            user=user,
            event_session_id=event_session_id,
        )
        added += len(items)

    def _log():
        log_action(user, "bulk_create_material_stock", f"Bulk added {added} material items from CSV.", event_session_id)

    run_atomic(_log)
    return added


def delete_stock(item_id: int, *, user=None, event_session_id: int | None = None, write_off: bool = False) -> None:
    """
    Remove a stock item with its history and QR file.

    Issued items cannot be removed; write-off is reserved for Damaged items.
    """
    def _op():
        item = get_item(item_id)
        if item.status == STOCK_ISSUED:
            raise ConflictError(f'Material "{item.name}" is currently issued and cannot be deleted.')
        if write_off and item.status != STOCK_DAMAGED:
            raise ConflictError(f'Only damaged items can be written off; "{item.unique_id}" is {item.status}.')
        action = "write_off_material_stock" if write_off else "delete_material_stock"
        log_action(user, action, f"Removed material stock item #{item.id} ({item.unique_id})", event_session_id)
        db.session.delete(item)
        return item.unique_id

    unique_id = run_atomic(_op)
    remove_qr(unique_id)


# =============================================================================
# ISSUE / RETURN
# =============================================================================

def _append_history(item: MaterialStockItem, action: str, from_status, to_status, *, user=None, client_id=None, note=None):
    entry = MaterialHistory(
        stock_item_id=item.id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        client_id=client_id,
        user_id=getattr(user, "id", None),
        note=note,
    )
    db.session.add(entry)
    return entry


def _issued_count(client_id: int, name: str) -> int:
    return (
        db.session.query(func.count(MaterialStockItem.id))
        .filter(
            MaterialStockItem.issued_to_client_id == client_id,
            MaterialStockItem.status == STOCK_ISSUED,
            func.lower(MaterialStockItem.name) == name.strip().lower(),
        )
        .scalar()
        or 0
    )


def price_issue(unique_id, client_id, *, event_session_id: int | None) -> IssueQuote:
    """
    Quota check for issuing unique_id to client_id; reads only.

    Raises:
        ValidationError: unique id or client id missing
        NotFoundError: no such item or client
        ConflictError: item is not Available
    """
    unique_id = scanned_id(unique_id)
    if not unique_id or not client_id:
        raise ValidationError("Unique ID and Client ID are required.")
    try:
        client_id = int(client_id)
    except (TypeError, ValueError):
        raise ValidationError("Client ID must be an integer")

    item = get_item_by_unique_id(unique_id)
    if item.status != STOCK_AVAILABLE:
        raise ConflictError(f'Material "{item.name}" is already {item.status}.')
    if db.session.get(Client, client_id) is None:
        raise NotFoundError("Client not found.")

    booking = get_active_booking_for_client(client_id, event_session_id)
    kind = item_kind(item.name)
    already = 0
    limit = 0
    billable = False
    if kind in BILLABLE_KINDS:
        space_type = booking.space.type if booking and booking.space else None
        limit = free_limit(kind, space_type)
        already = _issued_count(client_id, item.name)
        billable = already + 1 > limit

    return IssueQuote(
        item_id=item.id,
        unique_id=item.unique_id,
        item_name=item.name,
        kind=kind,
        client_id=client_id,
        booking_id=booking.id if booking else None,
        already_issued=already,
        free_limit=limit,
        billable=billable,
        unit_cost=UNIT_PRICES[kind] if billable else 0.0,
    )


def _todays_record(client_id: int, booking: Booking | None, event_session_id: int | None) -> MaterialIssueRecord:
    issue_date = today()
    record = (
        db.session.query(MaterialIssueRecord)
        .filter(
            MaterialIssueRecord.client_id == client_id,
            MaterialIssueRecord.issue_date == issue_date,
            MaterialIssueRecord.event_session_id == event_session_id,
        )
        .order_by(MaterialIssueRecord.id.asc())
        .first()
    )
    if record is None:
        record = MaterialIssueRecord(
            client_id=client_id,
            event_session_id=event_session_id,
            issue_date=issue_date,
            stall_number=booking.space.name if booking and booking.space else None,
            plywood_free=0,
            table_free=0,
            chair_free=0,
            rod_free=0,
            plywood_paid=0,
            table_paid=0,
            chair_paid=0,
            total_payable=0.0,
            advance_paid=0.0,
            balance_due=0.0,
        )
        db.session.add(record)
        db.session.flush()
    return record


def split_numbers(numbers: str | None) -> list[str]:
    return [token.strip() for token in (numbers or "").split(",") if token.strip()]


def apply_issue(quote: IssueQuote, *, user=None, event_session_id: int | None = None) -> MaterialStockItem:
    """
    Perform every write of an issue inside the caller's unit of work.

    The item's status is re-checked under lock; the quota is not.
    """
    item = lock_for_update(db.session.query(MaterialStockItem).filter_by(id=quote.item_id)).first()
    if item is None:
        raise NotFoundError(f"Material with ID {quote.unique_id} not found.")
    if item.status != STOCK_AVAILABLE:
        raise ConflictError(f'Material "{item.name}" is already {item.status}.')

    item.status = STOCK_ISSUED
    item.issued_to_client_id = quote.client_id
    _append_history(
        item,
        "issued",
        STOCK_AVAILABLE,
        STOCK_ISSUED,
        user=user,
        client_id=quote.client_id,
        note=f"billed {quote.unit_cost:.2f}" if quote.billable else "free quota",
    )

    booking = db.session.get(Booking, quote.booking_id) if quote.booking_id else None

    if quote.kind is not None:
        record = _todays_record(quote.client_id, booking, event_session_id)
        counter = f"{quote.kind}_{'paid' if quote.billable else 'free'}"
        if hasattr(record, counter):
            setattr(record, counter, (getattr(record, counter) or 0) + 1)

        if quote.kind in BILLABLE_KINDS:
            field = f"{quote.kind}_numbers"
            tokens = split_numbers(getattr(record, field))
            tokens.append(item.asset_number)
            setattr(record, field, ",".join(tokens))

        if quote.billable:
            record.total_payable = (record.total_payable or 0) + quote.unit_cost
            record.balance_due = (record.balance_due or 0) + quote.unit_cost
            if booking is not None:
                booking.due_amount = (booking.due_amount or 0) + quote.unit_cost

    log_action(
        user,
        "issue_material_stock",
        f"Issued material #{item.id} ({item.name}) to client #{quote.client_id}"
        + (f", billed {quote.unit_cost:.2f}" if quote.billable else ""),
        event_session_id,
    )
    return item


def issue_item(unique_id: str, client_id, *, user=None, event_session_id: int | None = None) -> tuple[MaterialStockItem, str]:
    """Scan-driven issue: price then apply in one unit of work. Returns (item, message)."""
    def _op():
        quote = price_issue(unique_id, client_id, event_session_id=event_session_id)
        return apply_issue(quote, user=user, event_session_id=event_session_id)

    item = run_atomic(_op)
    current_app.logger.info("Issued %s to client #%s", item.unique_id, item.issued_to_client_id)
    return item, f'Successfully issued "{item.name}" to the client.'


def normalize_return_status(status: str | None) -> str:
    return STOCK_DAMAGED if (status or "").strip().lower() == STOCK_DAMAGED.lower() else STOCK_AVAILABLE


def return_item(unique_id, status: str | None = None, *, user=None, event_session_id: int | None = None) -> tuple[MaterialStockItem, str]:
    """
    Scan-driven return. The item goes back to Available (or Damaged).

    For tables and chairs the asset number is removed from the client's issue
    record; the record's counters and charges are left as they are.
    """
    unique_id = scanned_id(unique_id)
    if not unique_id:
        raise ValidationError("Unique ID is required.")
    new_status = normalize_return_status(status)

    def _op():
        item = lock_for_update(
            db.session.query(MaterialStockItem).filter_by(unique_id=unique_id)
        ).first()
        if item is None:
            raise NotFoundError(f"Material with ID {unique_id} not found.")
        if item.status != STOCK_ISSUED:
            raise ConflictError(f'Material "{item.name}" is already {item.status}.')

        previous_client_id = item.issued_to_client_id
        client = db.session.get(Client, previous_client_id) if previous_client_id else None
        item.status = new_status
        item.issued_to_client_id = None
        _append_history(item, "returned", STOCK_ISSUED, new_status, user=user, client_id=previous_client_id)

        kind = item_kind(item.name)
        if kind in BILLABLE_KINDS and previous_client_id:
            _strip_asset_number(previous_client_id, kind, item.asset_number, event_session_id)

        log_action(
            user,
            "return_material_stock",
            f"Material #{item.id} ({item.name}) was returned with status: {new_status}. "
            f"It was previously issued to {client.name if client else 'an unknown client'}.",
            event_session_id,
        )
        return item

    item = run_atomic(_op)
    current_app.logger.info("Returned %s as %s", item.unique_id, new_status)
    return item, f'Successfully returned "{item.name}" with status: {new_status}.'


def _strip_asset_number(client_id: int, kind: str, asset_number: str, event_session_id: int | None) -> MaterialIssueRecord | None:
    field = f"{kind}_numbers"
    column = getattr(MaterialIssueRecord, field)
    query = db.session.query(MaterialIssueRecord).filter(
        MaterialIssueRecord.client_id == client_id,
        column.like(f"%{asset_number}%"),
    )
    if event_session_id is not None:
        query = query.filter(MaterialIssueRecord.event_session_id == event_session_id)
    for record in query.order_by(MaterialIssueRecord.issue_date.desc(), MaterialIssueRecord.id.desc()).all():
        tokens = split_numbers(getattr(record, field))
        if asset_number in tokens:
            tokens.remove(asset_number)
            setattr(record, field, ",".join(tokens) or None)
            return record
    return None


# =============================================================================
# MANUAL ISSUE RECORDS
# =============================================================================

ISSUE_RECORD_FIELDS = {
    "client_id",
    "sl_no",
    "stall_number",
    "camp",
    "plywood_free",
    "table_free",
    "chair_free",
    "rod_free",
    "plywood_paid",
    "table_paid",
    "chair_paid",
    "table_numbers",
    "chair_numbers",
    "total_payable",
    "advance_paid",
    "balance_due",
    "notes",
    "issue_date",
}

ISSUE_RECORD_POLICY = ModelValidationPolicy(
    writable_fields=ISSUE_RECORD_FIELDS,
    required_on_create={"client_id"},
)

_COUNTER_FIELDS = (
    "plywood_free", "table_free", "chair_free", "rod_free",
    "plywood_paid", "table_paid", "chair_paid",
)
_MONEY_FIELDS = ("total_payable", "advance_paid", "balance_due")


def get_issue_record(record_id: int) -> MaterialIssueRecord:
    record = db.session.get(MaterialIssueRecord, record_id)
    if record is None:
        raise NotFoundError("Material issue record not found.")
    return record


def list_issue_records(event_session_id: int | None, *, client_id: int | None = None) -> list[MaterialIssueRecord]:
    query = db.session.query(MaterialIssueRecord).filter(MaterialIssueRecord.event_session_id == event_session_id)
    if client_id is not None:
        query = query.filter(MaterialIssueRecord.client_id == client_id)
    return query.order_by(MaterialIssueRecord.issue_date.desc(), MaterialIssueRecord.id.desc()).all()


def camp_suggestions() -> list[str]:
    rows = (
        db.session.query(MaterialIssueRecord.camp)
        .filter(MaterialIssueRecord.camp.isnot(None), MaterialIssueRecord.camp != "")
        .distinct()
        .order_by(MaterialIssueRecord.camp)
        .all()
    )
    return [camp for (camp,) in rows]


def _normalize_record_patch(patch: dict) -> dict:
    for key in _COUNTER_FIELDS:
        if key in patch:
            if patch[key] is None:
                patch[key] = 0
            if patch[key] < 0:
                raise ValidationError(f"{key} cannot be negative")
    for key in _MONEY_FIELDS:
        if key in patch:
            if patch[key] is None:
                patch[key] = 0.0
            if patch[key] < 0:
                raise ValidationError(f"{key} cannot be negative")
    return patch


def _coerce_blank_numbers(payload: dict) -> dict:
    """Form posts send "" for untouched counters; treat those as absent."""
    cleaned = dict(payload or {})
    for key in _COUNTER_FIELDS + _MONEY_FIELDS:
        if cleaned.get(key) == "":
            cleaned.pop(key)
    return cleaned


def create_issue_record(payload: dict, *, user=None, event_session_id: int | None = None) -> MaterialIssueRecord:
    """
    Hand-written consolidated record; total_payable is added to the client's
    active booking due in the same transaction.
    """
    patch = validate_payload(
        model=MaterialIssueRecord,
        payload=_coerce_blank_numbers(payload),
        policy=ISSUE_RECORD_POLICY,
        partial=False,
    )
    patch = _normalize_record_patch(patch)
    if patch.get("issue_date") is None:
        patch["issue_date"] = today()

    def _op():
        if db.session.get(Client, patch["client_id"]) is None:
            raise NotFoundError("Client not found.")
        record = MaterialIssueRecord(event_session_id=event_session_id, **patch)
        for key in _COUNTER_FIELDS:
            if getattr(record, key) is None:
                setattr(record, key, 0)
        for key in _MONEY_FIELDS:
            if getattr(record, key) is None:
                setattr(record, key, 0.0)
        db.session.add(record)
        db.session.flush()

        booking = get_active_booking_for_client(record.client_id, event_session_id)
        if booking is not None and record.total_payable:
            booking.due_amount = (booking.due_amount or 0) + record.total_payable

        log_action(user, "material_issue_created", f"Recorded material issue #{record.id} for client #{record.client_id}", event_session_id)
        return record

    return run_atomic(_op)


def validate_issue_record_edit(payload: dict) -> dict:
    patch = validate_payload(
        model=MaterialIssueRecord,
        payload=_coerce_blank_numbers(payload),
        policy=ISSUE_RECORD_POLICY,
        partial=True,
    )
    return _normalize_record_patch(patch)


def apply_issue_record_edit(record_id: int, patch: dict, *, user=None, event_session_id: int | None = None) -> MaterialIssueRecord:
    """
    Apply a validated record patch inside the caller's unit of work.

    The booking due moves by the payable difference; a client change moves the
    whole charge to the new client's booking.
    """
    record = lock_for_update(db.session.query(MaterialIssueRecord).filter_by(id=record_id)).first()
    if record is None:
        raise NotFoundError("Material issue record not found.")

    old_client_id = record.client_id
    old_payable = record.total_payable or 0
    for key, value in patch.items():
        setattr(record, key, value)
    if "client_id" in patch and db.session.get(Client, record.client_id) is None:
        raise NotFoundError("Client not found.")
    if record.issue_date is None:
        raise ValidationError("issue_date cannot be null")
    new_payable = record.total_payable or 0

    session_id = record.event_session_id
    if record.client_id != old_client_id:
        old_booking = get_active_booking_for_client(old_client_id, session_id)
        if old_booking is not None:
            old_booking.due_amount = (old_booking.due_amount or 0) - old_payable
        new_booking = get_active_booking_for_client(record.client_id, session_id)
        if new_booking is not None:
            new_booking.due_amount = (new_booking.due_amount or 0) + new_payable
    elif new_payable != old_payable:
        booking = get_active_booking_for_client(record.client_id, session_id)
        if booking is not None:
            booking.due_amount = (booking.due_amount or 0) + (new_payable - old_payable)

    log_action(user, "material_issue_updated", f"Updated material issue #{record.id}", event_session_id)
    return record


def delete_issue_record(record_id: int, *, user=None, event_session_id: int | None = None) -> None:
    def _op():
        record = get_issue_record(record_id)
        booking = get_active_booking_for_client(record.client_id, record.event_session_id)
        if booking is not None and (record.total_payable or 0) > 0:
            booking.due_amount = (booking.due_amount or 0) - record.total_payable
        log_action(user, "material_issue_deleted", f"Deleted material issue #{record.id}", event_session_id)
        db.session.delete(record)

    run_atomic(_op)


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULTS_POLICY = ModelValidationPolicy(
    writable_fields={"free_tables", "free_chairs", "free_plywood", "free_rods"},
)


def get_defaults() -> MaterialDefaults:
    """The single defaults row, created on first use; the caller's unit of work commits it."""
    defaults = db.session.get(MaterialDefaults, 1)
    if defaults is None:
        defaults = MaterialDefaults(id=1, free_tables=STANDARD_FREE_TABLES, free_chairs=FREE_CHAIRS, free_plywood=0, free_rods=0)
        db.session.add(defaults)
        db.session.flush()
    return defaults


def update_defaults(payload: dict, *, user=None) -> MaterialDefaults:
    patch = validate_payload(model=MaterialDefaults, payload=payload, policy=DEFAULTS_POLICY, partial=True)
    for key, value in patch.items():
        if value is None or value < 0:
            raise ValidationError(f"{key} must be zero or more")

    def _op():
        defaults = get_defaults()
        for key, value in patch.items():
            setattr(defaults, key, value)
        log_action(user, "material_defaults_updated", "Updated material default settings")
        return defaults

    return run_atomic(_op)
