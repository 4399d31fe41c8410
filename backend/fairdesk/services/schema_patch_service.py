# Overview: Idempotent ALTER TABLE column patches for databases created by older builds.

from __future__ import annotations

from flask import current_app
from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError, ProgrammingError

from ..extensions import db


COLUMN_PATCHES = [
    "ALTER TABLE event_sessions ADD COLUMN name VARCHAR(120)",
    "ALTER TABLE event_sessions ADD COLUMN place VARCHAR(120)",
    "ALTER TABLE material_issues ADD COLUMN sl_no VARCHAR(32)",
    "ALTER TABLE electric_bills ADD COLUMN sl_no VARCHAR(32)",
    "ALTER TABLE booking_staff ADD COLUMN role VARCHAR(64)",
    "ALTER TABLE booking_staff ADD COLUMN secondary_phone VARCHAR(32)",
    "ALTER TABLE payments ADD COLUMN payment_mode VARCHAR(16)",
    "ALTER TABLE payments ADD COLUMN cash_paid FLOAT DEFAULT 0",
    "ALTER TABLE payments ADD COLUMN upi_paid FLOAT DEFAULT 0",
    "ALTER TABLE edit_requests ADD COLUMN rejection_reason TEXT",
    "ALTER TABLE edit_requests ADD COLUMN user_notified BOOLEAN DEFAULT 0",
    "ALTER TABLE accounting_transactions ADD COLUMN distribution_id INTEGER",
    "ALTER TABLE ticket_distributions ADD COLUMN remainder_stock_id INTEGER",
    "ALTER TABLE shed_allocations ADD COLUMN rent FLOAT DEFAULT 0",
]


def is_duplicate_column_error(exc: Exception) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "duplicate column" in message or "already exists" in message


def apply_column_patches(statements: list[str] | None = None) -> int:
    """
    Run each ADD COLUMN in its own transaction.

    Returns:
        Number of columns actually added. A duplicate-column error means the
        column is already there; any other error propagates.
    """
    existing_tables = set(inspect(db.engine).get_table_names())
    applied = 0
    for statement in statements if statements is not None else COLUMN_PATCHES:
        # Fresh databases get these columns from create_all / migrations
        if statement.split()[2] not in existing_tables:
            continue
        try:
            with db.engine.begin() as conn:
                conn.execute(text(statement))
        except (OperationalError, ProgrammingError) as exc:
            if not is_duplicate_column_error(exc):
                raise
            continue
        applied += 1
        current_app.logger.info("Column patch applied: %s", statement)
    return applied
