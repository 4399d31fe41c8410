"""
Column patch and CLI command tests.
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from fairdesk.cli import dues_group, sessions_group, system_group, users_group
from fairdesk.extensions import db
from fairdesk.models import Booking, EventSession, User
from fairdesk.services.schema_patch_service import (
    COLUMN_PATCHES,
    apply_column_patches,
    is_duplicate_column_error,
)


# =============================================================================
# COLUMN PATCHES
# =============================================================================

class TestColumnPatches:

    def test_current_schema_needs_no_patches(self, db_session):
        assert apply_column_patches() == 0

    def test_missing_column_added_once(self, db_session):
        statement = "ALTER TABLE clients ADD COLUMN legacy_note TEXT"
        assert apply_column_patches([statement]) == 1
        assert "legacy_note" in {c["name"] for c in inspect(db.engine).get_columns("clients")}
        assert apply_column_patches([statement]) == 0

    def test_missing_table_skipped(self, db_session):
        assert apply_column_patches(["ALTER TABLE retired_table ADD COLUMN x INTEGER"]) == 0

    def test_other_errors_propagate(self, db_session):
        with pytest.raises(OperationalError):
            apply_column_patches(["ALTER TABLE clients ADD COLUMN"])

    def test_every_patch_targets_a_known_table(self, db_session):
        tables = set(db.metadata.tables)
        assert {statement.split()[2] for statement in COLUMN_PATCHES} <= tables

    @pytest.mark.parametrize("message,expected", [
        ("duplicate column name: sl_no", True),
        ('column "sl_no" of relation "material_issues" already exists', True),
        ("no such table: widgets", False),
    ])
    def test_duplicate_detection(self, message, expected):
        assert is_duplicate_column_error(Exception(message)) is expected


# =============================================================================
# CLI
# =============================================================================

class TestCli:

    def test_system_init(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(system_group, ['init', '--admin-password', 'secret', '--session-name', 'Fair 2026'])
        assert result.exit_code == 0, result.output
        assert "DONE" in result.output

        assert db.session.query(User).filter_by(username="admin").one().role == "admin"
        active = db.session.query(EventSession).filter_by(is_active=True).one()
        assert active.name == "Fair 2026"

        again = runner.invoke(system_group, ['init'])
        assert again.exit_code == 0
        assert "Using existing event session" in again.output

    def test_users_create_and_set_role(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(
            users_group, ['create', '--username', 'cashier', '--password', 'pw', '--role', 'accountant']
        )
        assert result.exit_code == 0, result.output
        result = runner.invoke(users_group, ['set-role', 'cashier', 'ticketing_manager'])
        assert result.exit_code == 0, result.output
        db.session.expire_all()
        assert db.session.query(User).filter_by(username="cashier").one().role == "ticketing_manager"

    def test_set_role_unknown_user(self, app, db_session):
        result = app.test_cli_runner().invoke(users_group, ['set-role', 'ghost', 'admin'])
        assert result.exit_code != 0

    def test_sessions_create_and_activate(self, app, db_session, event_session):
        runner = app.test_cli_runner()
        result = runner.invoke(sessions_group, ['create', '--name', 'Fair 2027'])
        assert result.exit_code == 0, result.output
        created = db.session.query(EventSession).filter_by(name="Fair 2027").one()
        assert created.is_active is False

        result = runner.invoke(sessions_group, ['activate', str(created.id)])
        assert result.exit_code == 0, result.output
        db.session.expire_all()
        assert db.session.query(EventSession).filter_by(is_active=True).one().id == created.id

    def test_dues_check(self, app, db_session, event_session, stall_booking):
        runner = app.test_cli_runner()
        result = runner.invoke(dues_group, ['check'])
        assert result.exit_code == 0, result.output
        assert "PASS" in result.output

        booking = db.session.get(Booking, stall_booking.id)
        booking.due_amount = 1.0
        db.session.commit()

        result = runner.invoke(dues_group, ['check'])
        assert result.exit_code == 1
        assert "FAIL" in result.output
