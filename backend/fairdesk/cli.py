# Overview: Flask CLI command groups for bootstrap, administration, and due-balance checks.

# backend/fairdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "fairdesk:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password admin] [--session-name "Fair 2026"]
#   Idempotent bootstrap: tables, column patches, electric items, sheds, material defaults,
#   default admin and a first active event session.
# - python -m flask system patch-columns
#   Re-run the ALTER TABLE ... ADD COLUMN patches.
#
# User administration:
# - python -m flask users list
# - python -m flask users create --username cashier1 --password secret --role accountant
# - python -m flask users set-role cashier1 admin
#
# Event sessions:
# - python -m flask sessions list
# - python -m flask sessions create --name "Fair 2027" [--location "Town Hall"]
# - python -m flask sessions activate 2
#
# Balances:
# - python -m flask dues check [--session-id 1]
#   Compare stored booking due_amount with the recomputed due list.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .services import auth_service, electric_service, event_session_service, material_service, shed_service
from .services.concurrency import run_atomic
from .services.reporting_service import check_dues
from .services.schema_patch_service import apply_column_patches
from .validation import ConflictError, NotFoundError, ValidationError


DEFAULT_SESSION_NAME = "Fair Session 1"


def _fail(exc: Exception):
    raise click.ClickException(str(exc))


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default='admin', help='Password for the default admin user')
@click.option('--session-name', default=DEFAULT_SESSION_NAME, help='Name of the first event session')
@with_appcontext
def init_system(admin_password, session_name):
    """
    Initialize the back office.

    Creates:
    - All tables (then applies column patches)
    - Default electric items and sheds when their tables are empty
    - Material default settings row
    - User: admin (role admin)
    - A first event session, marked active, when none exists

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing fairdesk...")

    db.create_all()
    patched = apply_column_patches()
    click.echo(f"PASS Tables ready ({patched} column patches applied)")

    items = electric_service.seed_default_items()
    sheds = shed_service.seed_default_sheds()
    run_atomic(material_service.get_defaults)
    click.echo(f"PASS Seeded {items} electric items, {sheds} sheds")

    admin = auth_service.ensure_default_admin(admin_password)
    click.echo(f"PASS Admin user: {admin.username}")

    if not event_session_service.list_sessions():
        try:
            event_session = event_session_service.create_session({"name": session_name})
            event_session_service.activate_session(event_session.id)
        except (ValidationError, ConflictError) as exc:
            _fail(exc)
        click.echo(f"PASS Created active event session: {event_session.name} (ID: {event_session.id})")
    else:
        active = event_session_service.get_active_session()
        click.echo(f"PASS Using existing event session: {active.name} (ID: {active.id})")

    click.echo("DONE")


@system_group.command('patch-columns')
@with_appcontext
def patch_columns():
    """Apply ALTER TABLE ... ADD COLUMN patches; existing columns are skipped."""
    applied = apply_column_patches()
    click.echo(f"PASS {applied} column patches applied")


@click.group('users')
def users_group():
    """User inspection and administration."""


@users_group.command('list')
@with_appcontext
def list_users():
    for user in auth_service.list_users():
        click.echo(f"{user.id:>4}  {user.username:<24} {user.role}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='user', show_default=True)
@with_appcontext
def create_user(username, password, role):
    try:
        user = auth_service.create_user(username, password, role)
    except (ValidationError, ConflictError) as exc:
        _fail(exc)
    click.echo(f"PASS Created user {user.username} ({user.role})")


@users_group.command('set-role')
@click.argument('username')
@click.argument('role', type=click.Choice(ROLES))
@with_appcontext
def set_user_role(username, role):
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User '{username}' not found")
    try:
        auth_service.set_role(user.id, role)
    except (ValidationError, ConflictError, NotFoundError) as exc:
        _fail(exc)
    click.echo(f"PASS {username} is now {role}")


@click.group('sessions')
def sessions_group():
    """Event session administration."""


@sessions_group.command('list')
@with_appcontext
def list_sessions():
    for event_session in event_session_service.list_sessions():
        marker = "*" if event_session.is_active else " "
        click.echo(f"{marker} {event_session.id:>4}  {event_session.name}")


@sessions_group.command('create')
@click.option('--name', required=True)
@click.option('--location', default=None)
@with_appcontext
def create_session(name, location):
    try:
        event_session = event_session_service.create_session({"name": name, "location": location})
    except (ValidationError, ConflictError) as exc:
        _fail(exc)
    click.echo(f"PASS Created session {event_session.name} (ID: {event_session.id}, inactive)")


@sessions_group.command('activate')
@click.argument('session_id', type=int)
@with_appcontext
def activate_session(session_id):
    try:
        event_session = event_session_service.activate_session(session_id)
    except NotFoundError as exc:
        _fail(exc)
    click.echo(f"PASS Active session is now {event_session.name}")


@click.group('dues')
def dues_group():
    """Booking balance checks."""


@dues_group.command('check')
@click.option('--session-id', type=int, default=None, help='Defaults to the active session')
@with_appcontext
def check_due_balances(session_id):
    """Report bookings whose stored due_amount differs from the recomputed due."""
    if session_id is None:
        active = event_session_service.get_active_session()
        if active is None:
            raise click.ClickException("No event session configured")
        session_id = active.id

    mismatches = check_dues(session_id)
    if not mismatches:
        click.echo("PASS All booking balances match")
        return
    for row in mismatches:
        click.echo(
            f"FAIL booking {row['booking_id']} ({row['exhibitor_name']}): "
            f"stored {row['stored_due_amount']:.2f}, computed {row['computed_due']:.2f}, "
            f"difference {row['difference']:.2f}"
        )
    raise SystemExit(1)


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(dues_group)
