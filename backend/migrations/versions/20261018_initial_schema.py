"""initial fairdesk schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the exhibition back office schema:
- event_sessions, users, logs: scoping, authentication and the audit trail
- spaces, sheds, clients, bookings: the venue and who occupies it
- material_*: QR-tagged furniture stock and per-day issue billing
- electric_*, shed_*, payments: charges and settlements against a booking
- accounting_transactions: the income/expenditure ledger
- booking_staff, rides, ticket_*: ride ticket bundles and their settlement
- edit_requests: queued edits awaiting admin approval
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # Sessions, users and audit trail
    # ============================================================================
    op.create_table(
        'event_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('place', sa.String(length=120), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_event_sessions_active', 'event_sessions', ['is_active'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        _created_at(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_logs_timestamp', 'logs', ['timestamp'])

    # ============================================================================
    # Venue and bookings
    # ============================================================================
    op.create_table(
        'spaces',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('rent_amount', sa.Float(), nullable=True),
        sa.Column('facilities', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_spaces_type_name', 'spaces', ['type', 'name'])

    op.create_table(
        'sheds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('rent', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('contact_number', sa.String(length=32), nullable=True),
        sa.Column('full_address', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('space_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=False),
        sa.Column('booking_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('exhibitor_name', sa.String(length=255), nullable=False),
        sa.Column('facia_name', sa.String(length=255), nullable=True),
        sa.Column('product_category', sa.String(length=255), nullable=True),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('full_address', sa.Text(), nullable=True),
        sa.Column('contact_number', sa.String(length=32), nullable=True),
        sa.Column('secondary_number', sa.String(length=32), nullable=True),
        sa.Column('id_proof', sa.String(length=120), nullable=True),
        sa.Column('rent_amount', sa.Float(), nullable=False),
        sa.Column('discount', sa.Float(), nullable=False),
        sa.Column('advance_amount', sa.Float(), nullable=False),
        sa.Column('due_amount', sa.Float(), nullable=False),
        sa.Column('form_submitted', sa.Boolean(), nullable=False),
        sa.Column('booking_status', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['space_id'], ['spaces.id'], ),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_bookings_space_id', 'bookings', ['space_id'])
    op.create_index('ix_bookings_session_status', 'bookings', ['event_session_id', 'booking_status'])
    op.create_index('ix_bookings_client_session', 'bookings', ['client_id', 'event_session_id'])

    # ============================================================================
    # Material stock and issue billing
    # ============================================================================
    op.create_table(
        'material_stock',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unique_id', sa.String(length=64), nullable=False),
        sa.Column('qr_code_path', sa.String(length=255), nullable=True),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('issued_to_client_id', sa.Integer(), nullable=True),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['issued_to_client_id'], ['clients.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unique_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_material_stock_event_session_id', 'material_stock', ['event_session_id'])
    op.create_index('ix_material_stock_client_status', 'material_stock', ['issued_to_client_id', 'status'])
    op.create_index('ix_material_stock_session_name', 'material_stock', ['event_session_id', 'name'])

    op.create_table(
        'material_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_item_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('from_status', sa.String(length=16), nullable=True),
        sa.Column('to_status', sa.String(length=16), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['stock_item_id'], ['material_stock.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_material_history_stock_item_id', 'material_history', ['stock_item_id'])

    op.create_table(
        'material_issues',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sl_no', sa.String(length=32), nullable=True),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.Column('stall_number', sa.String(length=64), nullable=True),
        sa.Column('camp', sa.String(length=120), nullable=True),
        sa.Column('plywood_free', sa.Integer(), nullable=False),
        sa.Column('table_free', sa.Integer(), nullable=False),
        sa.Column('chair_free', sa.Integer(), nullable=False),
        sa.Column('rod_free', sa.Integer(), nullable=False),
        sa.Column('plywood_paid', sa.Integer(), nullable=False),
        sa.Column('table_paid', sa.Integer(), nullable=False),
        sa.Column('chair_paid', sa.Integer(), nullable=False),
        sa.Column('table_numbers', sa.Text(), nullable=True),
        sa.Column('chair_numbers', sa.Text(), nullable=True),
        sa.Column('total_payable', sa.Float(), nullable=False),
        sa.Column('advance_paid', sa.Float(), nullable=False),
        sa.Column('balance_due', sa.Float(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_material_issues_event_session_id', 'material_issues', ['event_session_id'])
    op.create_index('ix_material_issues_client_date', 'material_issues', ['client_id', 'issue_date'])

    op.create_table(
        'material_defaults',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('free_tables', sa.Integer(), nullable=False),
        sa.Column('free_chairs', sa.Integer(), nullable=False),
        sa.Column('free_plywood', sa.Integer(), nullable=False),
        sa.Column('free_rods', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # ============================================================================
    # Charges and payments
    # ============================================================================
    op.create_table(
        'electric_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('service_charge', sa.Float(), nullable=False),
        sa.Column('fitting_charge', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'electric_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sl_no', sa.String(length=32), nullable=True),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.Column('bill_date', sa.Date(), nullable=False),
        sa.Column('items_json', sa.Text(), nullable=True),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_electric_bills_event_session_id', 'electric_bills', ['event_session_id'])
    op.create_index('ix_electric_bills_booking', 'electric_bills', ['booking_id'])

    op.create_table(
        'shed_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('shed_id', sa.Integer(), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.Column('allocation_date', sa.Date(), nullable=False),
        sa.Column('rent', sa.Float(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['shed_id'], ['sheds.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shed_allocations_booking_id', 'shed_allocations', ['booking_id'])
    op.create_index('ix_shed_allocations_shed_id', 'shed_allocations', ['shed_id'])
    op.create_index('ix_shed_allocations_event_session_id', 'shed_allocations', ['event_session_id'])

    op.create_table(
        'shed_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.Column('bill_date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shed_bills_booking_id', 'shed_bills', ['booking_id'])
    op.create_index('ix_shed_bills_event_session_id', 'shed_bills', ['event_session_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.Column('receipt_number', sa.String(length=32), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('payment_mode', sa.String(length=16), nullable=True),
        sa.Column('cash_paid', sa.Float(), nullable=False),
        sa.Column('upi_paid', sa.Float(), nullable=False),
        sa.Column('rent_paid', sa.Float(), nullable=False),
        sa.Column('electric_paid', sa.Float(), nullable=False),
        sa.Column('material_paid', sa.Float(), nullable=False),
        sa.Column('shed_paid', sa.Float(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_booking', 'payments', ['booking_id'])
    op.create_index('ix_payments_session_date', 'payments', ['event_session_id', 'payment_date'])

    # ============================================================================
    # Ticketing
    # ============================================================================
    op.create_table(
        'booking_staff',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('dob', sa.Date(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('secondary_phone', sa.String(length=32), nullable=True),
        sa.Column('aadhaar', sa.String(length=32), nullable=True),
        sa.Column('role', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('aadhaar'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'rides',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('rate', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'ticket_stock',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rate', sa.Float(), nullable=False),
        sa.Column('color', sa.String(length=32), nullable=True),
        sa.Column('start_number', sa.Integer(), nullable=False),
        sa.Column('end_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ticket_stock_session_status', 'ticket_stock', ['event_session_id', 'status'])

    op.create_table(
        'ticket_distributions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('distribution_date', sa.Date(), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=False),
        sa.Column('ride_id', sa.Integer(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('distributed_start_number', sa.Integer(), nullable=False),
        sa.Column('distributed_end_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('returned_start_number', sa.Integer(), nullable=True),
        sa.Column('tickets_sold', sa.Integer(), nullable=True),
        sa.Column('calculated_revenue', sa.Float(), nullable=True),
        sa.Column('upi_amount', sa.Float(), nullable=True),
        sa.Column('cash_amount', sa.Float(), nullable=True),
        sa.Column('settlement_date', sa.Date(), nullable=True),
        sa.Column('settled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('remainder_stock_id', sa.Integer(), nullable=True),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['staff_id'], ['booking_staff.id'], ),
        sa.ForeignKeyConstraint(['ride_id'], ['rides.id'], ),
        sa.ForeignKeyConstraint(['stock_id'], ['ticket_stock.id'], ),
        sa.ForeignKeyConstraint(['settled_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['remainder_stock_id'], ['ticket_stock.id'], ),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ticket_distributions_session_status', 'ticket_distributions', ['event_session_id', 'status'])
    op.create_index('ix_ticket_distributions_staff', 'ticket_distributions', ['staff_id'])

    # ============================================================================
    # Ledger and edit approvals
    # ============================================================================
    op.create_table(
        'accounting_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('payment_id', sa.Integer(), nullable=True),
        sa.Column('distribution_id', sa.Integer(), nullable=True),
        sa.Column('event_session_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['event_session_id'], ['event_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounting_transactions_payment_id', 'accounting_transactions', ['payment_id'])
    op.create_index('ix_accounting_transactions_distribution_id', 'accounting_transactions', ['distribution_id'])
    op.create_index('ix_accounting_session_date', 'accounting_transactions', ['event_session_id', 'transaction_date'])
    op.create_index('ix_accounting_type_category', 'accounting_transactions', ['transaction_type', 'category'])

    op.create_table(
        'edit_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('proposed_data', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('request_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('user_notified', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('reviewed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['reviewed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_edit_requests_status', 'edit_requests', ['status'])
    op.create_index('ix_edit_requests_entity', 'edit_requests', ['entity_type', 'entity_id'])
    op.create_index('ix_edit_requests_user', 'edit_requests', ['user_id', 'user_notified'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('edit_requests')
    op.drop_table('accounting_transactions')
    op.drop_table('ticket_distributions')
    op.drop_table('ticket_stock')
    op.drop_table('rides')
    op.drop_table('booking_staff')
    op.drop_table('payments')
    op.drop_table('shed_bills')
    op.drop_table('shed_allocations')
    op.drop_table('electric_bills')
    op.drop_table('electric_items')
    op.drop_table('material_defaults')
    op.drop_table('material_issues')
    op.drop_table('material_history')
    op.drop_table('material_stock')
    op.drop_table('bookings')
    op.drop_table('clients')
    op.drop_table('sheds')
    op.drop_table('spaces')
    op.drop_table('logs')
    op.drop_table('users')
    op.drop_table('event_sessions')
