"""
Payment and accounting ledger tests.

Every payment lowers the booking due, lands in one bucket and is mirrored by
an income row that only the payment flow may change.
"""

from datetime import date

import pytest

from fairdesk.extensions import db
from fairdesk.models import AccountingTransaction, Booking, Payment
from fairdesk.services import accounting_service, payment_service
from fairdesk.services.query_helpers import ListFilters
from fairdesk.validation import ConflictError, NotFoundError, ValidationError


def _pay(booking, payment_type="rent", cash=0.0, upi=0.0, **extra):
    payload = {"booking_id": booking.id, "payment_type": payment_type, "cash_paid": cash, "upi_paid": upi}
    payload.update(extra)
    return payment_service.record_payment(payload, event_session_id=booking.event_session_id)


def _booking(booking):
    db.session.expire_all()
    return db.session.get(Booking, booking.id)


def _ledger_for(payment):
    return db.session.query(AccountingTransaction).filter_by(payment_id=payment.id).all()


# =============================================================================
# RECORDING PAYMENTS
# =============================================================================

class TestRecordPayment:

    def test_payment_reduces_due_and_mirrors_ledger(self, db_session, event_session, stall_booking):
        payment = _pay(stall_booking, "rent", cash=300, upi=200, payment_date="2026-01-15")

        assert payment.rent_paid == pytest.approx(500.0)
        assert payment.payment_mode == "Cash & UPI"
        assert payment.payment_type == "rent"
        assert _booking(stall_booking).due_amount == pytest.approx(500.0)

        (ledger,) = _ledger_for(payment)
        assert ledger.transaction_type == "income"
        assert ledger.category == "Rent Payment"
        assert ledger.amount == pytest.approx(500.0)
        assert ledger.transaction_date == date(2026, 1, 15)
        assert ledger.event_session_id == event_session.id

    @pytest.mark.parametrize("payment_type,category", [
        ("electric", "Electric Bill Payment"),
        ("material", "Material Issue Payment"),
        ("shed", "Shed Rent Payment"),
    ])
    def test_non_rent_payments_have_no_receipt(self, db_session, event_session, stall_booking, payment_type, category):
        payment = _pay(stall_booking, payment_type, upi=100)
        assert payment.receipt_number == "NA"
        assert payment.payment_mode == "UPI"
        assert _ledger_for(payment)[0].category == category

    def test_rent_receipts_number_sequentially(self, db_session, event_session, stall_booking):
        first = _pay(stall_booking, cash=10)
        second = _pay(stall_booking, cash=10)
        assert (first.receipt_number, second.receipt_number) == ("1", "2")
        assert payment_service.next_receipt_number(event_session.id) == 3

    def test_manual_receipt_number_continues_sequence(self, db_session, event_session, stall_booking):
        _pay(stall_booking, cash=10, receipt_number="41")
        _pay(stall_booking, "electric", cash=10)
        assert payment_service.next_receipt_number(event_session.id) == 42

    def test_receipts_numbered_per_session(self, db_session, event_session, archived_session, stall_booking):
        _pay(stall_booking, cash=10)
        assert payment_service.next_receipt_number(archived_session.id) == 1

    @pytest.mark.parametrize("payload", [
        {"payment_type": "rent", "cash_paid": 10},
        {"booking_id": 1, "payment_type": "bogus", "cash_paid": 10},
        {"booking_id": 1, "payment_type": "rent", "cash_paid": 0, "upi_paid": 0},
        {"booking_id": 1, "payment_type": "rent", "cash_paid": -5, "upi_paid": 10},
        {"booking_id": 1, "payment_type": "rent", "cash_paid": 10, "payment_date": "15/01/2026"},
    ])
    def test_invalid_payloads(self, db_session, event_session, payload):
        with pytest.raises(ValidationError):
            payment_service.record_payment(payload, event_session_id=event_session.id)

    def test_unknown_booking(self, db_session, event_session):
        with pytest.raises(NotFoundError):
            payment_service.record_payment(
                {"booking_id": 999, "payment_type": "rent", "cash_paid": 10}, event_session_id=event_session.id
            )

    def test_receipt_balance(self, db_session, event_session, stall_booking):
        payment = _pay(stall_booking, cash=400)
        receipt = payment_service.get_receipt(payment.id)
        assert receipt["title"] == "Receipt #1"
        assert receipt["financial_summary"] == {
            "previous_balance": 1000.0,
            "amount_paid": 400.0,
            "balance_due": 600.0,
        }


# =============================================================================
# EDITING AND DELETING PAYMENTS
# =============================================================================

class TestPaymentEdits:

    def test_admin_edit_moves_due_and_ledger(self, db_session, event_session, stall_booking, admin_client):
        payment = _pay(stall_booking, cash=400)
        resp = admin_client.put(f'/charges/{payment.id}', json={'cash_paid': 250, 'upi_paid': 50})
        assert resp.status_code == 200
        assert resp.get_json()["applied"] is True

        assert _booking(stall_booking).due_amount == pytest.approx(700.0)
        assert _ledger_for(payment)[0].amount == pytest.approx(300.0)
        assert db.session.get(Payment, payment.id).rent_paid == pytest.approx(300.0)

    def test_accountant_edit_becomes_request(self, db_session, event_session, stall_booking, login_as):
        payment = _pay(stall_booking, cash=400)
        resp = login_as("accountant").put(f'/charges/{payment.id}', json={'cash_paid': 100})
        assert resp.status_code == 202
        assert resp.get_json()["edit_request"]["status"] == "pending"
        assert _booking(stall_booking).due_amount == pytest.approx(600.0)

    def test_delete_restores_due_and_drops_ledger(self, db_session, event_session, stall_booking, admin_client):
        payment = _pay(stall_booking, cash=400)
        resp = admin_client.delete(f'/charges/{payment.id}')
        assert resp.status_code == 200
        assert resp.get_json()["booking_id"] == stall_booking.id

        assert _booking(stall_booking).due_amount == pytest.approx(1000.0)
        assert db.session.query(AccountingTransaction).count() == 0

    def test_only_admin_deletes(self, db_session, event_session, stall_booking, login_as):
        payment = _pay(stall_booking, cash=400)
        assert login_as("accountant").delete(f'/charges/{payment.id}').status_code == 403

    def test_booking_with_payments_cannot_be_deleted(self, db_session, event_session, stall_booking, admin_client):
        _pay(stall_booking, cash=400)
        resp = admin_client.delete(f'/booking/{stall_booking.id}')
        assert resp.status_code == 409


# =============================================================================
# MANUAL LEDGER ENTRIES
# =============================================================================

class TestLedger:

    def _entry(self, event_session, **overrides):
        payload = {
            "transaction_type": "expenditure",
            "category": "Cleaning",
            "amount": 150,
            "transaction_date": "2026-01-10",
            "description": "Ground sweep",
        }
        payload.update(overrides)
        return accounting_service.add_transaction(payload, event_session_id=event_session.id)

    def test_manual_entry_editable(self, db_session, event_session):
        row = self._entry(event_session)
        updated = accounting_service.update_transaction(
            row.id,
            {"transaction_type": "expenditure", "category": "Cleaning", "amount": 175, "transaction_date": "2026-01-11"},
        )
        assert updated.amount == pytest.approx(175.0)
        accounting_service.delete_transaction(row.id)
        assert db.session.get(AccountingTransaction, row.id) is None

    def test_payment_mirror_is_locked(self, db_session, event_session, stall_booking):
        payment = _pay(stall_booking, cash=400)
        (mirror,) = _ledger_for(payment)
        with pytest.raises(ConflictError):
            accounting_service.delete_transaction(mirror.id)
        with pytest.raises(ConflictError):
            accounting_service.update_transaction(
                mirror.id,
                {"transaction_type": "income", "category": "Rent Payment", "amount": 1, "transaction_date": "2026-01-01"},
            )

    @pytest.mark.parametrize("overrides", [
        {"category": ""},
        {"transaction_type": "transfer"},
        {"amount": 0},
        {"transaction_date": "10-01-2026"},
    ])
    def test_invalid_entries(self, db_session, event_session, overrides):
        with pytest.raises(ValidationError):
            self._entry(event_session, **overrides)

    def test_summary_and_type_filter(self, db_session, event_session, stall_booking):
        _pay(stall_booking, cash=400)
        self._entry(event_session)

        result = accounting_service.list_transactions(event_session.id, ListFilters())
        assert result["summary"] == {"total_income": 400.0, "total_expenditure": 150.0, "balance": 250.0}
        assert result["pagination"]["total_items"] == 2

        expenses = accounting_service.list_transactions(event_session.id, ListFilters(kind="expenditure"))
        assert [t["category"] for t in expenses["transactions"]] == ["Cleaning"]

    def test_category_report_csv(self, db_session, event_session, stall_booking, login_as):
        _pay(stall_booking, cash=400)
        self._entry(event_session)
        self._entry(event_session, amount=50)

        resp = login_as("accountant").get('/accounting/report/csv')
        assert resp.status_code == 200
        lines = resp.get_data(as_text=True).strip().splitlines()
        assert lines == [
            "Category,Total Income,Total Expenditure,Net Change",
            "Cleaning,0.00,200.00,-200.00",
            "Rent Payment,400.00,0.00,400.00",
        ]

    def test_date_range_filter(self, db_session, event_session):
        self._entry(event_session, transaction_date="2026-01-01")
        self._entry(event_session, transaction_date="2026-02-01")

        filters = ListFilters(start_date=date(2026, 1, 15))
        report = accounting_service.category_report(event_session.id, filters)
        assert report == [{"category": "Cleaning", "income": 0.0, "expenditure": 150.0, "net_change": -150.0}]
