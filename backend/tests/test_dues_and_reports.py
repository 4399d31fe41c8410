"""
Due-list and report tests.

The due list is computed from charges and payments per category and must agree
with each booking's stored due_amount; CSV downloads carry the same rows.
"""

import csv
import io

import pytest

from fairdesk.extensions import db
from fairdesk.models import Booking, Space
from fairdesk.services import (
    electric_service,
    material_service,
    payment_service,
    reporting_service,
    shed_service,
)
from fairdesk.services.query_helpers import ListFilters


def _pay(booking, payment_type, cash=0.0, upi=0.0, **extra):
    payload = {"booking_id": booking.id, "payment_type": payment_type, "cash_paid": cash, "upi_paid": upi}
    payload.update(extra)
    return payment_service.record_payment(payload, event_session_id=booking.event_session_id)


def _csv_rows(resp):
    return list(csv.reader(io.StringIO(resp.get_data(as_text=True))))


# =============================================================================
# DUE COMPUTATION
# =============================================================================

class TestDueList:

    def test_fully_paid_booking_drops_out(self, db_session, event_session, make_booking, stall_space):
        booking = make_booking(stall_space, rent_amount=1000, discount=100)
        _pay(booking, "rent", cash=900)

        dues = reporting_service.due_list(event_session.id)
        assert dues["all"] == []
        assert dues["rent"] == []
        db.session.expire_all()
        assert db.session.get(Booking, booking.id).due_amount == pytest.approx(0.0)

    def test_advance_counts_as_rent_paid(self, db_session, event_session, make_booking, stall_space):
        booking = make_booking(stall_space, rent_amount=1000, discount=0, advance_amount=400)
        row = reporting_service.compute_dues(event_session.id)[0]

        assert row["booking_id"] == booking.id
        assert row["categories"]["rent"] == {"charged": 1000.0, "paid": 400.0, "due": 600.0}
        assert row["total_due"] == pytest.approx(600.0)
        assert row["stored_due_amount"] == pytest.approx(600.0)

    def test_partial_rent_listed_under_all_and_rent(self, db_session, event_session, stall_booking):
        _pay(stall_booking, "rent", cash=250)
        dues = reporting_service.due_list(event_session.id)

        assert [r["booking_id"] for r in dues["all"]] == [stall_booking.id]
        assert [r["booking_id"] for r in dues["rent"]] == [stall_booking.id]
        assert dues["electric"] == []
        assert dues["all"][0]["total_due"] == pytest.approx(750.0)

    def test_every_category_contributes(self, db_session, event_session, stall_booking):
        electric_service.create_bill(
            {"booking_id": stall_booking.id, "items": [{"name": "Fan", "quantity": 1}], "total_amount": 300},
            event_session_id=event_session.id,
        )
        shed = shed_service.create_shed({"name": "Shed Z", "size": "10x10", "rent": 2000})
        shed_service.allocate_shed(shed.id, stall_booking.id, event_session_id=event_session.id)
        tables = material_service.create_stock("Table", quantity=2, event_session_id=event_session.id)
        for item in tables:
            material_service.issue_item(item.unique_id, stall_booking.client_id, event_session_id=event_session.id)

        row = reporting_service.compute_dues(event_session.id)[0]
        assert row["categories"]["electric"]["due"] == pytest.approx(300.0)
        assert row["categories"]["shed"]["due"] == pytest.approx(2000.0)
        assert row["categories"]["material"]["due"] == pytest.approx(600.0)
        assert row["total_due"] == pytest.approx(1000.0 + 300.0 + 2000.0 + 600.0)
        assert row["total_due"] == pytest.approx(row["stored_due_amount"])

    def test_other_session_bookings_excluded(self, db_session, event_session, archived_session, stall_booking):
        assert reporting_service.compute_dues(archived_session.id) == []

    def test_search_filters_by_exhibitor(self, db_session, event_session, make_booking, stall_space, pavilion_space):
        make_booking(stall_space, exhibitor_name="Acme Crafts")
        make_booking(pavilion_space, exhibitor_name="Bright Foods")

        dues = reporting_service.due_list(event_session.id, "acme")
        assert [r["exhibitor_name"] for r in dues["all"]] == ["Acme Crafts"]

    def test_check_dues_reports_drift(self, db_session, event_session, stall_booking):
        assert reporting_service.check_dues(event_session.id) == []

        booking = db.session.get(Booking, stall_booking.id)
        booking.due_amount = 1234.0
        db.session.commit()

        mismatches = reporting_service.check_dues(event_session.id)
        assert len(mismatches) == 1
        assert mismatches[0]["difference"] == pytest.approx(234.0)


# =============================================================================
# CSV DOWNLOADS
# =============================================================================

class TestCsvReports:

    def test_due_list_csv_matches_rows(self, db_session, event_session, make_booking, stall_space, pavilion_space, admin_client):
        make_booking(stall_space, exhibitor_name="Acme Crafts")
        paid = make_booking(pavilion_space, exhibitor_name="Bright Foods")
        _pay(paid, "rent", cash=5000)

        resp = admin_client.get('/report/dues/csv?category=rent')
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "due_list_rent.csv" in resp.headers["Content-Disposition"]

        rows = _csv_rows(resp)
        assert rows[0] == ["Exhibitor Name", "Facia Name", "Space", "Total Rent", "Rent Paid", "Rent Due"]
        assert len(rows) == 2
        assert rows[1][0] == "Acme Crafts"
        assert float(rows[1][5]) == pytest.approx(1000.0)

    def test_unknown_due_category_falls_back_to_all(self, db_session, event_session, stall_booking):
        headers, rows = reporting_service.due_list_csv(event_session.id, None, "bogus")
        assert headers[-1] == "Balance Due"
        assert len(rows) == 1

    def test_payments_csv_row_per_payment(self, db_session, event_session, stall_booking, admin_client):
        _pay(stall_booking, "rent", cash=100)
        _pay(stall_booking, "rent", upi=200)

        resp = admin_client.get('/report/payments/csv')
        rows = _csv_rows(resp)
        assert rows[0] == reporting_service.PAYMENT_CSV_HEADERS
        assert len(rows) == 3

    def test_payments_report_totals_and_category_filter(self, db_session, event_session, stall_booking):
        _pay(stall_booking, "rent", cash=100, upi=50)
        electric_service.create_bill(
            {"booking_id": stall_booking.id, "items": [{"name": "Fan"}], "total_amount": 300},
            event_session_id=event_session.id,
        )
        _pay(stall_booking, "electric", upi=300)

        result = reporting_service.payments_received(event_session.id, ListFilters())
        assert result["summary"] == {"total_cash": 100.0, "total_upi": 350.0, "total_paid": 450.0}

        rent_only = reporting_service.payments_received(event_session.id, ListFilters(category="rent"))
        assert [p["payment_category"] for p in rent_only["payments"]] == ["Rent"]
        assert rent_only["payments"][0]["payment_mode"] == "Cash & UPI"

    def test_booking_summary_csv(self, db_session, event_session, stall_booking, admin_client):
        resp = admin_client.get('/report/bookings/csv')
        rows = _csv_rows(resp)
        assert len(rows) == 2
        assert rows[1][0] == stall_booking.exhibitor_name

    def test_exhibitor_report_sorted_by_name(self, db_session, event_session, make_booking, stall_space, pavilion_space, admin_client):
        make_booking(stall_space, exhibitor_name="Bright Foods")
        make_booking(pavilion_space, exhibitor_name="Acme Crafts")

        resp = admin_client.get('/report/exhibitors')
        names = [row["exhibitor_name"] for row in resp.get_json()["exhibitors"]]
        assert names == ["Acme Crafts", "Bright Foods"]

    def test_booking_list_puts_pavilions_first(self, db_session, event_session, make_booking, login_as):
        stall = Space(type="Stall", name="A-01", rent_amount=100)
        pavilion = Space(type="Pavilion", name="Z-01", rent_amount=100)
        db_session.add_all([stall, pavilion])
        db_session.commit()
        make_booking(stall, exhibitor_name="Stall Holder")
        make_booking(pavilion, exhibitor_name="Pavilion Holder")

        resp = login_as("booking_manager").get('/booking')
        names = [row["exhibitor_name"] for row in resp.get_json()["bookings"]]
        assert names == ["Pavilion Holder", "Stall Holder"]


# =============================================================================
# DASHBOARD AND AUDIT TRAIL
# =============================================================================

class TestDashboardAndLogs:

    def test_dashboard_summary(self, db_session, event_session, stall_booking, admin_client):
        resp = admin_client.get('/dashboard')
        assert resp.status_code == 200
        data = resp.get_json()
        assert "recent_activity" in data
        assert data["pending_approvals"] == []
        assert data["scope"]["active"]["id"] == event_session.id

    def test_audit_log_records_booking(self, db_session, event_session, stall_booking, admin_client):
        resp = admin_client.get('/report/logs?q=booking_created')
        logs = resp.get_json()["logs"]
        assert len(logs) == 1
        assert logs[0]["event_session_id"] == event_session.id
