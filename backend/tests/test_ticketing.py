"""
Ticketing tests: rides, stock bundles, distribution, settlement and reversal.
"""

import io
from datetime import date

import pytest

from fairdesk.extensions import db
from fairdesk.models import AccountingTransaction, BookingStaff, TicketDistribution, TicketStock
from fairdesk.models.ticketing import (
    DISTRIBUTION_CANCELLED,
    TICKETS_AVAILABLE,
    TICKETS_DISTRIBUTED,
    TICKETS_SETTLED,
)
from fairdesk.services import ticketing_service
from fairdesk.services.query_helpers import ListFilters
from fairdesk.validation import ConflictError, ValidationError


@pytest.fixture
def staff(db_session):
    member = BookingStaff(name="Ravi", phone="9000000000", role="Ticket seller")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture
def ride(db_session):
    return ticketing_service.add_ride({"name": "Giant Wheel", "rate": 50})


@pytest.fixture
def bundle(db_session, event_session):
    return ticketing_service.add_stock(
        {"rate": 50, "color": "Red", "start_number": 1001, "end_number": 1100},
        event_session_id=event_session.id,
    )


@pytest.fixture
def distribution(event_session, staff, ride, bundle):
    return ticketing_service.distribute(
        {"staff_id": staff.id, "ride_id": ride.id, "stock_id": bundle.id, "distribution_date": "2026-01-20"},
        event_session_id=event_session.id,
    )


def _stock(stock_id):
    db.session.expire_all()
    return db.session.get(TicketStock, stock_id)


def _settle(distribution, event_session, returned, upi=0):
    return ticketing_service.settle(
        distribution.id,
        {"returned_start_number": returned, "upi_amount": upi},
        event_session_id=event_session.id,
    )


# =============================================================================
# RIDES AND STOCK
# =============================================================================

class TestRidesAndStock:

    def test_duplicate_ride_name(self, ride):
        with pytest.raises(ConflictError):
            ticketing_service.add_ride({"name": "Giant Wheel", "rate": 40})

    def test_inactive_ride_cannot_be_distributed(self, event_session, staff, ride, bundle):
        ticketing_service.toggle_ride(ride.id)
        with pytest.raises(ConflictError):
            ticketing_service.distribute(
                {"staff_id": staff.id, "ride_id": ride.id, "stock_id": bundle.id}, event_session_id=event_session.id
            )

    def test_ride_with_distributions_cannot_be_deleted(self, distribution, ride):
        with pytest.raises(ConflictError):
            ticketing_service.delete_ride(ride.id)

    def test_bundle_count(self, bundle):
        assert bundle.ticket_count == 100
        assert bundle.status == TICKETS_AVAILABLE

    @pytest.mark.parametrize("payload", [
        {"rate": 50, "color": "Red", "start_number": 10},
        {"rate": 50, "color": "Red", "start_number": 20, "end_number": 10},
        {"rate": 50, "color": "Red", "start_number": "ten", "end_number": 20},
    ])
    def test_invalid_stock(self, event_session, payload):
        with pytest.raises(ValidationError):
            ticketing_service.add_stock(payload, event_session_id=event_session.id)

    def test_csv_import_all_or_nothing(self, event_session):
        added = ticketing_service.import_stock_csv(
            "50,Red,1,100\n30,Blue,101,200\n", event_session_id=event_session.id
        )
        assert added == 2

        with pytest.raises(ValidationError, match="Row 2"):
            ticketing_service.import_stock_csv("50,Red,201,300\n50,Red,400,300\n", event_session_id=event_session.id)
        assert db.session.query(TicketStock).count() == 2

    def test_non_utf8_csv_upload_is_400(self, event_session, login_as):
        resp = login_as("ticketing_manager").post(
            '/ticketing/stock/import',
            data={'file': (io.BytesIO(b"50,Red,1,100\n\xff\xfe,Blue,101,200\n"), 'tickets.csv')},
            content_type='multipart/form-data',
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "CSV must be UTF-8 encoded"}
        assert db.session.query(TicketStock).count() == 0

    def test_distributed_stock_is_frozen(self, distribution, bundle, event_session):
        with pytest.raises(ConflictError):
            ticketing_service.update_stock(
                bundle.id, {"rate": 60, "color": "Red", "start_number": 1001, "end_number": 1100}
            )
        with pytest.raises(ConflictError):
            ticketing_service.delete_stock(bundle.id)


# =============================================================================
# DISTRIBUTION
# =============================================================================

class TestDistribution:

    def test_distribute_marks_bundle(self, distribution, bundle):
        assert distribution.status == TICKETS_DISTRIBUTED
        assert distribution.distributed_start_number == 1001
        assert distribution.distributed_end_number == 1100
        assert distribution.distribution_date == date(2026, 1, 20)
        assert _stock(bundle.id).status == TICKETS_DISTRIBUTED

    def test_bundle_distributed_only_once(self, distribution, event_session, staff, ride, bundle):
        with pytest.raises(ConflictError):
            ticketing_service.distribute(
                {"staff_id": staff.id, "ride_id": ride.id, "stock_id": bundle.id}, event_session_id=event_session.id
            )

    def test_missing_fields(self, event_session, staff):
        with pytest.raises(ValidationError, match="All fields are required."):
            ticketing_service.distribute({"staff_id": staff.id}, event_session_id=event_session.id)

    def test_recall_returns_bundle(self, distribution, bundle, event_session):
        ticketing_service.delete_distribution(distribution.id, event_session_id=event_session.id)
        assert _stock(bundle.id).status == TICKETS_AVAILABLE
        assert db.session.get(TicketDistribution, distribution.id) is None

    def test_cancel_keeps_row(self, distribution, bundle, event_session):
        row = ticketing_service.cancel_distribution(distribution.id, event_session_id=event_session.id)
        assert row.status == DISTRIBUTION_CANCELLED
        assert _stock(bundle.id).status == TICKETS_AVAILABLE
        with pytest.raises(ConflictError):
            _settle(distribution, event_session, 1050)

    def test_swap_bundle_frees_old_one(self, distribution, bundle, staff, ride, event_session):
        other = ticketing_service.add_stock(
            {"rate": 50, "color": "Blue", "start_number": 2001, "end_number": 2050}, event_session_id=event_session.id
        )
        row = ticketing_service.update_distribution(
            distribution.id, {"staff_id": staff.id, "ride_id": ride.id, "stock_id": other.id}
        )
        assert row.distributed_start_number == 2001
        assert _stock(bundle.id).status == TICKETS_AVAILABLE
        assert _stock(other.id).status == TICKETS_DISTRIBUTED


# =============================================================================
# SETTLEMENT
# =============================================================================

class TestSettlement:

    def test_partial_settlement(self, distribution, bundle, event_session):
        row = _settle(distribution, event_session, 1041, upi=500)

        assert row.status == TICKETS_SETTLED
        assert row.tickets_sold == 40
        assert row.calculated_revenue == pytest.approx(2000.0)
        assert row.upi_amount == pytest.approx(500.0)
        assert row.cash_amount == pytest.approx(1500.0)
        assert row.settlement_date == date(2026, 1, 20)
        assert _stock(bundle.id).status == TICKETS_SETTLED

        remainder = _stock(row.remainder_stock_id)
        assert (remainder.start_number, remainder.end_number) == (1041, 1100)
        assert remainder.status == TICKETS_AVAILABLE
        assert remainder.color == "Red"

        (ledger,) = db.session.query(AccountingTransaction).filter_by(distribution_id=row.id).all()
        assert ledger.category == "Ticket Sales"
        assert ledger.amount == pytest.approx(2000.0)
        assert ledger.transaction_date == date(2026, 1, 20)

    def test_all_sold_leaves_no_remainder(self, distribution, event_session):
        row = _settle(distribution, event_session, 1101)
        assert row.tickets_sold == 100
        assert row.remainder_stock_id is None
        assert db.session.query(TicketStock).count() == 1

    def test_none_sold(self, distribution, event_session):
        row = _settle(distribution, event_session, 1001)
        assert row.tickets_sold == 0
        assert row.calculated_revenue == 0

    @pytest.mark.parametrize("returned", [1000, 1102])
    def test_returned_start_outside_bundle(self, distribution, event_session, returned):
        with pytest.raises(ValidationError):
            _settle(distribution, event_session, returned)

    def test_upi_cannot_exceed_revenue(self, distribution, event_session):
        with pytest.raises(ValidationError):
            _settle(distribution, event_session, 1011, upi=501)

    def test_settle_twice_conflicts(self, distribution, event_session):
        _settle(distribution, event_session, 1011)
        with pytest.raises(ConflictError):
            _settle(distribution, event_session, 1011)

    def test_preview_writes_nothing(self, distribution):
        quote = ticketing_service.quote_settlement(distribution.id, 1021)
        assert quote["tickets_sold"] == 20
        assert quote["total_revenue"] == pytest.approx(1000.0)
        db.session.expire_all()
        assert db.session.get(TicketDistribution, distribution.id).status == TICKETS_DISTRIBUTED

    def test_unsettle_restores_distribution(self, distribution, bundle, event_session):
        settled = _settle(distribution, event_session, 1041, upi=500)
        remainder_id = settled.remainder_stock_id

        row = ticketing_service.unsettle(distribution.id, event_session_id=event_session.id)
        assert row.status == TICKETS_DISTRIBUTED
        assert row.tickets_sold is None
        assert row.remainder_stock_id is None
        assert _stock(bundle.id).status == TICKETS_DISTRIBUTED
        assert db.session.get(TicketStock, remainder_id) is None
        assert db.session.query(AccountingTransaction).count() == 0

    def test_unsettle_refused_once_remainder_handed_out(self, distribution, event_session, staff, ride):
        settled = _settle(distribution, event_session, 1041)
        ticketing_service.distribute(
            {"staff_id": staff.id, "ride_id": ride.id, "stock_id": settled.remainder_stock_id},
            event_session_id=event_session.id,
        )
        with pytest.raises(ConflictError):
            ticketing_service.unsettle(distribution.id, event_session_id=event_session.id)


# =============================================================================
# REPORTS
# =============================================================================

class TestTicketReports:

    def test_daily_sales_groups_by_date(self, event_session, staff, ride, distribution):
        other_ride = ticketing_service.add_ride({"name": "Dragon", "rate": 20})
        other = ticketing_service.add_stock(
            {"rate": 20, "color": "Green", "start_number": 1, "end_number": 50}, event_session_id=event_session.id
        )
        second = ticketing_service.distribute(
            {"staff_id": staff.id, "ride_id": other_ride.id, "stock_id": other.id, "distribution_date": "2026-01-21"},
            event_session_id=event_session.id,
        )
        _settle(distribution, event_session, 1011, upi=100)
        _settle(second, event_session, 26)

        report = ticketing_service.daily_sales(event_session.id, ListFilters())
        assert [day["date"] for day in report["sales_by_date"]] == ["2026-01-21", "2026-01-20"]
        assert report["sales_by_date"][1]["rides"][0]["ride_name"] == "Giant Wheel"
        assert report["grand_total"] == {"revenue": 1000.0, "tickets": 35, "upi": 100.0, "cash": 900.0}

        only_first = ticketing_service.daily_sales(event_session.id, ListFilters(end_date=date(2026, 1, 20)))
        assert len(only_first["sales_by_date"]) == 1

    def test_settle_endpoint(self, distribution, login_as):
        client = login_as("ticketing_manager")
        resp = client.post(
            f'/ticketing/distributions/{distribution.id}/settle',
            json={'returned_start_number': 1011, 'upi_amount': 0},
        )
        assert resp.status_code == 200
        assert resp.get_json()["distribution"]["tickets_sold"] == 10

        overview = client.get('/ticketing/settlements').get_json()
        assert overview["distributions"] == []
        assert overview["settled_distributions"][0]["settled_by"] == "ticketing_manager_user"
