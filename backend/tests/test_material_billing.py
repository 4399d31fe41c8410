"""
Material issue/return billing tests.

Covers the free quota per space type, paid surcharges folded into both the
day's issue record and the booking due, returns that strip asset numbers but
keep charges, and the scan endpoints' success/message contract.
"""

import io

import pytest

from fairdesk.extensions import db
from fairdesk.models import Booking, MaterialDefaults, MaterialIssueRecord, MaterialStockItem
from fairdesk.models.materials import STOCK_AVAILABLE, STOCK_DAMAGED, STOCK_ISSUED
from fairdesk.services import material_service
from fairdesk.services.concurrency import run_atomic
from fairdesk.validation import ConflictError, NotFoundError, ValidationError


def _stock(db_session, event_session, name, quantity, location="Hall A"):
    return material_service.create_stock(
        name, quantity=quantity, location=location, event_session_id=event_session.id
    )


def _issue(item, booking, event_session):
    return material_service.issue_item(item.unique_id, booking.client_id, event_session_id=event_session.id)


def _record(booking):
    db.session.expire_all()
    return db.session.query(MaterialIssueRecord).filter_by(client_id=booking.client_id).one()


def _due(booking):
    db.session.expire_all()
    return db.session.get(Booking, booking.id).due_amount


# =============================================================================
# STOCK CREATION
# =============================================================================

class TestStockCreation:
    """Unique ids are name letter + location code + zero-padded sequence."""

    def test_batch_gets_sequential_ids(self, db_session, event_session):
        items = _stock(db_session, event_session, "Table", 3)
        assert [i.unique_id for i in items] == ["THAL001", "THAL002", "THAL003"]
        assert all(i.status == STOCK_AVAILABLE for i in items)
        assert items[0].asset_number == "HAL001"

    def test_short_location_is_padded(self, db_session, event_session):
        items = _stock(db_session, event_session, "chair", 1, location="B")
        assert items[0].unique_id == "CBXX001"

    def test_sequence_continues_after_existing_items(self, db_session, event_session):
        _stock(db_session, event_session, "Table", 2)
        more = _stock(db_session, event_session, "Table", 1)
        assert more[0].unique_id == "THAL003"

    def test_qr_file_written(self, app, db_session, event_session):
        item = _stock(db_session, event_session, "Table", 1)[0]
        assert item.qr_code_path

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1001])
    def test_bad_quantity_rejected(self, db_session, event_session, quantity):
        with pytest.raises(ValidationError):
            material_service.create_stock("Table", quantity=quantity, event_session_id=event_session.id)

    def test_blank_name_rejected(self, db_session, event_session):
        with pytest.raises(ValidationError):
            material_service.create_stock("  ", quantity=1, event_session_id=event_session.id)


# =============================================================================
# FREE QUOTA AND SURCHARGES
# =============================================================================

class TestIssueBilling:
    """Tables: 1 free (2 for pavilions) then 600 each. Chairs: 2 free then 100 each."""

    def test_first_table_free_second_billed(self, db_session, event_session, stall_booking):
        t1, t2 = _stock(db_session, event_session, "Table", 2)

        _issue(t1, stall_booking, event_session)
        record = _record(stall_booking)
        assert record.table_free == 1
        assert record.table_paid == 0
        assert record.total_payable == 0
        assert _due(stall_booking) == pytest.approx(1000.0)

        _issue(t2, stall_booking, event_session)
        record = _record(stall_booking)
        assert record.table_free == 1
        assert record.table_paid == 1
        assert record.total_payable == pytest.approx(600.0)
        assert record.balance_due == pytest.approx(600.0)
        assert record.table_numbers == "HAL001,HAL002"
        assert _due(stall_booking) == pytest.approx(1600.0)

    def test_pavilion_gets_two_free_tables(self, db_session, event_session, pavilion_booking):
        tables = _stock(db_session, event_session, "Table", 3)
        for item in tables:
            _issue(item, pavilion_booking, event_session)

        record = _record(pavilion_booking)
        assert record.table_free == 2
        assert record.table_paid == 1
        assert record.total_payable == pytest.approx(600.0)
        assert _due(pavilion_booking) == pytest.approx(5000.0 + 600.0)

    def test_chairs_two_free_then_billed(self, db_session, event_session, stall_booking):
        chairs = _stock(db_session, event_session, "Chair", 3)
        for item in chairs:
            _issue(item, stall_booking, event_session)

        record = _record(stall_booking)
        assert record.chair_free == 2
        assert record.chair_paid == 1
        assert record.total_payable == pytest.approx(100.0)
        assert record.chair_numbers == "HAL001,HAL002,HAL003"

    def test_plywood_counted_never_billed(self, db_session, event_session, stall_booking):
        sheets = _stock(db_session, event_session, "Plywood Sheet", 2)
        for item in sheets:
            _issue(item, stall_booking, event_session)

        record = _record(stall_booking)
        assert record.plywood_free == 2
        assert record.total_payable == 0
        assert record.table_numbers is None
        assert _due(stall_booking) == pytest.approx(1000.0)

    def test_unclassified_item_touches_no_record(self, db_session, event_session, stall_booking):
        carpet = _stock(db_session, event_session, "Carpet", 1)[0]
        item, message = _issue(carpet, stall_booking, event_session)

        assert item.status == STOCK_ISSUED
        assert "Carpet" in message
        assert db.session.query(MaterialIssueRecord).count() == 0

    def test_quota_name_match_is_case_insensitive(self, db_session, event_session, stall_booking):
        upper = _stock(db_session, event_session, "TABLE", 1)[0]
        lower = _stock(db_session, event_session, "table", 1, location="Hall B")[0]
        _issue(upper, stall_booking, event_session)
        _issue(lower, stall_booking, event_session)

        assert _record(stall_booking).table_paid == 1

    def test_quotes_taken_before_apply_share_the_quota(self, db_session, event_session, stall_booking):
        """Two scans priced before either is applied both see zero issued tables."""
        t1, t2 = _stock(db_session, event_session, "Table", 2)
        q1 = material_service.price_issue(t1.unique_id, stall_booking.client_id, event_session_id=event_session.id)
        q2 = material_service.price_issue(t2.unique_id, stall_booking.client_id, event_session_id=event_session.id)
        assert not q1.billable and not q2.billable

        for quote in (q1, q2):
            run_atomic(lambda quote=quote: material_service.apply_issue(quote, event_session_id=event_session.id))

        record = _record(stall_booking)
        assert record.table_free == 2
        assert record.total_payable == 0

    def test_quote_reports_limit_and_cost(self, db_session, event_session, stall_booking):
        t1, t2 = _stock(db_session, event_session, "Table", 2)
        _issue(t1, stall_booking, event_session)
        quote = material_service.price_issue(t2.unique_id, stall_booking.client_id, event_session_id=event_session.id)

        assert quote.already_issued == 1
        assert quote.free_limit == 1
        assert quote.billable
        assert quote.unit_cost == pytest.approx(600.0)
        assert quote.booking_id == stall_booking.id


# =============================================================================
# ISSUE ERRORS
# =============================================================================

class TestIssueErrors:

    def test_unknown_item(self, db_session, event_session, stall_booking):
        with pytest.raises(NotFoundError):
            material_service.issue_item("ZZZZ999", stall_booking.client_id, event_session_id=event_session.id)

    def test_unknown_client(self, db_session, event_session):
        item = _stock(db_session, event_session, "Table", 1)[0]
        with pytest.raises(NotFoundError):
            material_service.issue_item(item.unique_id, 9999, event_session_id=event_session.id)

    def test_already_issued(self, db_session, event_session, stall_booking):
        item = _stock(db_session, event_session, "Table", 1)[0]
        _issue(item, stall_booking, event_session)
        with pytest.raises(ConflictError):
            _issue(item, stall_booking, event_session)

    @pytest.mark.parametrize("unique_id,client_id", [("", 1), ("THAL001", None)])
    def test_missing_fields(self, db_session, event_session, unique_id, client_id):
        with pytest.raises(ValidationError):
            material_service.issue_item(unique_id, client_id, event_session_id=event_session.id)

    def test_failed_issue_leaves_no_partial_writes(self, db_session, event_session, stall_booking):
        item = _stock(db_session, event_session, "Table", 1)[0]
        _issue(item, stall_booking, event_session)
        with pytest.raises(ConflictError):
            _issue(item, stall_booking, event_session)
        assert _record(stall_booking).table_free == 1
        assert _due(stall_booking) == pytest.approx(1000.0)


# =============================================================================
# RETURNS
# =============================================================================

class TestReturn:

    def test_return_strips_asset_number_keeps_charge(self, db_session, event_session, stall_booking):
        t1, t2 = _stock(db_session, event_session, "Table", 2)
        _issue(t1, stall_booking, event_session)
        _issue(t2, stall_booking, event_session)

        item, message = material_service.return_item(t2.unique_id, "Damaged", event_session_id=event_session.id)
        assert item.status == STOCK_DAMAGED
        assert item.issued_to_client_id is None
        assert "Damaged" in message

        record = _record(stall_booking)
        assert record.table_numbers == "HAL001"
        assert record.table_paid == 1
        assert record.total_payable == pytest.approx(600.0)
        assert _due(stall_booking) == pytest.approx(1600.0)

    @pytest.mark.parametrize("status", [None, "", "available", "something-else"])
    def test_anything_but_damaged_returns_available(self, db_session, event_session, stall_booking, status):
        item = _stock(db_session, event_session, "Chair", 1)[0]
        _issue(item, stall_booking, event_session)
        returned, _message = material_service.return_item(item.unique_id, status, event_session_id=event_session.id)
        assert returned.status == STOCK_AVAILABLE

    def test_return_of_available_item_conflicts(self, db_session, event_session):
        item = _stock(db_session, event_session, "Table", 1)[0]
        with pytest.raises(ConflictError):
            material_service.return_item(item.unique_id, None, event_session_id=event_session.id)

    def test_return_unknown_item(self, db_session, event_session):
        with pytest.raises(NotFoundError):
            material_service.return_item("NOPE001", None, event_session_id=event_session.id)

    def test_returned_item_frees_quota(self, db_session, event_session, stall_booking):
        t1, t2 = _stock(db_session, event_session, "Table", 2)
        _issue(t1, stall_booking, event_session)
        material_service.return_item(t1.unique_id, None, event_session_id=event_session.id)
        _issue(t2, stall_booking, event_session)

        record = _record(stall_booking)
        assert record.table_free == 2
        assert record.total_payable == 0


# =============================================================================
# STOCK DELETION
# =============================================================================

class TestStockDeletion:

    def test_issued_item_cannot_be_deleted(self, db_session, event_session, stall_booking):
        item = _stock(db_session, event_session, "Table", 1)[0]
        _issue(item, stall_booking, event_session)
        with pytest.raises(ConflictError):
            material_service.delete_stock(item.id)

    def test_write_off_requires_damaged(self, db_session, event_session, stall_booking):
        item = _stock(db_session, event_session, "Table", 1)[0]
        with pytest.raises(ConflictError):
            material_service.delete_stock(item.id, write_off=True)

        _issue(item, stall_booking, event_session)
        material_service.return_item(item.unique_id, "Damaged", event_session_id=event_session.id)
        material_service.delete_stock(item.id, write_off=True)
        assert db.session.get(MaterialStockItem, item.id) is None


# =============================================================================
# SCAN ENDPOINTS
# =============================================================================

class TestScanEndpoints:
    """Scan endpoints always answer {"success", "message"}."""

    def test_issue_and_return_round(self, db_session, event_session, stall_booking, login_as):
        item = _stock(db_session, event_session, "Table", 1)[0]
        client = login_as("material_handler")

        resp = client.post('/materials/issue', json={'unique_id': item.unique_id, 'client_id': stall_booking.client_id})
        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

        resp = client.post('/materials/issue', json={'unique_id': item.unique_id, 'client_id': stall_booking.client_id})
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["success"] is False
        assert "already Issued" in body["message"]

        resp = client.post('/materials/return', json={'unique_id': item.unique_id, 'status': 'Available'})
        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

    def test_unknown_item_is_404(self, db_session, event_session, stall_booking, login_as):
        client = login_as("material_handler")
        resp = client.post('/materials/issue', json={'unique_id': 'NOPE001', 'client_id': stall_booking.client_id})
        assert resp.status_code == 404
        assert resp.get_json()["success"] is False

    def test_missing_fields_is_400(self, db_session, event_session, login_as):
        client = login_as("material_handler")
        resp = client.post('/materials/issue', json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "Unique ID and Client ID are required."}

    def test_accountant_cannot_scan(self, db_session, event_session, login_as):
        client = login_as("accountant")
        resp = client.post('/materials/issue', json={'unique_id': 'X', 'client_id': 1})
        assert resp.status_code == 403

    def test_numeric_unique_id_is_404_not_500(self, db_session, event_session, stall_booking, login_as):
        client = login_as("material_handler")
        resp = client.post('/materials/issue', json={'unique_id': 12345, 'client_id': stall_booking.client_id})
        assert resp.status_code == 404
        assert resp.get_json()["success"] is False

        resp = client.post('/materials/return', json={'unique_id': 12345, 'status': 'Available'})
        assert resp.status_code == 404
        assert resp.get_json()["success"] is False

    def test_numeric_scan_matches_existing_id(self, db_session, event_session):
        item = _stock(db_session, event_session, "Table", 1)[0]
        db.session.query(MaterialStockItem).filter_by(id=item.id).update({"unique_id": "42"})
        db.session.commit()
        assert material_service.get_item_by_unique_id(42).id == item.id

    def test_issue_clients_listing(self, db_session, event_session, stall_booking, login_as):
        resp = login_as("material_handler").get('/materials/clients')
        assert resp.status_code == 200
        assert [c["id"] for c in resp.get_json()["clients"]] == [stall_booking.client_id]

    def test_non_utf8_csv_upload_is_400(self, db_session, event_session, login_as):
        resp = login_as("material_handler").post(
            '/materials/stock/import',
            data={'file': (io.BytesIO(b"name,quantity\n\xff\xfeTable,1\n"), 'stock.csv')},
            content_type='multipart/form-data',
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "CSV must be UTF-8 encoded"}
        assert db.session.query(MaterialStockItem).count() == 0


# =============================================================================
# DEFAULTS
# =============================================================================

class TestDefaults:

    def test_lookup_inside_failed_unit_of_work_rolls_back(self, db_session):
        def _op():
            material_service.get_defaults()
            raise ValidationError("boom")

        with pytest.raises(ValidationError):
            run_atomic(_op)
        assert db.session.query(MaterialDefaults).count() == 0

    def test_update_persists(self, db_session):
        material_service.update_defaults({"free_chairs": 3})
        db.session.expire_all()
        assert db.session.get(MaterialDefaults, 1).free_chairs == 3
