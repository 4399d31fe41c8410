"""
Spaces, bookings, electric bills and shed tests.

Each charge moves the booking's due by exactly its amount, and reversing it
moves the due back.
"""

import pytest

from fairdesk.extensions import db
from fairdesk.models import Booking, Shed, Space
from fairdesk.models.venue import SHED_ALLOCATED, SHED_AVAILABLE, SPACE_AVAILABLE, SPACE_BOOKED
from fairdesk.services import booking_service, electric_service, reporting_service, shed_service
from fairdesk.services.concurrency import run_atomic
from fairdesk.validation import ConflictError, NotFoundError, ValidationError


def _booking(booking):
    db.session.expire_all()
    return db.session.get(Booking, booking.id)


# =============================================================================
# BOOKINGS
# =============================================================================

class TestBookings:

    def test_due_is_rent_minus_discount_and_advance(self, make_booking, stall_space):
        booking = make_booking(stall_space, rent_amount=1000, discount=100, advance_amount=300)
        assert booking.due_amount == pytest.approx(600.0)

    def test_rent_defaults_to_space_rent(self, stall_booking):
        assert stall_booking.rent_amount == pytest.approx(1000.0)
        assert stall_booking.due_amount == pytest.approx(1000.0)

    def test_space_marked_booked(self, stall_booking, stall_space):
        db.session.expire_all()
        assert db.session.get(Space, stall_space.id).status == SPACE_BOOKED

    def test_space_booked_once_per_session(self, stall_booking, make_booking, stall_space):
        with pytest.raises(ConflictError):
            make_booking(stall_space)

    def test_same_space_free_in_another_session(self, db_session, archived_session, stall_booking, stall_space):
        booking = booking_service.create_booking(
            {"space_id": stall_space.id, "exhibitor_name": "Old", "contact_person": "C", "contact_number": "1"},
            event_session_id=archived_session.id,
        )
        assert booking.event_session_id == archived_session.id

    @pytest.mark.parametrize("missing", ["exhibitor_name", "contact_person", "contact_number"])
    def test_required_fields(self, db_session, event_session, stall_space, missing):
        payload = {"space_id": stall_space.id, "exhibitor_name": "A", "contact_person": "B", "contact_number": "1"}
        payload.pop(missing)
        with pytest.raises(ValidationError):
            booking_service.create_booking(payload, event_session_id=event_session.id)

    def test_unknown_space(self, db_session, event_session):
        with pytest.raises(NotFoundError):
            booking_service.create_booking(
                {"space_id": 999, "exhibitor_name": "A", "contact_person": "B", "contact_number": "1"},
                event_session_id=event_session.id,
            )

    def test_delete_frees_space(self, stall_booking, stall_space):
        booking_service.delete_booking(stall_booking.id)
        db.session.expire_all()
        assert db.session.get(Space, stall_space.id).status == SPACE_AVAILABLE

    def test_details_have_neighbours(self, make_booking, stall_space, pavilion_space):
        stall = make_booking(stall_space)
        pavilion = make_booking(pavilion_space)
        details = booking_service.get_booking_details(stall.id)
        assert details["previous_id"] == pavilion.id
        assert details["next_id"] is None
        assert details["financials"]["rent"]["due"] == pytest.approx(1000.0)

    def test_create_via_api(self, db_session, event_session, stall_space, login_as):
        resp = login_as("booking_manager").post('/booking', json={
            'space_id': stall_space.id,
            'exhibitor_name': 'Acme Crafts',
            'contact_person': 'Asha',
            'contact_number': '9876543210',
            'discount': 50,
        })
        assert resp.status_code == 201
        assert resp.get_json()["booking"]["due_amount"] == pytest.approx(950.0)


# =============================================================================
# ELECTRIC BILLS
# =============================================================================

class TestElectricBills:

    def test_total_from_catalogue(self, db_session, event_session, stall_booking):
        item = electric_service.create_item({"name": "Tube 40 watts", "service_charge": 750, "fitting_charge": 250})
        bill = electric_service.create_bill(
            {"booking_id": stall_booking.id, "items": [{"item_id": item.id, "quantity": 2}]},
            event_session_id=event_session.id,
        )
        assert bill.total_amount == pytest.approx(2000.0)
        assert _booking(stall_booking).due_amount == pytest.approx(3000.0)

    def test_items_accepted_as_json_text(self, db_session, event_session, stall_booking):
        bill = electric_service.create_bill(
            {
                "booking_id": stall_booking.id,
                "items": '[{"name": "Fan", "quantity": 1, "service_charge": 2300, "fitting_charge": 0}]',
            },
            event_session_id=event_session.id,
        )
        assert bill.total_amount == pytest.approx(2300.0)
        assert bill.items[0]["name"] == "Fan"

    def test_missing_items(self, db_session, event_session, stall_booking):
        with pytest.raises(ValidationError):
            electric_service.create_bill({"booking_id": stall_booking.id, "items": []}, event_session_id=event_session.id)

    def test_delete_restores_due(self, db_session, event_session, stall_booking):
        bill = electric_service.create_bill(
            {"booking_id": stall_booking.id, "items": [{"name": "Fan"}], "total_amount": 400},
            event_session_id=event_session.id,
        )
        electric_service.delete_bill(bill.id)
        assert _booking(stall_booking).due_amount == pytest.approx(1000.0)

    def test_moving_bill_moves_charge(self, db_session, event_session, make_booking, stall_space, pavilion_space):
        first = make_booking(stall_space)
        second = make_booking(pavilion_space)
        bill = electric_service.create_bill(
            {"booking_id": first.id, "items": [{"name": "Fan"}], "total_amount": 400},
            event_session_id=event_session.id,
        )

        def _op():
            return electric_service.apply_bill_edit(bill.id, {"booking_id": second.id})

        run_atomic(_op)

        assert _booking(first).due_amount == pytest.approx(1000.0)
        assert _booking(second).due_amount == pytest.approx(5400.0)

    def test_seed_default_items_once(self, db_session):
        assert electric_service.seed_default_items() == len(electric_service.DEFAULT_ELECTRIC_ITEMS)
        assert electric_service.seed_default_items() == 0


# =============================================================================
# SHEDS
# =============================================================================

class TestSheds:

    @pytest.fixture
    def shed(self, db_session):
        return shed_service.create_shed({"name": "Shed A-9", "size": "10x10", "rent": 5000})

    def test_allocate_and_release(self, event_session, stall_booking, shed):
        allocation = shed_service.allocate_shed(shed.id, stall_booking.id, event_session_id=event_session.id)
        assert _booking(stall_booking).due_amount == pytest.approx(6000.0)
        assert db.session.get(Shed, shed.id).status == SHED_ALLOCATED

        shed_service.delete_allocation(allocation.id, event_session_id=event_session.id)
        assert _booking(stall_booking).due_amount == pytest.approx(1000.0)
        assert db.session.get(Shed, shed.id).status == SHED_AVAILABLE

    def test_rent_edit_keeps_charged_rent(self, event_session, stall_booking, shed):
        allocation = shed_service.allocate_shed(shed.id, stall_booking.id, event_session_id=event_session.id)
        shed_service.update_shed(shed.id, {"rent": 7000})

        assert allocation.to_dict()["rent"] == pytest.approx(5000.0)
        assert _booking(stall_booking).due_amount == pytest.approx(6000.0)
        assert reporting_service.check_dues(event_session.id) == []

        shed_service.delete_allocation(allocation.id, event_session_id=event_session.id)
        assert _booking(stall_booking).due_amount == pytest.approx(1000.0)
        assert reporting_service.check_dues(event_session.id) == []

    def test_shed_allocated_once(self, event_session, make_booking, stall_space, pavilion_space, shed):
        shed_service.allocate_shed(shed.id, make_booking(stall_space).id, event_session_id=event_session.id)
        with pytest.raises(ConflictError):
            shed_service.allocate_shed(shed.id, make_booking(pavilion_space).id, event_session_id=event_session.id)

    def test_allocated_shed_cannot_be_deleted(self, event_session, stall_booking, shed):
        shed_service.allocate_shed(shed.id, stall_booking.id, event_session_id=event_session.id)
        with pytest.raises(ConflictError):
            shed_service.delete_shed(shed.id)

    def test_duplicate_shed_name(self, shed):
        with pytest.raises(ConflictError):
            shed_service.create_shed({"name": "Shed A-9", "rent": 100})

    def test_shed_bills_move_due(self, event_session, stall_booking):
        bill = shed_service.create_bill(
            {"booking_id": stall_booking.id, "description": "Extra lighting", "amount": 250},
            event_session_id=event_session.id,
        )
        assert _booking(stall_booking).due_amount == pytest.approx(1250.0)

        shed_service.update_bill(bill.id, {"amount": 400}, event_session_id=event_session.id)
        assert _booking(stall_booking).due_amount == pytest.approx(1400.0)

        shed_service.delete_bill(bill.id, event_session_id=event_session.id)
        assert _booking(stall_booking).due_amount == pytest.approx(1000.0)

    @pytest.mark.parametrize("payload", [
        {"description": "x", "amount": 10},
        {"booking_id": 1, "amount": 10},
        {"booking_id": 1, "description": "x", "amount": 0},
    ])
    def test_invalid_shed_bill(self, event_session, payload):
        with pytest.raises(ValidationError):
            shed_service.create_bill(payload, event_session_id=event_session.id)

    def test_allocate_via_api(self, stall_booking, shed, login_as):
        resp = login_as("booking_manager").post('/shed/allocate', json={'shed_id': shed.id, 'booking_id': stall_booking.id})
        assert resp.status_code == 201
        listing = login_as("admin").get('/shed').get_json()
        assert listing["allocations"][0]["booking_id"] == stall_booking.id
