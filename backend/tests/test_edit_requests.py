"""
Edit approval workflow tests.

Non-admin edits of money-bearing rows are queued; approval applies them with
the same code path as a direct admin edit.
"""

import pytest

from fairdesk.extensions import db
from fairdesk.models import Booking, EditRequest
from fairdesk.models.edits import EDIT_APPROVED, EDIT_PENDING, EDIT_REJECTED
from fairdesk.services import edit_request_service, electric_service, material_service
from fairdesk.validation import ConflictError, NotFoundError, ValidationError


def _booking(booking):
    db.session.expire_all()
    return db.session.get(Booking, booking.id)


def _edit_payload(booking, **changes):
    payload = {
        "exhibitor_name": booking.exhibitor_name,
        "contact_person": booking.contact_person,
        "contact_number": booking.contact_number,
        "rent_amount": booking.rent_amount,
        "discount": booking.discount,
        "advance_amount": booking.advance_amount,
    }
    payload.update(changes)
    return payload


# =============================================================================
# SUBMIT / APPROVE / REJECT
# =============================================================================

class TestBookingEditFlow:

    def test_manager_edit_is_queued(self, db_session, event_session, stall_booking, login_as):
        client = login_as("booking_manager")
        resp = client.put(f'/booking/{stall_booking.id}', json=_edit_payload(stall_booking, discount=200))
        assert resp.status_code == 202
        body = resp.get_json()
        assert body["applied"] is False
        assert body["edit_request"]["proposed_data"]["discount"] == 200
        assert _booking(stall_booking).discount == 0

        notes = client.get('/edits/notifications').get_json()["notifications"]
        assert [n["status"] for n in notes] == [EDIT_PENDING]

    def test_admin_approval_applies_patch(self, db_session, event_session, stall_booking, login_as, admin_client):
        login_as("booking_manager").put(f'/booking/{stall_booking.id}', json=_edit_payload(stall_booking, discount=200))
        pending = admin_client.get('/edits/pending').get_json()["edit_requests"]
        assert len(pending) == 1
        assert pending[0]["exhibitor_name"] == stall_booking.exhibitor_name

        resp = admin_client.post(f'/edits/{pending[0]["id"]}/approve')
        assert resp.status_code == 200

        booking = _booking(stall_booking)
        assert booking.discount == pytest.approx(200.0)
        assert booking.due_amount == pytest.approx(800.0)
        assert db.session.get(EditRequest, pending[0]["id"]).status == EDIT_APPROVED

    def test_approval_keeps_charges_in_due(self, db_session, event_session, stall_booking, admin_user):
        electric_service.create_bill(
            {"booking_id": stall_booking.id, "items": [{"name": "Fan"}], "total_amount": 300},
            event_session_id=event_session.id,
        )
        row = edit_request_service.submit_edit(
            "booking", stall_booking.id, _edit_payload(stall_booking, rent_amount=1500), user=admin_user
        )
        edit_request_service.approve_edit(row.id, admin=admin_user)
        assert _booking(stall_booking).due_amount == pytest.approx(1500.0 + 300.0)

    def test_reject_records_reason(self, db_session, event_session, stall_booking, login_as, admin_client):
        manager = login_as("booking_manager")
        resp = manager.put(f'/booking/{stall_booking.id}', json=_edit_payload(stall_booking, discount=999))
        edit_id = resp.get_json()["edit_request"]["id"]

        resp = admin_client.post(f'/edits/{edit_id}/reject', json={'rejection_reason': 'Not agreed'})
        assert resp.status_code == 200
        assert resp.get_json()["edit_request"]["status"] == EDIT_REJECTED

        notes = manager.get('/edits/notifications').get_json()["notifications"]
        assert notes[0]["rejection_reason"] == "Not agreed"

        assert manager.post(f'/edits/{edit_id}/dismiss').status_code == 200
        assert manager.get('/edits/notifications').get_json()["notifications"] == []

    def test_decided_request_cannot_be_processed_again(self, db_session, event_session, stall_booking, admin_user):
        row = edit_request_service.submit_edit(
            "booking", stall_booking.id, _edit_payload(stall_booking, discount=10), user=admin_user
        )
        edit_request_service.reject_edit(row.id, None, admin=admin_user)
        with pytest.raises(ConflictError):
            edit_request_service.approve_edit(row.id, admin=admin_user)

    def test_invalid_payload_rejected_at_submit(self, db_session, event_session, stall_booking, login_as):
        resp = login_as("booking_manager").put(
            f'/booking/{stall_booking.id}', json=_edit_payload(stall_booking, discount=-5)
        )
        assert resp.status_code == 400
        assert db.session.query(EditRequest).count() == 0

    def test_pending_request_cannot_be_dismissed(self, db_session, event_session, stall_booking, make_user):
        user = make_user("booking_manager", "bm")
        row = edit_request_service.submit_edit("booking", stall_booking.id, _edit_payload(stall_booking), user=user)
        with pytest.raises(ConflictError):
            edit_request_service.dismiss_notification(row.id, user=user)

    def test_other_users_request_not_dismissable(self, db_session, event_session, stall_booking, make_user):
        owner = make_user("booking_manager", "owner")
        other = make_user("booking_manager", "other")
        row = edit_request_service.submit_edit("booking", stall_booking.id, _edit_payload(stall_booking), user=owner)
        with pytest.raises(NotFoundError):
            edit_request_service.dismiss_notification(row.id, user=other)


# =============================================================================
# OTHER ENTITY TYPES
# =============================================================================

class TestOtherEntities:

    def test_unknown_entity_type(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            edit_request_service.edit_or_request("space", 1, {}, user=admin_user, event_session_id=None)

    def test_missing_entity(self, db_session, make_user):
        user = make_user("accountant", "acc")
        with pytest.raises(NotFoundError):
            edit_request_service.submit_edit("payment", 999, {"cash_paid": 10}, user=user)

    def test_electric_bill_edit_moves_due(self, db_session, event_session, stall_booking, admin_user):
        bill = electric_service.create_bill(
            {"booking_id": stall_booking.id, "items": [{"name": "Fan"}], "total_amount": 300},
            event_session_id=event_session.id,
        )
        applied, updated = edit_request_service.edit_or_request(
            "electric_bill", bill.id, {"total_amount": 500}, user=admin_user, event_session_id=event_session.id
        )
        assert applied
        assert updated.total_amount == pytest.approx(500.0)
        assert _booking(stall_booking).due_amount == pytest.approx(1500.0)

    def test_material_issue_edit_via_handler(self, db_session, event_session, stall_booking, login_as):
        record = material_service.create_issue_record(
            {"client_id": stall_booking.client_id, "issue_date": "2026-01-20", "table_paid": 1, "total_payable": 600},
            event_session_id=event_session.id,
        )
        resp = login_as("material_handler").put(f'/materials/issues/{record.id}', json={
            "client_id": stall_booking.client_id,
            "issue_date": "2026-01-20",
            "table_paid": 2,
            "total_payable": 1200,
        })
        assert resp.status_code == 202
        assert resp.get_json()["edit_request"]["entity_type"] == "material_issue"
