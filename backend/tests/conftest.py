"""
Pytest fixtures for fairdesk backend tests.

Provides an in-memory database, an active event session, spaces, bookings,
users per role and logged-in test clients.
"""

import pytest

from fairdesk import create_app
from fairdesk.extensions import db
from fairdesk.models import EventSession, Space
from fairdesk.models.auth import ROLES
from fairdesk.services import auth_service, booking_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    qr_dir = tmp_path_factory.mktemp("qrcodes")
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'APPLY_COLUMN_PATCHES': False,
        'BCRYPT_ROUNDS': 4,
        'QR_CODE_DIR': str(qr_dir),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def event_session(db_session):
    """The active (writable) event session."""
    event_session = EventSession(name="Fair 2026", location="Town Ground", is_active=True)
    db_session.add(event_session)
    db_session.commit()
    return event_session


@pytest.fixture(scope='function')
def archived_session(db_session, event_session):
    """An older, inactive event session."""
    event_session = EventSession(name="Fair 2025", location="Town Ground", is_active=False)
    db_session.add(event_session)
    db_session.commit()
    return event_session


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("booking_manager") -> User with TEST_PASSWORD."""
    def _make(role: str, username: str | None = None):
        return auth_service.create_user(username or f"{role}_user", TEST_PASSWORD, role)
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin", "admin")


def login(client, username: str, password: str = TEST_PASSWORD):
    """Helper to log a test client in; returns the response."""
    return client.post('/login', json={'username': username, 'password': password})


@pytest.fixture(scope='function')
def login_as(app, make_user, event_session):
    """Factory: login_as("accountant") -> a test client logged in with that role."""
    def _login(role: str):
        user = make_user(role)
        role_client = app.test_client()
        resp = login(role_client, user.username)
        assert resp.status_code == 200, resp.get_json()
        return role_client
    return _login


@pytest.fixture(scope='function')
def admin_client(login_as):
    return login_as("admin")


@pytest.fixture(scope='function')
def stall_space(db_session):
    space = Space(type="Stall", name="S-01", size="10x10", rent_amount=1000.0)
    db_session.add(space)
    db_session.commit()
    return space


@pytest.fixture(scope='function')
def pavilion_space(db_session):
    space = Space(type="Pavilion", name="P-01", size="30x20", rent_amount=5000.0)
    db_session.add(space)
    db_session.commit()
    return space


@pytest.fixture(scope='function')
def make_booking(db_session, event_session):
    """Factory: make_booking(space, rent_amount=..., ...) -> Booking in the active session."""
    def _make(space, **overrides):
        payload = {
            "space_id": space.id,
            "exhibitor_name": overrides.pop("exhibitor_name", f"Exhibitor {space.name}"),
            "facia_name": overrides.pop("facia_name", f"Facia {space.name}"),
            "contact_person": "Contact",
            "contact_number": "9999999999",
        }
        payload.update(overrides)
        return booking_service.create_booking(payload, event_session_id=event_session.id)
    return _make


@pytest.fixture(scope='function')
def stall_booking(make_booking, stall_space):
    return make_booking(stall_space)


@pytest.fixture(scope='function')
def pavilion_booking(make_booking, pavilion_space):
    return make_booking(pavilion_space)


def all_roles():
    return list(ROLES)
