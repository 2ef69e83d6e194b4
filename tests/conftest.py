"""
Pytest configuration and shared fixtures for testing the hotel backend.
"""
import os

# keep the application's own engine off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hotel.database import Base
from hotel.main import app
from hotel.deps import get_db
from hotel.security import get_password_hash
from hotel.circuit_breaker import booking_circuit_breaker
from hotel.services.bookings import BookingLifecycleManager
from hotel.services.sessions import SessionManager
from hotel import models


# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_PASSWORD = "Str0ng!Key1"
STAFF_PASSWORD = "Str0ng!Key2"
GUEST_PASSWORD = "Str0ng!Key3"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    booking_circuit_breaker.close()
    yield
    booking_circuit_breaker.close()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock(datetime.now())


@pytest.fixture
def session_manager(clock):
    return SessionManager(clock=clock)


@pytest.fixture(scope="function")
def client(db_session, session_manager):
    """
    Create a test client with the test database and a fresh session manager.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.sessions = session_manager
    app.state.limiter.enabled = False
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session, username, password, role, fullname):
    user = models.User(
        username=username,
        hashed_password=get_password_hash(password),
        role=role.value,
        fullname=fullname,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    """
    Create an admin user for testing.
    """
    return _make_user(db_session, "admin", ADMIN_PASSWORD, models.Role.ADMIN, "Admin User")


@pytest.fixture
def staff_user(db_session):
    """
    Create a staff member for testing.
    """
    return _make_user(db_session, "frontdesk", STAFF_PASSWORD, models.Role.STAFF, "Front Desk")


@pytest.fixture
def guest_user(db_session):
    """
    Create a guest for testing.
    """
    return _make_user(db_session, "johndoe", GUEST_PASSWORD, models.Role.GUEST, "John Doe")


def _login(client, username, password) -> str:
    response = client.post(
        "/users/login",
        params={"username": username, "password": password},
    )
    return response.json()["access_token"]


@pytest.fixture
def admin_token(client, admin_user):
    """
    Get an admin authentication token.
    """
    return _login(client, "admin", ADMIN_PASSWORD)


@pytest.fixture
def staff_token(client, staff_user):
    """
    Get a staff authentication token.
    """
    return _login(client, "frontdesk", STAFF_PASSWORD)


@pytest.fixture
def guest_token(client, guest_user):
    """
    Get a guest authentication token.
    """
    return _login(client, "johndoe", GUEST_PASSWORD)


@pytest.fixture
def sample_room(db_session):
    """
    Create a Standard room at $100/night.
    """
    room = models.Room(
        room_number="101",
        type=models.RoomType.STANDARD.value,
        price=100.0,
        status=models.RoomStatus.AVAILABLE.value,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_rooms(db_session):
    """
    Create multiple rooms for testing.
    """
    rooms = [
        models.Room(room_number="102", type=models.RoomType.DELUXE.value, price=150.0,
                    status=models.RoomStatus.AVAILABLE.value),
        models.Room(room_number="201", type=models.RoomType.SUITE.value, price=250.0,
                    status=models.RoomStatus.AVAILABLE.value),
        models.Room(room_number="202", type=models.RoomType.DELUXE.value, price=150.0,
                    status=models.RoomStatus.MAINTENANCE.value),
    ]
    for room in rooms:
        db_session.add(room)
    db_session.commit()
    for room in rooms:
        db_session.refresh(room)
    return rooms


@pytest.fixture
def stay_dates():
    """A two-night stay starting in ten days."""
    check_in = date.today() + timedelta(days=10)
    return check_in, check_in + timedelta(days=2)


@pytest.fixture
def sample_booking(db_session, guest_user, sample_room, stay_dates):
    """
    Book the sample room for the guest through the lifecycle manager.
    """
    check_in, check_out = stay_dates
    result = BookingLifecycleManager(db_session).create_booking(
        guest_user.username,
        sample_room.room_number,
        check_in,
        check_out,
        models.PaymentMethod.CREDIT_CARD.value,
    )
    assert result.success, result.message
    return result.value
