"""
Pytest configuration and shared fixtures for testing the room booking API.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roombook.clock import utcnow
from roombook.database import Base, install_sqlite_locking, json_serializer
from roombook.main import app
from roombook.deps import get_db, get_notifier, get_password_hash
from roombook import models


# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    json_serializer=json_serializer,
)
install_sqlite_locking(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

app.state.limiter.enabled = False


class RecordingNotifier:
    """Notification port that just remembers what it was asked to send."""

    def __init__(self):
        self.sent = []

    def notify(self, user_id, message, kind):
        self.sent.append((user_id, message, kind))

    def kinds_for(self, user_id):
        return [kind for uid, _, kind in self.sent if uid == user_id]


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
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db_session, notifier):
    """
    Create a test client with the test database and a recording notifier.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db_session, name, email, password, role, **extra):
    user = models.User(
        name=name,
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
        **extra,
    )
    user.notification_config = models.NotificationConfig(email_enabled=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def super_admin_user(db_session):
    return make_user(db_session, "Super Admin", "root@example.com", "rootpass123", models.Role.SUPER_ADMIN)


@pytest.fixture
def admin_user(db_session):
    """
    Create an admin user for testing.
    """
    return make_user(db_session, "Admin User", "admin@example.com", "adminpass123", models.Role.ADMIN)


@pytest.fixture
def staff_user(db_session):
    """
    Create a staff user for testing.
    """
    return make_user(db_session, "Staff User", "staff@example.com", "staffpass123", models.Role.STAFF)


@pytest.fixture
def other_staff_user(db_session):
    return make_user(db_session, "Other Staff", "other@example.com", "otherpass123", models.Role.STAFF)


def login(client, email, password):
    response = client.post("/users/login", json={"email": email, "password": password})
    return response.json()["accessToken"]


@pytest.fixture
def super_admin_token(client, super_admin_user):
    return login(client, "root@example.com", "rootpass123")


@pytest.fixture
def admin_token(client, admin_user):
    """
    Get an admin authentication token.
    """
    return login(client, "admin@example.com", "adminpass123")


@pytest.fixture
def staff_token(client, staff_user):
    """
    Get a staff authentication token.
    """
    return login(client, "staff@example.com", "staffpass123")


@pytest.fixture
def other_staff_token(client, other_staff_user):
    return login(client, "other@example.com", "otherpass123")


@pytest.fixture
def sample_room(db_session):
    """
    Create a room that needs admin approval for bookings.
    """
    room = models.Room(
        name="Conference Room A",
        capacity=10,
        location="Building 1, Floor 2",
        features=["Projector", "Whiteboard"],
        auto_approve=False,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def auto_room(db_session):
    """
    Create a room whose bookings are approved automatically.
    """
    room = models.Room(
        name="Huddle Room",
        capacity=4,
        location="Building 2, Floor 1",
        features=["TV Screen"],
        auto_approve=True,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_rooms(db_session):
    """
    Create multiple rooms, one of them suspended.
    """
    rooms = [
        models.Room(
            name="Small Meeting Room",
            capacity=4,
            location="Building 1, Floor 1",
            features=["TV Screen"],
        ),
        models.Room(
            name="Large Conference Hall",
            capacity=50,
            location="Building 2, Floor 3",
            features=["Projector", "Sound System", "Whiteboard"],
        ),
        models.Room(
            name="Board Room",
            capacity=12,
            location="Building 1, Floor 3",
            features=["Video Conference System"],
            suspended_until=utcnow() + timedelta(days=3),
        ),
    ]
    for room in rooms:
        db_session.add(room)
    db_session.commit()
    for room in rooms:
        db_session.refresh(room)
    return rooms


@pytest.fixture
def slot():
    """A one-hour slot tomorrow at 10:00 UTC."""
    start = (utcnow() + timedelta(days=1)).replace(hour=10, minute=0, second=0)
    return start, start + timedelta(hours=1)


@pytest.fixture
def approved_booking(db_session, staff_user, sample_room, slot):
    """
    An APPROVED booking for the staff user in sample_room, [10:00, 11:00) tomorrow.
    """
    start, end = slot
    booking = models.Booking(
        user_id=staff_user.id,
        room_id=sample_room.id,
        start_time=start,
        end_time=end,
        status=models.BookingStatus.APPROVED,
        equipment=["Projector"],
        purpose="Weekly sync",
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def pending_booking(db_session, staff_user, sample_room, slot):
    """
    A PENDING booking for the staff user in sample_room, [13:00, 14:00) tomorrow.
    """
    start, _ = slot
    booking = models.Booking(
        user_id=staff_user.id,
        room_id=sample_room.id,
        start_time=start + timedelta(hours=3),
        end_time=start + timedelta(hours=4),
        status=models.BookingStatus.PENDING,
        equipment=[],
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def sample_resource(db_session):
    resource = models.Resource(name="Portable Projector", type=models.ResourceType.EQUIPMENT, available=True)
    db_session.add(resource)
    db_session.commit()
    db_session.refresh(resource)
    return resource


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}
