import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .clock import utcnow
from .database import Base


class Role(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    STAFF = "STAFF"


ADMIN_ROLES = (Role.ADMIN, Role.SUPER_ADMIN)


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class RecurrencePattern(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class ResourceType(str, enum.Enum):
    EQUIPMENT = "EQUIPMENT"
    SERVICE = "SERVICE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone_number = Column(String, nullable=True)
    role = Column(Enum(Role), nullable=False, default=Role.STAFF, index=True)
    hashed_password = Column(String, nullable=False)
    is_suspended = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="user", cascade="all, delete-orphan")
    notification_config = relationship(
        "NotificationConfig",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    location = Column(String, nullable=False)
    features = Column(JSON, nullable=False, default=list)
    auto_approve = Column(Boolean, nullable=False, default=False)
    # opaque descriptor, stored and returned as-is
    restricted_hours = Column(String, nullable=True)
    suspended_until = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="room", cascade="all, delete-orphan")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_booking_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)
    equipment = Column(JSON, nullable=False, default=list)
    purpose = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="bookings")
    room = relationship("Room", back_populates="bookings")
    recurring = relationship(
        "RecurringBooking",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )
    resource_links = relationship(
        "BookingResource",
        back_populates="booking",
        cascade="all, delete-orphan",
    )

    @property
    def user_name(self):
        return self.user.name if self.user else None

    @property
    def room_name(self):
        return self.room.name if self.room else None

    @property
    def resource_ids(self):
        return [link.resource_id for link in self.resource_links]


class RecurringBooking(Base):
    """Recurrence metadata for a booking. Does not expand into extra rows."""

    __tablename__ = "recurring_bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    pattern = Column(Enum(RecurrencePattern), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    booking = relationship("Booking", back_populates="recurring")


class Resource(Base):
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    type = Column(Enum(ResourceType), nullable=False)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    booking_links = relationship(
        "BookingResource",
        back_populates="resource",
        cascade="all, delete-orphan",
    )


class BookingResource(Base):
    __tablename__ = "booking_resources"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    booking = relationship("Booking", back_populates="resource_links")
    resource = relationship("Resource", back_populates="booking_links")


class NotificationConfig(Base):
    __tablename__ = "notification_configs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    telegram_enabled = Column(Boolean, nullable=False, default=False)
    telegram_chat_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="notification_config")
