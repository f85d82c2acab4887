from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .clock import to_utc_naive
from .models import ADMIN_ROLES, BookingStatus, RecurrencePattern, ResourceType, Role

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _normalize(value):
    if isinstance(value, datetime):
        return to_utc_naive(value)
    return value


# ----- Envelopes -----
class Envelope(CamelModel, Generic[DataT]):
    success: bool = True
    data: DataT


class Page(CamelModel, Generic[DataT]):
    data: List[DataT]
    total: int
    page: int
    limit: int
    total_pages: int


class Message(CamelModel):
    message: str


# ----- Session -----
class Actor(BaseModel):
    """The authenticated caller, passed explicitly into every operation."""

    id: int
    role: Role
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


# ----- Users -----
class UserCreate(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    role: Role = Role.STAFF
    phone_number: Optional[str] = None


class UserOut(CamelModel):
    id: int
    name: str
    email: EmailStr
    role: Role
    phone_number: Optional[str] = None
    is_suspended: bool
    created_at: datetime
    updated_at: datetime


class UserPayload(CamelModel):
    message: Optional[str] = None
    user: UserOut


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_suspended: Optional[bool] = None
    phone_number: Optional[str] = None


class SuspendUserIn(CamelModel):
    is_suspended: bool


# ----- Rooms -----
class RoomCreate(CamelModel):
    name: str = Field(min_length=1)
    capacity: int = Field(gt=0)
    location: str = Field(min_length=1)
    features: List[str] = []
    auto_approve: bool = False
    restricted_hours: Optional[str] = None


class RoomUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    capacity: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = Field(default=None, min_length=1)
    features: Optional[List[str]] = None
    auto_approve: Optional[bool] = None
    restricted_hours: Optional[str] = None


class RoomOut(CamelModel):
    id: int
    name: str
    capacity: int
    location: str
    features: List[str]
    auto_approve: bool
    restricted_hours: Optional[str] = None
    suspended_until: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class RoomPayload(CamelModel):
    message: Optional[str] = None
    room: RoomOut


class SuspendRoomIn(CamelModel):
    # id is accepted for compatibility with body-addressed clients; the path wins
    id: Optional[int] = None
    days: int


# ----- Bookings -----
class RecurringIn(CamelModel):
    pattern: RecurrencePattern
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return _normalize(value)


class RecurringOut(CamelModel):
    pattern: RecurrencePattern
    start_date: datetime
    end_date: datetime


class BookingCreate(CamelModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    equipment: List[str] = []
    purpose: Optional[str] = None
    recurring: Optional[RecurringIn] = None
    resource_ids: List[int] = []

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _normalize(value)


class BookingUpdate(CamelModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    equipment: Optional[List[str]] = None
    purpose: Optional[str] = None
    status: Optional[BookingStatus] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _normalize(value)


class BookingOut(CamelModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    room_id: int
    room_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    equipment: List[str]
    purpose: Optional[str] = None
    recurring: Optional[RecurringOut] = None
    resource_ids: List[int] = []
    created_at: datetime
    updated_at: datetime


class BookingPayload(CamelModel):
    message: Optional[str] = None
    booking: BookingOut


class BookingHistoryItem(CamelModel):
    id: int
    room_name: str
    user_name: str
    user_email: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    created_at: datetime


# ----- Resources -----
class ResourceCreate(CamelModel):
    name: str = Field(min_length=1)
    type: ResourceType
    available: bool = True


class ResourceUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[ResourceType] = None
    available: Optional[bool] = None


class ResourceOut(CamelModel):
    id: int
    name: str
    type: ResourceType
    available: bool
    created_at: datetime
    updated_at: datetime


class ResourcePayload(CamelModel):
    message: Optional[str] = None
    resource: ResourceOut


# ----- Notification config -----
class NotificationConfigOut(CamelModel):
    id: int
    user_id: int
    email_enabled: bool
    sms_enabled: bool
    telegram_enabled: bool
    telegram_chat_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class NotificationConfigUpdate(CamelModel):
    user_id: int
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    telegram_enabled: Optional[bool] = None
    telegram_chat_id: Optional[str] = None


class NotificationConfigPayload(CamelModel):
    message: Optional[str] = None
    config: NotificationConfigOut
