"""
Notification dispatch.

The booking workflow and the routers only ever talk to a
:class:`NotificationPort`. Delivery is fire-and-forget: every failure is
logged and dropped, so a broken channel never fails the request that
triggered it.
"""
import enum
import logging
from typing import Protocol

from pybreaker import CircuitBreakerError
from sqlalchemy.orm import Session

from . import models
from .circuit_breaker import notification_circuit_breaker

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
    ACCOUNT_REACTIVATED = "ACCOUNT_REACTIVATED"
    ACCOUNT_MODIFIED = "ACCOUNT_MODIFIED"
    BOOKING_REQUEST = "BOOKING_REQUEST"
    NEW_BOOKING_REQUEST = "NEW_BOOKING_REQUEST"
    BOOKING_APPROVED = "BOOKING_APPROVED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_PENDING = "BOOKING_PENDING"
    BOOKING_MODIFIED = "BOOKING_MODIFIED"
    ROOM_CREATED = "ROOM_CREATED"
    ROOM_UPDATED = "ROOM_UPDATED"
    ROOM_DELETED = "ROOM_DELETED"
    ROOM_MODIFIED = "ROOM_MODIFIED"
    RESOURCE_MODIFIED = "RESOURCE_MODIFIED"


class NotificationPort(Protocol):
    def notify(self, user_id: int, message: str, kind: NotificationKind) -> None:
        ...


def send_email(to: str, subject: str, body: str) -> None:
    logger.info("Sending email to %s: %s - %s", to, subject, body)


def send_sms(to: str, message: str) -> None:
    logger.info("Sending SMS to %s: %s", to, message)


def send_telegram(chat_id: str, message: str) -> None:
    logger.info("Sending Telegram message to %s: %s", chat_id, message)


class NotificationDispatcher:
    """
    Deliver a notification over every channel the recipient enabled.

    Users without a notification config receive nothing.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(self, user_id: int, message: str, kind: NotificationKind) -> None:
        try:
            self._dispatch(user_id, message, kind)
        except Exception:
            logger.exception("Notification %s for user %s failed", kind.value, user_id)

    def _dispatch(self, user_id: int, message: str, kind: NotificationKind) -> None:
        user = self.db.get(models.User, user_id)
        if user is None or user.notification_config is None:
            return
        config = user.notification_config

        if config.email_enabled:
            subject = f"Meeting Room: {kind.value.replace('_', ' ')}"
            self._deliver(send_email, user.email, subject, message)

        if config.sms_enabled and user.phone_number:
            self._deliver(send_sms, user.phone_number, message)
        elif config.sms_enabled:
            logger.warning("SMS notification not sent for user %s: phone number is missing", user_id)

        if config.telegram_enabled and config.telegram_chat_id:
            self._deliver(send_telegram, config.telegram_chat_id, message)

    @staticmethod
    def _deliver(channel, *args) -> None:
        try:
            notification_circuit_breaker.call(channel, *args)
        except CircuitBreakerError:
            logger.warning("Notification channel %s skipped: circuit open", channel.__name__)


def admin_ids(db: Session) -> list[int]:
    rows = (
        db.query(models.User.id)
        .filter(models.User.role.in_(models.ADMIN_ROLES))
        .order_by(models.User.id)
        .all()
    )
    return [row.id for row in rows]


def notify_admins(db: Session, notifier: NotificationPort, message: str, kind: NotificationKind) -> None:
    for user_id in admin_ids(db):
        notifier.notify(user_id, message, kind)
