"""
Booking creation, modification and cancellation.

Every operation takes the acting user explicitly and reports outcomes
through an injected :class:`~roombook.notifications.NotificationPort`.
Conflict checks and writes for a room run inside one transaction that
holds the room row lock (see :func:`roombook.conflicts.lock_room`).

Status machine::

    PENDING  --approve--> APPROVED
    PENDING  --reject---> REJECTED
    PENDING  --cancel---> CANCELLED
    APPROVED --cancel---> CANCELLED

REJECTED and CANCELLED are terminal.
"""
import logging

from sqlalchemy.orm import Session

from . import models, schemas
from .clock import utcnow
from .conflicts import has_conflict, is_room_bookable, lock_room
from .database import atomic
from .errors import Conflict, Forbidden, InvalidRange, NotFound, ValidationError
from .models import BookingStatus, Role
from .notifications import NotificationKind, NotificationPort, notify_admins

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.APPROVED: {BookingStatus.CANCELLED},
    BookingStatus.REJECTED: set(),
    BookingStatus.CANCELLED: set(),
}

STATUS_NOTIFICATION = {
    BookingStatus.PENDING: NotificationKind.BOOKING_PENDING,
    BookingStatus.APPROVED: NotificationKind.BOOKING_APPROVED,
    BookingStatus.REJECTED: NotificationKind.BOOKING_REJECTED,
    BookingStatus.CANCELLED: NotificationKind.BOOKING_CANCELLED,
}

CONFLICT_MESSAGE = "Room is already booked for the requested time"

# nullable columns an explicit null may clear
CLEARABLE_FIELDS = {"purpose"}


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    return new == current or new in ALLOWED_TRANSITIONS[current]


def _ensure_bookable(room: models.Room) -> None:
    now = utcnow()
    if not is_room_bookable(room, now):
        logger.warning("Room %s is suspended until %s", room.id, room.suspended_until)
        raise ValidationError(f"Room is suspended until {room.suspended_until.isoformat()}")


def _load_resources(db: Session, resource_ids: list[int]) -> list[models.Resource]:
    ids = list(dict.fromkeys(resource_ids))
    if not ids:
        return []
    resources = db.query(models.Resource).filter(models.Resource.id.in_(ids)).all()
    missing = set(ids) - {r.id for r in resources}
    if missing:
        raise NotFound(f"Resource not found: {sorted(missing)[0]}")
    unavailable = [r.name for r in resources if not r.available]
    if unavailable:
        raise ValidationError(f"Resource is not available: {unavailable[0]}")
    return resources


def get_owned_booking(db: Session, actor: schemas.Actor, booking_id: int) -> models.Booking:
    """Fetch a booking the actor may see: their own, or any for admins."""
    booking = db.get(models.Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if not actor.is_admin and booking.user_id != actor.id:
        raise Forbidden("Not allowed to access this booking")
    return booking


def create_booking(
    db: Session,
    actor: schemas.Actor,
    booking_in: schemas.BookingCreate,
    notifier: NotificationPort,
) -> models.Booking:
    """
    Create a booking for ``actor``.

    Conflicts are checked unconditionally, even when the booking will start
    out PENDING. The room's ``auto_approve`` flag decides the initial status.
    """
    if booking_in.end_time <= booking_in.start_time:
        raise InvalidRange()
    recurring = booking_in.recurring
    if recurring is not None and recurring.end_date < recurring.start_date:
        raise ValidationError("Recurrence end date must not be before its start date")

    with atomic(db):
        room = lock_room(db, booking_in.room_id)
        if room is None:
            raise NotFound("Room not found")
        _ensure_bookable(room)

        if has_conflict(db, room.id, booking_in.start_time, booking_in.end_time):
            logger.warning(
                "Conflict for room %s between %s and %s",
                room.id, booking_in.start_time, booking_in.end_time,
            )
            raise Conflict(CONFLICT_MESSAGE)

        resources = _load_resources(db, booking_in.resource_ids)
        status = BookingStatus.APPROVED if room.auto_approve else BookingStatus.PENDING

        booking = models.Booking(
            user_id=actor.id,
            room_id=room.id,
            start_time=booking_in.start_time,
            end_time=booking_in.end_time,
            status=status,
            equipment=list(booking_in.equipment),
            purpose=booking_in.purpose,
        )
        if recurring is not None:
            booking.recurring = models.RecurringBooking(
                pattern=recurring.pattern,
                start_date=recurring.start_date,
                end_date=recurring.end_date,
            )
        booking.resource_links = [models.BookingResource(resource=r) for r in resources]
        db.add(booking)

    db.refresh(booking)
    logger.info("Booking %s created for room %s with status %s", booking.id, room.id, status.value)

    verb = "created" if status == BookingStatus.APPROVED else "requested"
    notifier.notify(
        actor.id,
        f'Booking for room "{room.name}" has been {verb}.',
        NotificationKind.BOOKING_APPROVED if status == BookingStatus.APPROVED else NotificationKind.BOOKING_REQUEST,
    )
    if actor.role == Role.STAFF and status == BookingStatus.PENDING:
        notify_admins(
            db,
            notifier,
            f'Staff member "{actor.name}" has requested a booking for room "{room.name}" '
            f"from {booking.start_time.isoformat()} to {booking.end_time.isoformat()}.",
            NotificationKind.NEW_BOOKING_REQUEST,
        )
    return booking


def update_booking(
    db: Session,
    actor: schemas.Actor,
    booking_id: int,
    patch: schemas.BookingUpdate,
    notifier: NotificationPort,
) -> models.Booking:
    """
    Apply a partial update to a booking.

    Only admins may set ``status``. A booking that is (or becomes) APPROVED
    is re-checked against the other APPROVED bookings of its room, so
    approving a stale PENDING request cannot create an overlap.
    """
    changes = {
        k: v
        for k, v in patch.model_dump(exclude_unset=True).items()
        if v is not None or k in CLEARABLE_FIELDS
    }
    if not changes:
        raise ValidationError("At least one field is required")
    if "status" in changes and not actor.is_admin:
        raise Forbidden("Only admins can update booking status")

    with atomic(db):
        booking = get_owned_booking(db, actor, booking_id)
        room = lock_room(db, booking.room_id)

        new_start = changes.get("start_time", booking.start_time)
        new_end = changes.get("end_time", booking.end_time)
        if new_end <= new_start:
            raise InvalidRange()

        current_status = booking.status
        new_status = changes.get("status", current_status)
        if not can_transition(current_status, new_status):
            raise ValidationError(
                f"Cannot change booking status from {current_status.value} to {new_status.value}"
            )

        times_changed = new_start != booking.start_time or new_end != booking.end_time
        becomes_approved = new_status == BookingStatus.APPROVED and current_status != BookingStatus.APPROVED
        if becomes_approved:
            _ensure_bookable(room)
        if new_status == BookingStatus.APPROVED and (times_changed or becomes_approved):
            if has_conflict(db, booking.room_id, new_start, new_end, exclude_booking_id=booking.id):
                logger.warning("Conflict while updating booking %s", booking.id)
                raise Conflict(CONFLICT_MESSAGE)

        booking.start_time = new_start
        booking.end_time = new_end
        booking.status = new_status
        if "equipment" in changes:
            booking.equipment = list(changes["equipment"])
        if "purpose" in changes:
            booking.purpose = changes["purpose"]

    db.refresh(booking)
    logger.info("Booking %s updated by user %s (%s)", booking.id, actor.id, sorted(changes))

    if "status" in changes:
        kind = STATUS_NOTIFICATION[new_status]
        message = f'Booking for room "{room.name}" has been {new_status.value.lower()}.'
    else:
        kind = NotificationKind.BOOKING_MODIFIED
        message = f'Booking for room "{room.name}" has been modified.'
    notifier.notify(booking.user_id, message, kind)
    return booking


def delete_booking(
    db: Session,
    actor: schemas.Actor,
    booking_id: int,
    notifier: NotificationPort,
) -> None:
    """Hard-delete a booking. Owner or admin only."""
    with atomic(db):
        booking = get_owned_booking(db, actor, booking_id)
        owner_id = booking.user_id
        room_name = booking.room_name
        db.delete(booking)

    logger.info("Booking %s deleted by user %s", booking_id, actor.id)
    notifier.notify(
        owner_id,
        f'Booking for room "{room_name}" has been cancelled.',
        NotificationKind.BOOKING_CANCELLED,
    )
