"""
Booking-conflict rules.

All interval checks use closed-open ``[start, end)`` semantics: a booking
that ends exactly when another starts does not conflict with it. Only
APPROVED bookings ever block a room.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import models


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """
    Check if two time intervals overlap.

    Returns True if the interval [start1, end1) overlaps with [start2, end2).
    """
    return start1 < end2 and start2 < end1


def conflicting_bookings_query(
    db: Session,
    room_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
):
    # same predicate as overlaps(), pushed down to SQL
    query = db.query(models.Booking).filter(
        models.Booking.room_id == room_id,
        models.Booking.status == models.BookingStatus.APPROVED,
        models.Booking.start_time < end,
        models.Booking.end_time > start,
    )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return query


def has_conflict(
    db: Session,
    room_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """
    Return True if an APPROVED booking in ``room_id`` overlaps ``[start, end)``.

    ``exclude_booking_id`` leaves the booking under modification out of the
    candidate set.
    """
    query = conflicting_bookings_query(db, room_id, start, end, exclude_booking_id)
    return db.query(query.exists()).scalar()


def is_room_bookable(room: models.Room, at_time: datetime) -> bool:
    """A room is bookable unless its suspension window is still running."""
    return room.suspended_until is None or room.suspended_until <= at_time


def lock_room(db: Session, room_id: int) -> Optional[models.Room]:
    """
    Load a room row for update.

    Holding this row lock for the rest of the transaction serializes
    conflict check and write for the same room. SQLite ignores FOR UPDATE;
    there the engine starts every transaction with BEGIN IMMEDIATE instead.
    """
    return (
        db.query(models.Room)
        .filter(models.Room.id == room_id)
        .with_for_update()
        .first()
    )
