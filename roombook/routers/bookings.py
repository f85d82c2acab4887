import math
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from .. import booking_workflow, models, schemas
from ..config import DEFAULT_PAGE_LIMIT
from ..database import contains_pattern
from ..deps import get_current_actor, get_db, get_notifier, require_admin
from ..notifications import NotificationPort

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _booking_query(db: Session):
    return db.query(models.Booking).options(
        selectinload(models.Booking.user),
        selectinload(models.Booking.room),
        selectinload(models.Booking.recurring),
        selectinload(models.Booking.resource_links),
    )


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


@router.get("/", response_model=schemas.Envelope[schemas.Page[schemas.BookingOut]])
def list_bookings(
    day: Optional[date] = Query(None, alias="date"),
    room_id: Optional[int] = Query(None, alias="roomId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    booking_status: Optional[models.BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
):
    """
    List bookings with optional filters.

    - Admins see **all** bookings, optionally narrowed by ``userId``.
    - Staff always see **only their own** bookings; ``userId`` is ignored.
    - ``date`` keeps bookings lying entirely inside that (UTC) day.
    """
    query = _booking_query(db)
    if day is not None:
        start_of_day, end_of_day = _day_bounds(day)
        query = query.filter(
            models.Booking.start_time >= start_of_day,
            models.Booking.end_time <= end_of_day,
        )
    if room_id is not None:
        query = query.filter(models.Booking.room_id == room_id)
    if booking_status is not None:
        query = query.filter(models.Booking.status == booking_status)
    if not actor.is_admin:
        query = query.filter(models.Booking.user_id == actor.id)
    elif user_id is not None:
        query = query.filter(models.Booking.user_id == user_id)

    total = query.count()
    bookings = (
        query.order_by(models.Booking.start_time, models.Booking.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": {
            "data": [schemas.BookingOut.model_validate(b) for b in bookings],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        },
    }


@router.get("/history", response_model=schemas.Envelope[schemas.Page[schemas.BookingHistoryItem]])
def booking_history(
    day: Optional[date] = Query(None, alias="date"),
    room: Optional[str] = None,
    user: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
):
    """
    Booking audit trail. *(Admin-only)*

    ``room`` matches part of the room name, ``user`` part of the user's
    name or email. Results are ordered by creation time.
    """
    query = (
        db.query(models.Booking, models.Room, models.User)
        .join(models.Room, models.Booking.room_id == models.Room.id)
        .join(models.User, models.Booking.user_id == models.User.id)
    )
    if day is not None:
        start_of_day, end_of_day = _day_bounds(day)
        query = query.filter(
            models.Booking.start_time >= start_of_day,
            models.Booking.end_time <= end_of_day,
        )
    if room:
        query = query.filter(models.Room.name.ilike(contains_pattern(room), escape="\\"))
    if user:
        pattern = contains_pattern(user)
        query = query.filter(
            or_(models.User.name.ilike(pattern, escape="\\"), models.User.email.ilike(pattern, escape="\\"))
        )

    total = query.count()
    rows = (
        query.order_by(models.Booking.created_at, models.Booking.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    items = [
        schemas.BookingHistoryItem(
            id=booking.id,
            room_name=room_row.name,
            user_name=user_row.name,
            user_email=user_row.email,
            start_time=booking.start_time,
            end_time=booking.end_time,
            status=booking.status,
            created_at=booking.created_at,
        )
        for booking, room_row, user_row in rows
    ]
    return {
        "success": True,
        "data": {
            "data": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        },
    }


@router.get("/{booking_id}", response_model=schemas.Envelope[schemas.BookingPayload])
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
):
    """Fetch one booking. Staff may only fetch their own."""
    booking = booking_workflow.get_owned_booking(db, actor, booking_id)
    return {"success": True, "data": {"booking": schemas.BookingOut.model_validate(booking)}}


@router.post(
    "/",
    response_model=schemas.Envelope[schemas.BookingPayload],
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Request a booking for the current user.

    Rooms with ``autoApprove`` confirm the booking immediately; otherwise it
    waits as PENDING for an admin. Overlaps with APPROVED bookings are
    rejected with 409.
    """
    booking = booking_workflow.create_booking(db, actor, booking_in, notifier)
    verb = "created" if booking.status == models.BookingStatus.APPROVED else "requested"
    return {
        "success": True,
        "data": {
            "message": f"Booking {verb} successfully",
            "booking": schemas.BookingOut.model_validate(booking),
        },
    }


@router.put("/{booking_id}", response_model=schemas.Envelope[schemas.BookingPayload])
def update_booking(
    booking_id: int,
    patch: schemas.BookingUpdate,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Partially update a booking.

    Owners may change times, equipment and purpose; only admins may change
    ``status`` (approve / reject / cancel).
    """
    booking = booking_workflow.update_booking(db, actor, booking_id, patch, notifier)
    return {
        "success": True,
        "data": {
            "message": "Booking updated successfully",
            "booking": schemas.BookingOut.model_validate(booking),
        },
    }


@router.delete("/{booking_id}", response_model=schemas.Envelope[schemas.Message])
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Cancel (delete) a booking.

    - Staff can cancel their own bookings.
    - Admins can cancel any booking.
    """
    booking_workflow.delete_booking(db, actor, booking_id, notifier)
    return {"success": True, "data": {"message": "Booking cancelled successfully"}}
