import json
import logging
import math
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..clock import utcnow
from ..config import DEFAULT_PAGE_LIMIT
from ..database import atomic, contains_pattern
from ..deps import get_db, get_notifier, get_optional_actor, require_admin
from ..errors import Conflict, NotFound, ValidationError
from ..notifications import NotificationKind, NotificationPort, notify_admins

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])

CLEARABLE_FIELDS = {"restricted_hours"}


def _visible_rooms(db: Session, actor: Optional[schemas.Actor]):
    """Admins see every room; everyone else only rooms that are not suspended."""
    query = db.query(models.Room)
    if actor is None or not actor.is_admin:
        now = utcnow()
        query = query.filter(
            or_(models.Room.suspended_until.is_(None), models.Room.suspended_until <= now)
        )
    return query


def _get_room_or_404(db: Session, room_id: int) -> models.Room:
    room = db.get(models.Room, room_id)
    if not room:
        raise NotFound("Room not found")
    return room


def _ensure_unique_name(db: Session, name: str, room_id: Optional[int] = None) -> None:
    query = db.query(models.Room).filter(models.Room.name == name)
    if room_id is not None:
        query = query.filter(models.Room.id != room_id)
    if query.first():
        raise Conflict("Room name already exists")


@router.post("/", response_model=schemas.Envelope[schemas.RoomPayload], status_code=status.HTTP_201_CREATED)
def create_room(
    room_in: schemas.RoomCreate,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Create a new meeting room. *(Admin)*

    The room name must be unique.

    Raises
    ------
    Conflict
        - 409 if a room with the same name already exists.
    """
    with atomic(db):
        _ensure_unique_name(db, room_in.name)
        room = models.Room(**room_in.model_dump())
        db.add(room)
    db.refresh(room)
    logger.info("Room %s (%s) created", room.id, room.name)

    notify_admins(db, notifier, f'Room "{room.name}" has been created.', NotificationKind.ROOM_CREATED)
    return {
        "success": True,
        "data": {"message": "Room added successfully", "room": schemas.RoomOut.model_validate(room)},
    }


@router.get("/", response_model=schemas.Envelope[schemas.Page[schemas.RoomOut]])
def list_rooms(
    capacity: Optional[int] = Query(None, ge=0),
    location: Optional[str] = None,
    features: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
    db: Session = Depends(get_db),
    actor: Optional[schemas.Actor] = Depends(get_optional_actor),
):
    """
    List rooms with optional filters. No authentication required.

    Parameters
    ----------
    capacity : int, optional
        Minimum room capacity.
    location : str, optional
        Substring of the room location.
    features : str, optional
        Comma-separated list; rooms must offer every listed feature.
    """
    query = _visible_rooms(db, actor)
    if capacity is not None:
        query = query.filter(models.Room.capacity >= capacity)
    if location:
        query = query.filter(models.Room.location.ilike(contains_pattern(location), escape="\\"))
    if features:
        for feature in (f.strip() for f in features.split(",")):
            if feature:
                # features is stored as a JSON array; match the encoded element
                query = query.filter(
                    cast(models.Room.features, String).like(
                        contains_pattern(json.dumps(feature, ensure_ascii=False)), escape="\\"
                    )
                )

    total = query.count()
    rooms = query.order_by(models.Room.id).offset((page - 1) * limit).limit(limit).all()
    return {
        "success": True,
        "data": {
            "data": [schemas.RoomOut.model_validate(r) for r in rooms],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        },
    }


@router.get("/{room_id}", response_model=schemas.Envelope[schemas.RoomPayload])
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    actor: Optional[schemas.Actor] = Depends(get_optional_actor),
):
    """
    Retrieve a single room by its ID.

    Suspended rooms are hidden (404) from everyone but admins.
    """
    room = _visible_rooms(db, actor).filter(models.Room.id == room_id).first()
    if not room:
        raise NotFound("Room not found")
    return {"success": True, "data": {"room": schemas.RoomOut.model_validate(room)}}


@router.put("/{room_id}", response_model=schemas.Envelope[schemas.RoomPayload])
def update_room(
    room_id: int,
    room_update: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Update details of an existing room. *(Admin)*

    Unspecified fields keep their values; at least one field is required.
    """
    data = {
        k: v
        for k, v in room_update.model_dump(exclude_unset=True).items()
        if v is not None or k in CLEARABLE_FIELDS
    }
    if not data:
        raise ValidationError("At least one field is required")

    with atomic(db):
        room = _get_room_or_404(db, room_id)
        if "name" in data:
            _ensure_unique_name(db, data["name"], room_id)
        for field, value in data.items():
            setattr(room, field, value)
    db.refresh(room)

    notify_admins(db, notifier, f'Room "{room.name}" has been updated.', NotificationKind.ROOM_UPDATED)
    return {
        "success": True,
        "data": {"message": "Room updated successfully", "room": schemas.RoomOut.model_validate(room)},
    }


@router.post("/{room_id}/suspend", response_model=schemas.Envelope[schemas.RoomPayload])
def suspend_room(
    room_id: int,
    payload: schemas.SuspendRoomIn,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Suspend a room for ``days`` days. *(Admin)*

    The room disappears from non-admin listings until the suspension
    timestamp passes; nothing un-suspends it early.
    """
    if payload.days <= 0:
        raise ValidationError("Room ID and valid days are required")

    with atomic(db):
        room = _get_room_or_404(db, room_id)
        room.suspended_until = utcnow() + timedelta(days=payload.days)
    db.refresh(room)
    logger.info("Room %s suspended until %s", room.id, room.suspended_until)

    notify_admins(
        db,
        notifier,
        f'Room "{room.name}" has been suspended for {payload.days} days.',
        NotificationKind.ROOM_MODIFIED,
    )
    return {
        "success": True,
        "data": {
            "message": f"Room suspended for {payload.days} days",
            "room": schemas.RoomOut.model_validate(room),
        },
    }


@router.delete("/{room_id}", response_model=schemas.Envelope[schemas.Message])
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Delete a room and its remaining (past or non-approved) bookings. *(Admin)*

    Raises
    ------
    Conflict
        - 409 while an APPROVED booking that has not ended yet references the room.
    """
    with atomic(db):
        room = _get_room_or_404(db, room_id)
        active = (
            db.query(models.Booking)
            .filter(
                models.Booking.room_id == room_id,
                models.Booking.status == models.BookingStatus.APPROVED,
                models.Booking.end_time > utcnow(),
            )
            .first()
        )
        if active:
            raise Conflict("Cannot delete room with active bookings")
        name = room.name
        db.delete(room)
    logger.info("Room %s (%s) deleted", room_id, name)

    notify_admins(db, notifier, f'Room "{name}" has been deleted.', NotificationKind.ROOM_DELETED)
    return {"success": True, "data": {"message": "Room deleted successfully"}}
