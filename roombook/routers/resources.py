import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..clock import utcnow
from ..config import DEFAULT_PAGE_LIMIT
from ..database import atomic, contains_pattern
from ..deps import get_current_actor, get_db, get_notifier, require_admin
from ..errors import Conflict, NotFound, ValidationError
from ..notifications import NotificationKind, NotificationPort, notify_admins

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resources", tags=["resources"])


def _get_resource_or_404(db: Session, resource_id: int) -> models.Resource:
    resource = db.get(models.Resource, resource_id)
    if not resource:
        raise NotFound("Resource not found")
    return resource


@router.get("/", response_model=schemas.Envelope[schemas.Page[schemas.ResourceOut]])
def list_resources(
    name: Optional[str] = None,
    type: Optional[models.ResourceType] = None,
    available: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(get_current_actor),
):
    """List bookable equipment and services."""
    query = db.query(models.Resource)
    if name:
        query = query.filter(models.Resource.name.ilike(contains_pattern(name), escape="\\"))
    if type is not None:
        query = query.filter(models.Resource.type == type)
    if available is not None:
        query = query.filter(models.Resource.available == available)

    total = query.count()
    resources = query.order_by(models.Resource.id).offset((page - 1) * limit).limit(limit).all()
    return {
        "success": True,
        "data": {
            "data": [schemas.ResourceOut.model_validate(r) for r in resources],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        },
    }


@router.get("/{resource_id}", response_model=schemas.Envelope[schemas.ResourcePayload])
def get_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(get_current_actor),
):
    resource = _get_resource_or_404(db, resource_id)
    return {"success": True, "data": {"resource": schemas.ResourceOut.model_validate(resource)}}


@router.post("/", response_model=schemas.Envelope[schemas.ResourcePayload], status_code=status.HTTP_201_CREATED)
def create_resource(
    resource_in: schemas.ResourceCreate,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """Create a resource. *(Admin)*"""
    with atomic(db):
        resource = models.Resource(**resource_in.model_dump())
        db.add(resource)
    db.refresh(resource)
    logger.info("Resource %s (%s) created", resource.id, resource.name)

    notify_admins(
        db,
        notifier,
        f'New resource "{resource.name}" ({resource.type.value}) has been created.',
        NotificationKind.RESOURCE_MODIFIED,
    )
    return {
        "success": True,
        "data": {
            "message": "Resource created successfully",
            "resource": schemas.ResourceOut.model_validate(resource),
        },
    }


@router.put("/{resource_id}", response_model=schemas.Envelope[schemas.ResourcePayload])
def update_resource(
    resource_id: int,
    resource_update: schemas.ResourceUpdate,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """Partially update a resource. *(Admin)*"""
    data = {k: v for k, v in resource_update.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise ValidationError("At least one field is required")

    with atomic(db):
        resource = _get_resource_or_404(db, resource_id)
        for field, value in data.items():
            setattr(resource, field, value)
    db.refresh(resource)

    notify_admins(
        db,
        notifier,
        f'Resource "{resource.name}" ({resource.type.value}) has been updated.',
        NotificationKind.RESOURCE_MODIFIED,
    )
    return {
        "success": True,
        "data": {
            "message": "Resource updated successfully",
            "resource": schemas.ResourceOut.model_validate(resource),
        },
    }


@router.delete("/{resource_id}", response_model=schemas.Envelope[schemas.Message])
def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Delete a resource. *(Admin)*

    Refused with 409 while an APPROVED booking that has not ended uses it.
    """
    with atomic(db):
        resource = _get_resource_or_404(db, resource_id)
        in_use = (
            db.query(models.BookingResource)
            .join(models.Booking, models.BookingResource.booking_id == models.Booking.id)
            .filter(
                models.BookingResource.resource_id == resource_id,
                models.Booking.status == models.BookingStatus.APPROVED,
                models.Booking.end_time > utcnow(),
            )
            .first()
        )
        if in_use:
            raise Conflict("Cannot delete resource with active bookings")
        label = f'"{resource.name}" ({resource.type.value})'
        db.delete(resource)
    logger.info("Resource %s deleted", resource_id)

    notify_admins(db, notifier, f"Resource {label} has been deleted.", NotificationKind.RESOURCE_MODIFIED)
    return {"success": True, "data": {"message": "Resource deleted successfully"}}
