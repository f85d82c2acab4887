from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import atomic
from ..deps import get_current_actor, get_db, get_notifier, require_roles
from ..errors import NotFound, ValidationError
from ..notifications import NotificationKind, NotificationPort

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _config_for(db: Session, user_id: int) -> models.NotificationConfig:
    config = (
        db.query(models.NotificationConfig)
        .filter(models.NotificationConfig.user_id == user_id)
        .first()
    )
    if not config:
        raise NotFound("Notification config not found")
    return config


@router.get("/config", response_model=schemas.Envelope[schemas.NotificationConfigOut])
def get_notification_config(
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
):
    """The caller's own channel preferences."""
    config = _config_for(db, actor.id)
    return {"success": True, "data": schemas.NotificationConfigOut.model_validate(config)}


@router.put("/config", response_model=schemas.Envelope[schemas.NotificationConfigPayload])
def update_notification_config(
    payload: schemas.NotificationConfigUpdate,
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_roles(models.Role.SUPER_ADMIN)),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Change a user's channel preferences. *(Super-admin)*

    SMS needs a phone number on the account; Telegram needs a chat id.
    """
    with atomic(db):
        user = db.get(models.User, payload.user_id)
        if not user:
            raise NotFound("User not found")
        if payload.sms_enabled and not user.phone_number:
            raise ValidationError("Cannot enable SMS without a phone number")
        config = _config_for(db, user.id)
        if payload.telegram_enabled and not (payload.telegram_chat_id or config.telegram_chat_id):
            raise ValidationError("Cannot enable Telegram without a chat ID")

        changes = payload.model_dump(exclude_unset=True, exclude={"user_id"})
        for field, value in changes.items():
            if value is not None:
                setattr(config, field, value)
    db.refresh(config)

    notifier.notify(user.id, "Your notification preferences have been updated.", NotificationKind.ACCOUNT_MODIFIED)
    return {
        "success": True,
        "data": {
            "message": "Notification config updated successfully",
            "config": schemas.NotificationConfigOut.model_validate(config),
        },
    }
