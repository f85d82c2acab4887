import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import atomic
from ..deps import (
    authenticate_user,
    create_access_token,
    get_current_actor,
    get_db,
    get_notifier,
    get_password_hash,
    get_user_by_email,
    require_admin,
    require_roles,
)
from ..errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from ..notifications import NotificationKind, NotificationPort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=schemas.Envelope[schemas.UserPayload], status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Create a user account. *(Admin)*

    Admins create STAFF accounts; only a SUPER_ADMIN may create other
    admins. Every account starts with e-mail notifications enabled.

    Raises
    ------
    Forbidden
        - 403 if a non-super-admin requests an admin role.
    Conflict
        - 409 if the email is already registered.
    """
    if user_in.role != models.Role.STAFF and actor.role != models.Role.SUPER_ADMIN:
        raise Forbidden("Only super-admins can create admin accounts")

    with atomic(db):
        if db.query(models.User).filter(models.User.email == user_in.email).first():
            raise Conflict("Email already in use")
        user = models.User(
            name=user_in.name,
            email=user_in.email,
            phone_number=user_in.phone_number,
            role=user_in.role,
            hashed_password=get_password_hash(user_in.password),
        )
        user.notification_config = models.NotificationConfig(email_enabled=True)
        db.add(user)
    db.refresh(user)
    logger.info("User %s created with role %s", user.id, user.role.value)

    notifier.notify(user.id, f'Welcome "{user.name}", your account has been created.', NotificationKind.ACCOUNT_CREATED)
    return {
        "success": True,
        "data": {"message": "User created successfully", "user": schemas.UserOut.model_validate(user)},
    }


@router.post("/login", response_model=schemas.Token, tags=["auth"])
def login_for_access_token(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate a user and return a JWT access token.

    Raises
    ------
    Unauthorized
        - 401 if credentials are invalid.
    Forbidden
        - 403 if the account is suspended.
    """
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise Unauthorized("Incorrect email or password")
    if user.is_suspended:
        raise Forbidden("Account is suspended")
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=schemas.Envelope[schemas.UserPayload])
def read_current_user(
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(get_current_actor),
):
    """Profile of the authenticated caller."""
    user = db.get(models.User, actor.id)
    return {"success": True, "data": {"user": schemas.UserOut.model_validate(user)}}


@router.get("/", response_model=schemas.Envelope[List[schemas.UserOut]])
def list_users(
    db: Session = Depends(get_db),
    _: schemas.Actor = Depends(require_admin),
):
    """List all registered users. *(Admin)*"""
    users = db.query(models.User).order_by(models.User.id).all()
    return {"success": True, "data": [schemas.UserOut.model_validate(u) for u in users]}


@router.put("/{user_id}/suspend", response_model=schemas.Envelope[schemas.UserPayload])
def suspend_user(
    user_id: int,
    payload: schemas.SuspendUserIn,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Suspend or reactivate an account. *(Admin)*

    ADMINs may only manage STAFF accounts; SUPER_ADMINs may manage anyone.
    Suspended users can neither log in nor use existing tokens.
    """
    with atomic(db):
        user = db.get(models.User, user_id)
        if not user:
            raise NotFound("User not found")
        if actor.role == models.Role.ADMIN and user.role != models.Role.STAFF:
            raise Forbidden("Admins can only manage staff users")
        user.is_suspended = payload.is_suspended
    db.refresh(user)
    logger.info("User %s suspended=%s by %s", user.id, user.is_suspended, actor.id)

    if user.is_suspended:
        notifier.notify(user.id, "Your account has been suspended.", NotificationKind.ACCOUNT_SUSPENDED)
    else:
        notifier.notify(user.id, "Your account has been reactivated.", NotificationKind.ACCOUNT_REACTIVATED)
    return {
        "success": True,
        "data": {
            "message": "User suspended" if user.is_suspended else "User reactivated",
            "user": schemas.UserOut.model_validate(user),
        },
    }


@router.put("/{user_id}", response_model=schemas.Envelope[schemas.UserPayload])
def update_user(
    user_id: int,
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(require_admin),
    notifier: NotificationPort = Depends(get_notifier),
):
    """
    Partially update an account. *(Admin)*

    ADMINs may only manage STAFF accounts and only SUPER_ADMINs may change
    a role. An explicit null clears the phone number.

    Raises
    ------
    Forbidden
        - 403 for an ADMIN touching a non-staff account or changing a role.
    Conflict
        - 409 if the new email belongs to another account.
    """
    changes = {
        k: v
        for k, v in user_update.model_dump(exclude_unset=True).items()
        if v is not None or k == "phone_number"
    }
    if not changes:
        raise ValidationError("At least one field is required")

    with atomic(db):
        user = db.get(models.User, user_id)
        if not user:
            raise NotFound("User not found")
        if actor.role == models.Role.ADMIN and user.role != models.Role.STAFF:
            raise Forbidden("Admins can only manage staff users")
        if "role" in changes and actor.role != models.Role.SUPER_ADMIN:
            raise Forbidden("Only super-admins can change user roles")
        if "email" in changes and changes["email"] != user.email:
            if get_user_by_email(db, changes["email"]):
                raise Conflict("Email already in use")
        for field, value in changes.items():
            setattr(user, field, value)
    db.refresh(user)
    logger.info("User %s updated by %s (%s)", user.id, actor.id, sorted(changes))

    notifier.notify(user.id, "Your account details have been updated.", NotificationKind.ACCOUNT_MODIFIED)
    return {
        "success": True,
        "data": {"message": "User updated successfully", "user": schemas.UserOut.model_validate(user)},
    }


@router.delete("/{user_id}", response_model=schemas.Envelope[schemas.Message])
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: schemas.Actor = Depends(require_roles(models.Role.SUPER_ADMIN)),
):
    """Delete an account together with its bookings. *(Super-admin)*"""
    with atomic(db):
        user = db.get(models.User, user_id)
        if not user:
            raise NotFound("User not found")
        db.delete(user)
    logger.info("User %s deleted by %s", user_id, actor.id)
    return {"success": True, "data": {"message": "User deleted successfully"}}
