from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models, schemas
from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from .database import SessionLocal
from .errors import Forbidden, Unauthorized
from .notifications import NotificationDispatcher, NotificationPort


# ----- DB -----
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----- Notifications -----
def get_notifier(db: Session = Depends(get_db)) -> NotificationPort:
    return NotificationDispatcher(db)


# ----- Auth / JWT -----
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so anonymous callers reach routes that allow them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="users/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def to_actor(user: models.User) -> schemas.Actor:
    return schemas.Actor(id=user.id, role=user.role, name=user.name)


def _resolve_token(token: str, db: Session) -> models.User:
    credentials_error = Unauthorized("Could not validate credentials")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        subject: str | None = payload.get("sub")
        if subject is None:
            raise credentials_error
        user_id = int(subject)
    except (JWTError, ValueError):
        raise credentials_error

    user = db.get(models.User, user_id)
    if user is None:
        raise credentials_error
    if user.is_suspended:
        raise Forbidden("Account is suspended")
    return user


async def get_current_actor(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> schemas.Actor:
    if not token:
        raise Unauthorized()
    return to_actor(_resolve_token(token, db))


async def get_optional_actor(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[schemas.Actor]:
    """Like get_current_actor, but anonymous callers resolve to None."""
    if not token:
        return None
    return to_actor(_resolve_token(token, db))


def require_roles(*allowed_roles: models.Role):
    """
    Usage: actor: schemas.Actor = Depends(require_roles(Role.ADMIN, Role.SUPER_ADMIN))
    """
    async def role_checker(actor: schemas.Actor = Depends(get_current_actor)) -> schemas.Actor:
        if actor.role not in allowed_roles:
            raise Forbidden("Not enough permissions")
        return actor

    return role_checker


require_admin = require_roles(*models.ADMIN_ROLES)
