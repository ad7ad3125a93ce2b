# aravalli/crud_users.py
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import security
from .data import models_db, schemas
from .errors import AuthError, ConflictError, StorageError, ValidationError
from .log import get_logger

logger = get_logger(__name__)


def get_user_by_username(db: Session, username: str) -> Optional[models_db.User]:
    return db.query(models_db.User).filter(models_db.User.username == username).first()


def create_user(db: Session, user: schemas.UserCreate, role: str = "user") -> models_db.User:
    if not user.username or not user.password:
        raise ValidationError("Username and password required")
    db_user = models_db.User(
        username=user.username,
        hashed_password=security.get_password_hash(user.password),
        name=user.name or None,
        dob=user.dob or None,
        contact=user.contact or None,
        email=user.email or None,
        role=role,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username already exists")
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to register user %s", user.username)
        raise StorageError("Internal server error") from e
    db.refresh(db_user)
    logger.info("Registered user id=%s username=%s", db_user.id, db_user.username)
    return db_user


def authenticate(db: Session, username: str, password: str) -> models_db.User:
    user = get_user_by_username(db, username)
    if not user or not security.verify_password(password, user.hashed_password):
        raise AuthError("Invalid credentials")
    return user


def create_session(db: Session, user: models_db.User) -> str:
    token = security.create_session_token()
    db.add(models_db.Session(token=token, user_id=user.id))
    db.commit()
    return token


def delete_session(db: Session, token: Optional[str]) -> None:
    """Idempotent: unknown or empty tokens are ignored."""
    if not token:
        return
    db.query(models_db.Session).filter(models_db.Session.token == token).delete()
    db.commit()


def get_user_by_token(db: Session, token: Optional[str]) -> models_db.User:
    if not token:
        raise AuthError("No token")
    user = (
        db.query(models_db.User)
        .join(models_db.Session, models_db.Session.user_id == models_db.User.id)
        .filter(models_db.Session.token == token)
        .first()
    )
    if user is None:
        raise AuthError("Invalid token")
    return user


def count_users(db: Session) -> int:
    return db.query(models_db.User).count()


def ensure_user(db: Session, username: str, password: str, role: str) -> models_db.User:
    """Create the account, or reset its password and role if it exists."""
    user = get_user_by_username(db, username)
    if user is None:
        user = models_db.User(username=username, role=role,
                              hashed_password=security.get_password_hash(password))
        db.add(user)
    else:
        user.hashed_password = security.get_password_hash(password)
        user.role = role
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, username: str) -> bool:
    user = get_user_by_username(db, username)
    if user is None:
        return False
    db.delete(user)  # sessions go with it (cascade)
    db.commit()
    return True
