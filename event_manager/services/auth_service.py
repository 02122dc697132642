"""Account and session lifecycle.

Sign-up, sign-in, per-device and global logout, password change and profile
reads. User objects returned from here still hold ``password_hash``; routes
serialize them through ``UserOut``, which has no secret or token fields.
"""
import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from event_manager.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    translate_persistence_errors,
)
from event_manager.models.user import Role, User, UserSession
from event_manager.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _email_taken(db: Session, email: str, exclude_user_id: Optional[str] = None) -> bool:
    query = db.query(User).filter(User.email == email)
    if exclude_user_id:
        query = query.filter(User.user_id != exclude_user_id)
    return query.first() is not None


@translate_persistence_errors("Error signing up")
def sign_up(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: Optional[Role] = None,
) -> User:
    """Register a user; the password is hashed before it reaches the database."""
    email = normalize_email(email)
    if _email_taken(db, email):
        raise ConflictError("User with this email already exists")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=Role(role) if role else Role.user,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent sign-up for the same address
        db.rollback()
        raise ConflictError("User with this email already exists") from exc
    db.refresh(user)
    logger.info("Signed up user %s with role %s", user.user_id, user.role.value)
    return user


@translate_persistence_errors("Error signing in")
def sign_in(db: Session, email: str, password: str) -> tuple[str, User]:
    """Check credentials and open a new session.

    Returns the signed token and the user. Each sign-in adds one token to the
    user's active set, so several devices can be signed in at once.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        raise NotFoundError("User not found")

    if not verify_password(password, user.password_hash):
        logger.warning("Rejected sign-in for user %s: password mismatch", user.user_id)
        raise BadRequestError("Password does not match")

    token = create_access_token(user)
    db.add(UserSession(user_id=user.user_id, token=token))
    db.commit()
    db.refresh(user)
    logger.info("User %s signed in", user.user_id)
    return token, user


@translate_persistence_errors("Error logging out")
def log_out(db: Session, user_id: str, token: str) -> None:
    """Revoke one session token. A token that is already gone is not an error."""
    _get_user_or_404(db, user_id)
    removed = (
        db.query(UserSession)
        .filter(UserSession.user_id == user_id, UserSession.token == token)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("User %s logged out (%d session(s) revoked)", user_id, removed)


@translate_persistence_errors("Error logging out from all devices")
def log_out_from_all_devices(db: Session, user_id: str) -> int:
    """Revoke every session token of the user; returns how many were removed."""
    _get_user_or_404(db, user_id)
    removed = (
        db.query(UserSession)
        .filter(UserSession.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("User %s logged out from all devices (%d session(s) revoked)", user_id, removed)
    return removed


@translate_persistence_errors("Error changing password")
def change_password(db: Session, user_id: str, new_password: str) -> None:
    """Re-hash the password and revoke all outstanding sessions."""
    user = _get_user_or_404(db, user_id)
    user.password_hash = hash_password(new_password)
    revoked = (
        db.query(UserSession)
        .filter(UserSession.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Changed password for user %s (%d session(s) revoked)", user_id, revoked)


@translate_persistence_errors("Error updating user details")
def update_details(db: Session, user_id: str, changes: dict[str, Any]) -> User:
    """Partial update of profile fields. The password is never touched here."""
    user = _get_user_or_404(db, user_id)
    changes = {k: v for k, v in changes.items() if k in ("name", "email") and v is not None}

    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
        if _email_taken(db, changes["email"], exclude_user_id=user_id):
            raise ConflictError("User with this email already exists")
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("Updated details for user %s: %s", user_id, sorted(changes))
    return user


@translate_persistence_errors("Error getting user")
def get_user(db: Session, user_id: str) -> User:
    return _get_user_or_404(db, user_id)


@translate_persistence_errors("Error listing users")
def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at, User.name).all()
