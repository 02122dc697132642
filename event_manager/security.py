"""Password hashing, session tokens and the bearer-token authorization gate."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from event_manager.config import settings
from event_manager.database import get_db
from event_manager.errors import BadRequestError, UnauthorizedError
from event_manager.models.user import Role, User, UserSession
from event_manager.schemas.user import MAX_PASSWORD_BYTES

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Salted bcrypt hash of a plaintext password."""
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequestError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    # No stored hash can come from a secret bcrypt refuses to hash
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_access_token(user: User) -> str:
    """Sign a session token binding the user's id and email.

    ``jti`` keeps tokens from two sign-ins within the same second distinct.
    """
    now = datetime.now(timezone.utc)
    claims = {
        "userId": user.user_id,
        "email": user.email,
        "jti": uuid.uuid4().hex,
        "iat": now,
    }
    if settings.JWT_EXPIRE_MINUTES:
        claims["exp"] = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.warning("Rejected session token: %s", exc)
        raise UnauthorizedError("Invalid or expired token") from exc


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, handed explicitly to service functions."""

    user_id: str
    role: Role
    token: str


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Authorization gate for protected routes.

    The token must carry a valid signature and still be in the user's set of
    active sessions; logging out removes it from that set.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication token is missing")

    token = credentials.credentials
    claims = decode_access_token(token)
    user_id = claims.get("userId")
    if not user_id:
        raise UnauthorizedError("Token is missing a user identifier")

    session = (
        db.query(UserSession)
        .filter(UserSession.token == token, UserSession.user_id == user_id)
        .first()
    )
    if not session:
        raise UnauthorizedError("Session has been revoked")

    return AuthContext(user_id=user_id, role=session.user.role, token=token)
