"""Pydantic schemas for Users and authentication."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from event_manager.models.user import Role

# bcrypt only looks at the first 72 bytes of a secret
MAX_PASSWORD_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


class SignUpRequest(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=5, max_length=72)
    role: Optional[Role] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    token: Optional[str] = None  # defaults to the token the request was made with


class ChangePasswordRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None


class UserOut(BaseModel):
    """Public view of a user: never carries the password hash or session tokens."""

    user_id: str
    name: str
    email: str
    role: Role
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    success: bool = True
    user: UserOut


class SignInResponse(BaseModel):
    success: bool = True
    token: str
    user: UserOut


class UserListResponse(BaseModel):
    success: bool = True
    users: list[UserOut]
