"""User and authentication API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from event_manager.database import get_db
from event_manager.schemas.common import MessageResponse
from event_manager.schemas.user import (
    ChangePasswordRequest,
    LogoutRequest,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from event_manager.security import AuthContext, get_current_user
from event_manager.services import auth_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def sign_up(payload: SignUpRequest, db: Session = Depends(get_db)):
    """Register a new account."""
    user = auth_service.sign_up(db, payload.name, payload.email, payload.password, payload.role)
    return {"success": True, "user": user}


@router.post("/signin", response_model=SignInResponse)
def sign_in(payload: SignInRequest, db: Session = Depends(get_db)):
    """Exchange credentials for a session token."""
    token, user = auth_service.sign_in(db, payload.email, payload.password)
    return {"success": True, "token": token, "user": user}


@router.post("/logout", response_model=MessageResponse)
def log_out(
    payload: Optional[LogoutRequest] = None,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Revoke one of the caller's tokens, the current one unless another is given."""
    token = payload.token if payload and payload.token else auth.token
    auth_service.log_out(db, auth.user_id, token)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/logout-all", response_model=MessageResponse)
def log_out_all(auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    auth_service.log_out_from_all_devices(db, auth.user_id)
    return {"success": True, "message": "Logged out from all devices"}


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Set a new password. Every session, including this one, is signed out."""
    auth_service.change_password(db, auth.user_id, payload.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.put("/update-details", response_model=UserResponse)
def update_details(
    payload: UserUpdate,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = auth_service.update_details(db, auth.user_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "user": user}


@router.get("/user/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)):
    """Fetch a single user by ID."""
    return {"success": True, "user": auth_service.get_user(db, user_id)}


@router.get("/users", response_model=UserListResponse)
def list_users(auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    """List all users."""
    return {"success": True, "users": auth_service.list_users(db)}
