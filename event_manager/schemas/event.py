"""Pydantic schemas for Events, RSVPs, attendance and notifications."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from event_manager.models.attendance import AttendanceStatus
from event_manager.models.rsvp import RSVPStatus
from event_manager.schemas.user import UserOut


class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=5, max_length=500)
    location: str = Field(min_length=3, max_length=200)
    start_time: datetime
    end_time: Optional[datetime] = None


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=5, max_length=500)
    location: Optional[str] = Field(default=None, min_length=3, max_length=200)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class EventOut(BaseModel):
    event_id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    attendees: list[UserOut] = []

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    success: bool = True
    event: EventOut


class EventDeletedResponse(BaseModel):
    success: bool = True
    message: str
    event: EventOut


class EventListResponse(BaseModel):
    success: bool = True
    events: list[EventOut]


class RSVPRequest(BaseModel):
    status: RSVPStatus = RSVPStatus.pending


class RSVPOut(BaseModel):
    rsvp_id: str
    event_id: str
    user_id: str
    status: RSVPStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RSVPResponse(BaseModel):
    success: bool = True
    rsvp: RSVPOut


class ActivityOut(RSVPOut):
    event: EventOut


class ActivityResponse(BaseModel):
    success: bool = True
    activity: list[ActivityOut]


class AttendeesResponse(BaseModel):
    success: bool = True
    attendees: list[UserOut]


class ReminderRequest(BaseModel):
    message: str = Field(min_length=1, max_length=5000)


class ReminderResponse(BaseModel):
    success: bool = True
    message: str
    recipients: int


class NotifyRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)


class NotificationOut(BaseModel):
    notification_id: str
    event_id: str
    user_id: Optional[str] = None
    message: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    success: bool = True
    message: str
    notification: NotificationOut


class NotificationListResponse(BaseModel):
    success: bool = True
    notifications: list[NotificationOut]


class AttendanceRequest(BaseModel):
    user_id: str
    status: AttendanceStatus


class AttendanceOut(BaseModel):
    attendance_id: str
    event_id: str
    user_id: str
    status: AttendanceStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AttendanceResponse(BaseModel):
    success: bool = True
    attendance: AttendanceOut


class AttendanceListResponse(BaseModel):
    success: bool = True
    attendance: list[AttendanceOut]
