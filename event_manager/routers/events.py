"""Event API routes. Delegates to event_service for ownership and persistence."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session

from event_manager.database import get_db
from event_manager.mail import MailTransport, get_mailer
from event_manager.schemas.common import parse_payload
from event_manager.schemas.event import (
    ActivityResponse,
    AttendanceListResponse,
    AttendanceRequest,
    AttendanceResponse,
    AttendeesResponse,
    EventCreate,
    EventDeletedResponse,
    EventListResponse,
    EventResponse,
    EventUpdate,
    NotificationListResponse,
    NotificationResponse,
    NotifyRequest,
    ReminderRequest,
    ReminderResponse,
    RSVPRequest,
    RSVPResponse,
)
from event_manager.security import AuthContext, get_current_user
from event_manager.services import event_service
from event_manager.storage import ImageStore, get_image_store

logger = logging.getLogger(__name__)
router = APIRouter()

# Optional event fields a PUT may reset by sending them empty
CLEARABLE_FIELDS = ("description", "end_time")


def _form_fields(**fields) -> dict:
    """Drop fields the client left out (or sent empty) from a multipart form."""
    return {k: v for k, v in fields.items() if v not in (None, "")}


async def _cleared_fields(request: Request) -> set[str]:
    """Clearable fields the form sent empty. FastAPI hands those to the route as None."""
    form = await request.form()
    return {name for name in CLEARABLE_FIELDS if form.get(name) == ""}


def _store_image(image: Optional[UploadFile], store: ImageStore) -> Optional[str]:
    if image is None or not image.filename:
        return None
    return store.save(image.filename, image.file.read(), image.content_type)


def _discard_image(image_url: Optional[str], store: ImageStore) -> None:
    """Drop an upload whose event write was rejected."""
    if image_url:
        store.delete(image_url)


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    start_time: Optional[str] = Form(None),
    end_time: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    image_store: ImageStore = Depends(get_image_store),
):
    """Create an event owned by the caller, with an optional image upload.

    Any owner field in the form is ignored.
    """
    payload = parse_payload(EventCreate, _form_fields(
        title=title, description=description, location=location,
        start_time=start_time, end_time=end_time,
    ))
    image_url = _store_image(image, image_store)
    try:
        event = event_service.create_event(
            db=db,
            actor_id=auth.user_id,
            title=payload.title,
            description=payload.description,
            location=payload.location,
            start_time=payload.start_time,
            end_time=payload.end_time,
            image_url=image_url,
        )
    except Exception:
        _discard_image(image_url, image_store)
        raise
    return {"success": True, "event": event}


@router.get("/", response_model=EventListResponse)
def list_events(db: Session = Depends(get_db)):
    """List all events with their attendees."""
    return {"success": True, "events": event_service.list_events(db)}


@router.get("/users/{user_id}/activity", response_model=ActivityResponse)
def get_user_activity(
    user_id: str,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """RSVPs of a user with event details."""
    return {"success": True, "activity": event_service.get_user_activity(db, user_id)}


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Fetch a single event by ID with attendees."""
    return {"success": True, "event": event_service.get_event_by_id(db, event_id)}


@router.put("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    start_time: Optional[str] = Form(None),
    end_time: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    cleared: set[str] = Depends(_cleared_fields),
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    image_store: ImageStore = Depends(get_image_store),
):
    """Update an event (owner or admin only).

    Omitted fields keep their values; an empty description or end_time clears it.
    """
    fields = _form_fields(
        title=title, description=description, location=location,
        start_time=start_time, end_time=end_time,
    )
    fields.update({name: None for name in cleared})
    payload = parse_payload(EventUpdate, fields)
    updates = payload.model_dump(exclude_unset=True)
    image_url = _store_image(image, image_store)
    if image_url:
        updates["image_url"] = image_url
    try:
        event = event_service.update_event(
            db=db,
            event_id=event_id,
            actor_id=auth.user_id,
            actor_role=auth.role,
            updates=updates,
        )
    except Exception:
        _discard_image(image_url, image_store)
        raise
    return {"success": True, "event": event}


@router.delete("/{event_id}", response_model=EventDeletedResponse)
def delete_event(
    event_id: str,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete an event (owner or admin only)."""
    event = event_service.delete_event(db, event_id, auth.user_id, auth.role)
    return {"success": True, "message": "Event deleted", "event": event}


@router.post("/{event_id}/rsvp", response_model=RSVPResponse)
def rsvp_to_event(
    event_id: str,
    payload: Optional[RSVPRequest] = None,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """RSVP the caller to an event; repeating it changes the status."""
    rsvp_status = payload.status if payload else RSVPRequest().status
    rsvp = event_service.rsvp_to_event(db, event_id, auth.user_id, rsvp_status)
    return {"success": True, "rsvp": rsvp}


@router.get("/{event_id}/attendees", response_model=AttendeesResponse)
def get_event_attendees(
    event_id: str,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "attendees": event_service.get_event_attendees(db, event_id)}


@router.post("/{event_id}/reminder", response_model=ReminderResponse)
async def send_reminder(
    event_id: str,
    payload: ReminderRequest,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: MailTransport = Depends(get_mailer),
):
    """Email a reminder to everyone who RSVP'd."""
    recipients = await event_service.send_reminder(db, mailer, event_id, payload.message)
    return {"success": True, "message": "Reminder sent", "recipients": recipients}


@router.post("/{event_id}/notify", response_model=NotificationResponse)
def send_in_app_notification(
    event_id: str,
    payload: NotifyRequest,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = event_service.send_in_app_notification(db, event_id, payload.message)
    return {"success": True, "message": "Notification sent", "notification": notification}


@router.get("/{event_id}/notifications", response_model=NotificationListResponse)
def list_notifications(
    event_id: str,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "notifications": event_service.list_notifications(db, event_id)}


@router.post("/{event_id}/attendance", response_model=AttendanceResponse)
def record_attendance(
    event_id: str,
    payload: AttendanceRequest,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record post-event attendance for an RSVP'd user (owner or admin only)."""
    record = event_service.record_attendance(
        db=db,
        event_id=event_id,
        actor_id=auth.user_id,
        actor_role=auth.role,
        user_id=payload.user_id,
        status=payload.status,
    )
    return {"success": True, "attendance": record}


@router.get("/{event_id}/attendance", response_model=AttendanceListResponse)
def list_attendance(
    event_id: str,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "attendance": event_service.list_attendance(db, event_id)}
