"""Core event service.

Responsibilities:
- Event CRUD, with the owner taken from the authenticated caller
- Owner/admin gate on update, delete and attendance
- RSVP upsert (one row per event and user)
- Reminder fan-out over the injected mail transport
- In-app notifications and user activity
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import pytz
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from event_manager.config import settings
from event_manager.errors import (
    BadRequestError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    translate_persistence_errors,
)
from event_manager.mail import MailTransport
from event_manager.models.attendance import Attendance, AttendanceStatus
from event_manager.models.event import Event
from event_manager.models.notification import InAppNotification
from event_manager.models.rsvp import RSVP, RSVPStatus
from event_manager.models.user import Role, User
from event_manager.schemas.event import EventOut

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "location", "start_time", "end_time", "image_url")


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize client input to UTC; naive values are read in DEFAULT_TIMEZONE."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = pytz.timezone(settings.DEFAULT_TIMEZONE).localize(value)
    return value.astimezone(pytz.utc)


def _stored_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Values read back from the database are UTC even when the driver drops tzinfo."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=pytz.utc)


def _check_time_window(start: datetime, end: Optional[datetime]) -> None:
    if end is not None and end < start:
        raise BadRequestError("End time must not be before start time")


def _get_event_or_404(db: Session, event_id: str) -> Event:
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def _check_owner(event: Event, actor_id: str, actor_role: Role) -> None:
    """Only the event owner (or an admin) may modify the event."""
    if event.created_by != actor_id and actor_role != Role.admin:
        raise ForbiddenError("Only the event owner may modify this event")


@translate_persistence_errors("Error creating event")
def create_event(
    db: Session,
    actor_id: str,
    title: str,
    description: Optional[str],
    location: Optional[str],
    start_time: datetime,
    end_time: Optional[datetime] = None,
    image_url: Optional[str] = None,
) -> Event:
    """Create an event owned by ``actor_id``."""
    start_utc = _to_utc(start_time)
    end_utc = _to_utc(end_time)
    _check_time_window(start_utc, end_utc)

    event = Event(
        title=title,
        description=description,
        location=location,
        image_url=image_url,
        start_time=start_utc,
        end_time=end_utc,
        created_by=actor_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by user %s", title, event.event_id, actor_id)
    return event


@translate_persistence_errors("Error listing events")
def list_events(db: Session) -> list[Event]:
    return db.query(Event).order_by(Event.start_time).all()


@translate_persistence_errors("Error getting event by ID")
def get_event_by_id(db: Session, event_id: str) -> Event:
    return _get_event_or_404(db, event_id)


@translate_persistence_errors("Error updating event")
def update_event(
    db: Session,
    event_id: str,
    actor_id: str,
    actor_role: Role,
    updates: dict[str, Any],
) -> Event:
    """Replace the provided fields only; the owner can never be reassigned."""
    event = _get_event_or_404(db, event_id)
    _check_owner(event, actor_id, actor_role)

    updates = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if "start_time" in updates:
        updates["start_time"] = _to_utc(updates["start_time"])
    if "end_time" in updates:
        updates["end_time"] = _to_utc(updates["end_time"])

    start = updates.get("start_time", _stored_utc(event.start_time))
    end = updates.get("end_time", _stored_utc(event.end_time))
    _check_time_window(start, end)

    for field, value in updates.items():
        setattr(event, field, value)
    db.commit()
    db.refresh(event)
    logger.info("Updated event %s by user %s: %s", event_id, actor_id, sorted(updates))
    return event


@translate_persistence_errors("Error deleting event")
def delete_event(db: Session, event_id: str, actor_id: str, actor_role: Role) -> EventOut:
    """Delete an event with its RSVPs, attendance and notifications.

    Returns a snapshot of the record as it was before deletion.
    """
    event = _get_event_or_404(db, event_id)
    _check_owner(event, actor_id, actor_role)

    snapshot = EventOut.model_validate(event)
    db.delete(event)
    db.commit()
    logger.info("Deleted event %s by user %s", event_id, actor_id)
    return snapshot


def _find_rsvp(db: Session, event_id: str, user_id: str) -> Optional[RSVP]:
    return (
        db.query(RSVP)
        .filter(RSVP.event_id == event_id, RSVP.user_id == user_id)
        .first()
    )


@translate_persistence_errors("Error RSVPing to event")
def rsvp_to_event(
    db: Session,
    event_id: str,
    user_id: str,
    status: RSVPStatus = RSVPStatus.pending,
) -> RSVP:
    """Record a user's RSVP; a repeat RSVP updates the status of the existing one."""
    _get_event_or_404(db, event_id)

    rsvp = _find_rsvp(db, event_id, user_id)
    if rsvp:
        rsvp.status = RSVPStatus(status)
        db.commit()
    else:
        rsvp = RSVP(event_id=event_id, user_id=user_id, status=RSVPStatus(status))
        db.add(rsvp)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent first RSVP got in between; update that row instead
            db.rollback()
            rsvp = _find_rsvp(db, event_id, user_id)
            if rsvp is None:
                raise
            rsvp.status = RSVPStatus(status)
            db.commit()
    db.refresh(rsvp)
    logger.info("User %s RSVP'd '%s' to event %s", user_id, rsvp.status.value, event_id)
    return rsvp


@translate_persistence_errors("Error getting event attendees")
def get_event_attendees(db: Session, event_id: str) -> list[User]:
    _get_event_or_404(db, event_id)
    return (
        db.query(User)
        .join(RSVP, RSVP.user_id == User.user_id)
        .filter(RSVP.event_id == event_id)
        .order_by(RSVP.created_at)
        .all()
    )


def _reminder_recipients(db: Session, event_id: str) -> tuple[str, list[str]]:
    """Event title and the email of every RSVP'd user, loaded in one query."""
    event = _get_event_or_404(db, event_id)
    rows = (
        db.query(User.email)
        .join(RSVP, RSVP.user_id == User.user_id)
        .filter(RSVP.event_id == event_id)
        .order_by(RSVP.created_at)
        .all()
    )
    return event.title, [email for (email,) in rows]


@translate_persistence_errors("Error sending reminder")
async def send_reminder(db: Session, mailer: MailTransport, event_id: str, message: str) -> int:
    """Email ``message`` to every RSVP'd user of the event.

    Recipients are read in a worker thread; the session never runs on the
    event loop. Sends run concurrently and all of them settle
    before this returns. Any failed send fails the whole call; which ones
    failed is only logged. Returns the number of recipients.
    """
    title, recipients = await run_in_threadpool(_reminder_recipients, db, event_id)
    subject = f"Reminder for {title}"

    results = await asyncio.gather(
        *(mailer.send(email, subject, message) for email in recipients),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        logger.error(
            "%d of %d reminder(s) for event %s failed: %s",
            len(failures), len(recipients), event_id, failures[0],
        )
        raise InternalError("Error sending reminder")

    logger.info("Sent %d reminder(s) for event %s", len(recipients), event_id)
    return len(recipients)


@translate_persistence_errors("Error sending in-app notification")
def send_in_app_notification(db: Session, event_id: str, message: str) -> InAppNotification:
    """Persist an event-wide notification. Nothing is pushed to clients."""
    _get_event_or_404(db, event_id)
    notification = InAppNotification(event_id=event_id, message=message)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info("Created notification %s for event %s", notification.notification_id, event_id)
    return notification


@translate_persistence_errors("Error listing notifications")
def list_notifications(db: Session, event_id: str) -> list[InAppNotification]:
    _get_event_or_404(db, event_id)
    return (
        db.query(InAppNotification)
        .filter(InAppNotification.event_id == event_id)
        .order_by(InAppNotification.created_at.desc())
        .all()
    )


@translate_persistence_errors("Error getting user activity")
def get_user_activity(db: Session, user_id: str) -> list[RSVP]:
    """All RSVPs of a user, newest first, with their events."""
    return (
        db.query(RSVP)
        .filter(RSVP.user_id == user_id)
        .order_by(RSVP.created_at.desc())
        .all()
    )


@translate_persistence_errors("Error recording attendance")
def record_attendance(
    db: Session,
    event_id: str,
    actor_id: str,
    actor_role: Role,
    user_id: str,
    status: AttendanceStatus,
) -> Attendance:
    """Mark whether an RSVP'd user attended. Only users with an RSVP qualify."""
    event = _get_event_or_404(db, event_id)
    _check_owner(event, actor_id, actor_role)

    if not _find_rsvp(db, event_id, user_id):
        raise BadRequestError("User has not RSVP'd to this event")

    record = (
        db.query(Attendance)
        .filter(Attendance.event_id == event_id, Attendance.user_id == user_id)
        .first()
    )
    if record:
        record.status = AttendanceStatus(status)
    else:
        record = Attendance(event_id=event_id, user_id=user_id, status=AttendanceStatus(status))
        db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Marked user %s as %s for event %s", user_id, record.status.value, event_id)
    return record


@translate_persistence_errors("Error listing attendance")
def list_attendance(db: Session, event_id: str) -> list[Attendance]:
    _get_event_or_404(db, event_id)
    return (
        db.query(Attendance)
        .filter(Attendance.event_id == event_id)
        .order_by(Attendance.created_at)
        .all()
    )
