"""Event ORM model."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from event_manager.database import Base


class Event(Base):
    __tablename__ = "events"

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    image_url = Column(String(500), nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User")
    rsvps = relationship("RSVP", back_populates="event", cascade="all, delete-orphan")
    attendance = relationship("Attendance", back_populates="event", cascade="all, delete-orphan")
    notifications = relationship("InAppNotification", back_populates="event", cascade="all, delete-orphan")

    # Every user holding an RSVP, whatever its status
    attendees = relationship("User", secondary="rsvps", viewonly=True, order_by="User.name")
