from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Text, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.types import GUID
from infohub.models.announcement import TargetAudience
from infohub.models.user import enum_column


class EventType(str, enum.Enum):
    MEETING = "meeting"
    CELEBRATION = "celebration"
    ACADEMIC = "academic"
    SPORTS = "sports"
    CULTURAL = "cultural"
    PARENT_TEACHER = "parent_teacher"
    HOLIDAY = "holiday"
    OTHER = "other"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"
    COMPLETED = "completed"


class RegistrationStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    WAITING_LIST = "waiting_list"
    CANCELLED = "cancelled"


class Event(Base):
    """School calendar event, optionally with registration"""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_type = enum_column(EventType, default=EventType.OTHER, nullable=False, index=True)

    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True)
    start_time = Column(String(5), nullable=True)  # HH:MM
    end_time = Column(String(5), nullable=True)
    location = Column(String(255), nullable=True)

    max_participants = Column(Integer, nullable=True)
    registration_required = Column(Boolean, default=False, nullable=False)
    registration_deadline = Column(DateTime, nullable=True)

    target_grades = Column(JSON, default=list)
    target_audience = enum_column(TargetAudience, default=TargetAudience.ALL, nullable=False)
    status = enum_column(EventStatus, default=EventStatus.DRAFT, nullable=False, index=True)
    is_featured = Column(Boolean, default=False, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    registrations = relationship(
        "EventRegistration", back_populates="event", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Event {self.id} {self.title!r}>"


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_registration_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    participant_name = Column(String(200), nullable=True)
    participant_email = Column(String(255), nullable=True)
    participant_phone = Column(String(20), nullable=True)
    grade = Column(String(50), nullable=True)
    special_requests = Column(Text, nullable=True)

    status = enum_column(RegistrationStatus, default=RegistrationStatus.CONFIRMED, nullable=False, index=True)
    registered_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    checked_in = Column(Boolean, default=False, nullable=False)
    checked_in_at = Column(DateTime, nullable=True)

    event = relationship("Event", back_populates="registrations")
    user = relationship("User", back_populates="registrations")

    def __repr__(self):
        return f"<EventRegistration event={self.event_id} user={self.user_id} {self.status}>"
