from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.types import GUID
from infohub.models.user import enum_column


class NotificationType(str, enum.Enum):
    SYSTEM = "system"
    ANNOUNCEMENT = "announcement"
    EVENT = "event"
    REGISTRATION = "registration"
    RESOURCE = "resource"
    NEWSLETTER = "newsletter"
    MAINTENANCE = "maintenance"
    REMINDER = "reminder"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = enum_column(NotificationType, default=NotificationType.SYSTEM, nullable=False, index=True)
    priority = enum_column(NotificationPriority, default=NotificationPriority.MEDIUM, nullable=False)

    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)

    # Link back to the record that triggered this notification
    related_id = Column(Integer, nullable=True)
    related_type = Column(String(50), nullable=True)

    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    recipient = relationship("User", back_populates="notifications")

    def __repr__(self):
        return f"<Notification {self.id} to {self.recipient_id}>"


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    preferences = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
