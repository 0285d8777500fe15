from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.types import GUID
from infohub.models.user import enum_column


class TargetAudience(str, enum.Enum):
    TEACHERS = "teachers"
    PARENTS = "parents"
    ALL = "all"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnnouncementStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Announcement(Base):
    """School announcement with sanitized rich-text content"""
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(String(500), nullable=True)

    author_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    target_audience = enum_column(TargetAudience, default=TargetAudience.ALL, nullable=False, index=True)
    priority = enum_column(Priority, default=Priority.MEDIUM, nullable=False)
    status = enum_column(AnnouncementStatus, default=AnnouncementStatus.DRAFT, nullable=False, index=True)

    published_at = Column(DateTime, nullable=True, index=True)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = relationship("User", foreign_keys=[author_id], lazy="joined")

    def __repr__(self):
        return f"<Announcement {self.id} {self.title!r}>"
