from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.types import GUID
from infohub.models.announcement import Priority
from infohub.models.user import enum_column


class CommunicationType(str, enum.Enum):
    ANNOUNCEMENT = "announcement"
    MESSAGE = "message"
    REMINDER = "reminder"
    NEWSLETTER = "newsletter"


class CommunicationAudience(str, enum.Enum):
    ALL = "all"
    TEACHERS = "teachers"
    PARENTS = "parents"
    STAFF = "staff"


class BoardType(str, enum.Enum):
    TEACHERS = "teachers"
    PARENTS = "parents"
    GENERAL = "general"


class CommunicationStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    CLOSED = "closed"


class Communication(Base):
    """
    Unified record for announcements, message-board posts, teacher reminders
    and newsletters.
    """
    __tablename__ = "communications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(String(500), nullable=True)

    type = enum_column(CommunicationType, nullable=False, index=True)
    source_group = Column(String(100), nullable=True)  # e.g. 'office', 'pta', 'grade-3'
    target_audience = enum_column(CommunicationAudience, default=CommunicationAudience.ALL, nullable=False)
    board_type = enum_column(BoardType, default=BoardType.GENERAL, nullable=False, index=True)
    status = enum_column(CommunicationStatus, default=CommunicationStatus.DRAFT, nullable=False, index=True)
    priority = enum_column(Priority, default=Priority.MEDIUM, nullable=False)

    is_important = Column(Boolean, default=False, nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)

    published_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)  # reminders
    issue_number = Column(Integer, nullable=True)  # newsletters

    author_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    view_count = Column(Integer, default=0, nullable=False)
    reply_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = relationship("User", foreign_keys=[author_id], lazy="joined")
    replies = relationship(
        "CommunicationReply",
        back_populates="communication",
        cascade="all, delete-orphan",
        order_by="CommunicationReply.created_at",
    )

    def __repr__(self):
        return f"<Communication {self.type} {self.id}>"


class CommunicationReply(Base):
    __tablename__ = "communication_replies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    communication_id = Column(
        Integer, ForeignKey("communications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    parent_reply_id = Column(Integer, ForeignKey("communication_replies.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    communication = relationship("Communication", back_populates="replies")
    author = relationship("User", foreign_keys=[author_id], lazy="joined")
