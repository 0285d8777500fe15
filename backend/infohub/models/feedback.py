from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.types import GUID
from infohub.models.user import enum_column


class FeedbackType(str, enum.Enum):
    GENERAL = "general"
    BUG = "bug"
    FEATURE = "feature"
    PRAISE = "praise"


class FeedbackStatus(str, enum.Enum):
    NEW = "new"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"


class Feedback(Base):
    """Site feedback from parents, staff or anonymous visitors"""
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = enum_column(FeedbackType, default=FeedbackType.GENERAL, nullable=False)
    rating = Column(Integer, nullable=True)
    message = Column(Text, nullable=False)
    email = Column(String(255), nullable=True)
    page_url = Column(String(500), nullable=True)
    status = enum_column(FeedbackStatus, default=FeedbackStatus.NEW, nullable=False, index=True)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
