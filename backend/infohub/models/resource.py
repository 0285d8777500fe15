from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, JSON, BigInteger
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.types import GUID
from infohub.models.user import enum_column


class ResourceType(str, enum.Enum):
    PDF = "PDF"
    VIDEO = "Video"
    INTERACTIVE = "Interactive"
    EXTERNAL_PLATFORM = "External Platform"
    IMAGE = "Image"
    DOCUMENT = "Document"


class ResourceStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AccessLevel(str, enum.Enum):
    PUBLIC = "public"
    TEACHERS = "teachers"
    GRADE_SPECIFIC = "grade_specific"


class ResourceCategory(Base):
    __tablename__ = "resource_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    display_name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    resources = relationship("Resource", back_populates="category")


class GradeLevel(Base):
    __tablename__ = "grade_levels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    min_grade = Column(Integer, nullable=True)
    max_grade = Column(Integer, nullable=True)
    color = Column(String(20), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    resources = relationship("Resource", back_populates="grade_level")


class Resource(Base):
    """Learning resource: an uploaded file or a link to an external platform"""
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    resource_type = enum_column(ResourceType, nullable=False, index=True)

    file_url = Column(Text, nullable=True)
    external_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    file_size = Column(BigInteger, nullable=True)

    category_id = Column(Integer, ForeignKey("resource_categories.id", ondelete="SET NULL"), nullable=True)
    grade_level_id = Column(Integer, ForeignKey("grade_levels.id", ondelete="SET NULL"), nullable=True)
    tags = Column(JSON, default=list)
    subject = Column(String(100), nullable=True)
    difficulty = Column(String(20), nullable=True)  # beginner / intermediate / advanced

    status = enum_column(ResourceStatus, default=ResourceStatus.PUBLISHED, nullable=False, index=True)
    access_level = enum_column(AccessLevel, default=AccessLevel.PUBLIC, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("ResourceCategory", back_populates="resources", lazy="joined")
    grade_level = relationship("GradeLevel", back_populates="resources", lazy="joined")

    def __repr__(self):
        return f"<Resource {self.id} {self.title!r}>"
