from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from infohub.core.database import Base
from infohub.core.rbac import Role
from infohub.core.types import GUID, generate_uuid


def enum_column(enum_cls, **kwargs):
    """Enum column storing member values as VARCHAR (portable across SQLite/PostgreSQL)"""
    return Column(
        SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=32),
        **kwargs
    )


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    display_name = Column(String(200), nullable=True)
    hashed_password = Column(String(255), nullable=True)

    role = enum_column(Role, default=Role.VIEWER, nullable=False)
    is_active = Column(Boolean, default=False)
    approval_status = enum_column(ApprovalStatus, default=ApprovalStatus.PENDING, nullable=False)
    rejection_reason = Column(Text, nullable=True)

    # OAuth fields
    google_id = Column(String(255), unique=True, nullable=True)
    oauth_provider = Column(String(50), nullable=True)  # 'google' or None for email/password
    avatar_url = Column(Text, nullable=True)

    phone = Column(String(20), nullable=True)

    # Password reset fields
    reset_token_hash = Column(String(255), nullable=True)
    reset_token_expires = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    notifications = relationship("Notification", back_populates="recipient", cascade="all, delete-orphan")
    registrations = relationship("EventRegistration", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        if self.display_name:
            return self.display_name
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email

    def __repr__(self):
        return f"<User {self.email}>"


class RoleUpgradeRequest(Base):
    """A user's request to be moved to a more privileged role"""
    __tablename__ = "role_upgrade_requests"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_role = enum_column(Role, nullable=False)
    reason = Column(Text, nullable=True)
    status = enum_column(ApprovalStatus, default=ApprovalStatus.PENDING, nullable=False, index=True)

    reviewed_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    review_comment = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", foreign_keys=[user_id])

    def __repr__(self):
        return f"<RoleUpgradeRequest {self.user_id} -> {self.requested_role}>"
