from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from infohub.core.database import Base
from infohub.core.types import GUID, generate_uuid


class AuditLog(Base):
    """Audit log for tracking admin actions"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    admin_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    action = Column(String(100), nullable=False)  # e.g., 'user_approved', 'setting_updated'
    target_type = Column(String(50), nullable=False)  # e.g., 'user', 'setting', 'announcement'
    target_id = Column(String(64), nullable=True)

    details = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    admin = relationship("User", foreign_keys=[admin_id])

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.admin_id}>"
