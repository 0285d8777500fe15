from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON
from datetime import datetime

from infohub.core.database import Base
from infohub.core.types import GUID, generate_uuid


class SystemSetting(Base):
    """Site settings editable from the admin panel"""
    __tablename__ = "system_settings"

    id = Column(GUID, primary_key=True, default=generate_uuid)

    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=False)

    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)  # 'site', 'homepage', 'contact', 'features', 'notifications', 'general'

    updated_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SystemSetting {self.key}>"
