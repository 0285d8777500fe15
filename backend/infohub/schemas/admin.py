from pydantic import Field
from typing import Any, Dict, Optional

from infohub.schemas.common import CamelModel


class AdminUserUpdate(CamelModel):
    role: Optional[str] = None
    is_active: Optional[bool] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)


class ApproveUserRequest(CamelModel):
    role: Optional[str] = None


class RejectUserRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=1000)


class UpgradeReview(CamelModel):
    action: str  # approve / reject
    comment: Optional[str] = Field(None, max_length=1000)


class SystemSettingUpdate(CamelModel):
    value: Any
    description: Optional[str] = None


class SettingsBatchUpdate(CamelModel):
    settings: Dict[str, Any]


class FeedbackStatusUpdate(CamelModel):
    status: Optional[str] = None
    admin_notes: Optional[str] = None
