from pydantic import Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from infohub.schemas.common import CamelModel


class NotificationSend(CamelModel):
    title: str = ""
    message: str = ""
    type: str = "system"
    priority: Optional[str] = None
    recipient_type: str = "all"
    recipient_ids: List[str] = Field(default_factory=list)
    target_roles: List[str] = Field(default_factory=list)
    target_grades: List[str] = Field(default_factory=list)
    template: Optional[str] = None
    template_data: Dict[str, Any] = Field(default_factory=dict)
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    expires_at: Optional[datetime] = None


class NotificationUpdate(CamelModel):
    is_read: bool = True


class MarkReadRequest(CamelModel):
    notification_ids: Optional[List[int]] = None
    mark_all: bool = False


class NotificationBulk(CamelModel):
    action: str
    notification_ids: List[int] = Field(..., min_length=1, max_length=500)


class MaintenanceNotice(CamelModel):
    start_time: datetime
    end_time: datetime
    description: str = ""
