from pydantic import Field
from typing import Optional
from datetime import datetime

from infohub.schemas.common import CamelModel


class AnnouncementCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    summary: Optional[str] = Field(None, max_length=500)
    target_audience: Optional[str] = "all"
    priority: Optional[str] = "medium"
    status: Optional[str] = "draft"
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class AnnouncementUpdate(CamelModel):
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    summary: Optional[str] = Field(None, max_length=500)
    target_audience: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    expires_at: Optional[datetime] = None
