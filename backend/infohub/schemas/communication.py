from pydantic import Field
from typing import Optional
from datetime import datetime

from infohub.schemas.common import CamelModel


class CommunicationBase(CamelModel):
    summary: Optional[str] = Field(None, max_length=500)
    source_group: Optional[str] = Field(None, max_length=100)
    target_audience: Optional[str] = None
    board_type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    is_important: Optional[bool] = None
    is_pinned: Optional[bool] = None
    is_featured: Optional[bool] = None
    expires_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    issue_number: Optional[int] = Field(None, ge=1)


class CommunicationCreate(CommunicationBase):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    type: str


class CommunicationUpdate(CommunicationBase):
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    type: Optional[str] = None


class ReplyCreate(CamelModel):
    content: str = Field(..., min_length=1)
    parent_reply_id: Optional[int] = None
