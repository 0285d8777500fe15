from pydantic import EmailStr
from typing import Optional

from infohub.schemas.common import CamelModel


class FeedbackCreate(CamelModel):
    """Schema for creating feedback"""
    type: str  # general, bug, feature, praise
    rating: Optional[int] = None  # 1-5
    message: str
    email: Optional[EmailStr] = None
    page_url: Optional[str] = None


class FeedbackResponse(CamelModel):
    """Response after submitting feedback"""
    success: bool
    message: str
    feedback_id: Optional[int] = None
