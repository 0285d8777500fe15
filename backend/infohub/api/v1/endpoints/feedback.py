"""
Feedback API endpoints for collecting user feedback
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.core.rate_limiter import strict_rate_limit
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_optional_user
from infohub.schemas.feedback import FeedbackCreate, FeedbackResponse
from infohub.services import feedback_service

router = APIRouter(prefix="/feedback", tags=["Feedback"])


@router.post("", response_model=FeedbackResponse)
@strict_rate_limit()
async def submit_feedback(
    request: Request,
    feedback: FeedbackCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit user feedback.

    Accepts feedback from both authenticated and anonymous users.
    """
    stored = await feedback_service.submit_feedback(
        db,
        type=feedback.type,
        message=feedback.message,
        rating=feedback.rating,
        email=feedback.email,
        page_url=feedback.page_url,
        user=current_user,
    )
    return FeedbackResponse(
        success=True,
        message="Thank you for your feedback!",
        feedback_id=stored.id,
    )
