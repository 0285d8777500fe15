"""
Admin Feedback Management endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.schemas.admin import FeedbackStatusUpdate
from infohub.services import feedback_service
from infohub.services.feedback_service import serialize_feedback

router = APIRouter()


@router.get("")
async def list_feedback(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    type: Optional[str] = None,
    rating_min: Optional[int] = Query(None, ge=1, le=5, alias="ratingMin"),
    rating_max: Optional[int] = Query(None, ge=1, le=5, alias="ratingMax"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List feedback with filtering and pagination"""
    result = await feedback_service.list_feedback(db, page, limit, status, type, rating_min, rating_max)
    return {"success": True, **result}


@router.get("/stats")
async def get_feedback_stats(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return {"success": True, "data": await feedback_service.feedback_stats(db)}


@router.patch("/{feedback_id}")
async def update_feedback(
    feedback_id: int,
    body: FeedbackStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Update feedback status and/or admin notes"""
    feedback = await feedback_service.update_feedback(db, feedback_id, body.status, body.admin_notes)
    return {"success": True, "data": serialize_feedback(feedback)}
