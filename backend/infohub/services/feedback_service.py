"""
Feedback collection from parents, staff and anonymous visitors
"""
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.exceptions import ResourceNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.models import Feedback, FeedbackStatus, FeedbackType, User
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate

MIN_MESSAGE_LENGTH = 10
MAX_MESSAGE_LENGTH = 5000


def serialize_feedback(fb: Feedback) -> Dict[str, Any]:
    return {
        "id": fb.id,
        "userId": fb.user_id,
        "type": fb.type.value,
        "rating": fb.rating,
        "message": fb.message,
        "email": fb.email,
        "pageUrl": fb.page_url,
        "status": fb.status.value,
        "adminNotes": fb.admin_notes,
        "createdAt": fb.created_at.isoformat() if fb.created_at else None,
        "updatedAt": fb.updated_at.isoformat() if fb.updated_at else None,
    }


async def submit_feedback(
    db: AsyncSession,
    type: str,
    message: str,
    rating: Optional[int] = None,
    email: Optional[str] = None,
    page_url: Optional[str] = None,
    user: Optional[User] = None,
) -> Feedback:
    """Store feedback from an authenticated or anonymous visitor"""
    feedback_type = coerce_enum(FeedbackType, type, "type")

    if rating is not None and (rating < 1 or rating > 5):
        raise ValidationError("Rating must be between 1 and 5", field="rating")

    message = (message or "").strip()
    if len(message) < MIN_MESSAGE_LENGTH:
        raise ValidationError(
            f"Feedback message must be at least {MIN_MESSAGE_LENGTH} characters", field="message"
        )
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Feedback message must be less than {MAX_MESSAGE_LENGTH} characters", field="message"
        )

    feedback = Feedback(
        user_id=user.id if user else None,
        type=feedback_type,
        rating=rating,
        message=message,
        email=email or (user.email if user else None),
        page_url=page_url,
        status=FeedbackStatus.NEW,
    )
    db.add(feedback)
    await db.commit()
    await db.refresh(feedback)

    logger.info(f"New feedback received: type={feedback_type.value}, rating={rating}, "
                f"user={'authenticated' if user else 'anonymous'}, "
                f"message_preview={message[:50]}...")
    return feedback


async def list_feedback(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    type: Optional[str] = None,
    rating_min: Optional[int] = None,
    rating_max: Optional[int] = None,
) -> Dict[str, Any]:
    query = select(Feedback)
    if status:
        query = query.where(Feedback.status == coerce_enum(FeedbackStatus, status, "status"))
    if type:
        query = query.where(Feedback.type == coerce_enum(FeedbackType, type, "type"))
    if rating_min is not None:
        query = query.where(Feedback.rating >= rating_min)
    if rating_max is not None:
        query = query.where(Feedback.rating <= rating_max)

    query = query.order_by(Feedback.created_at.desc(), Feedback.id.desc())
    items, pagination = await paginate(db, query, page, limit)
    return {"data": [serialize_feedback(f) for f in items], "pagination": pagination}


async def update_feedback(
    db: AsyncSession,
    feedback_id: int,
    status: Optional[str] = None,
    admin_notes: Optional[str] = None,
) -> Feedback:
    feedback = await db.get(Feedback, feedback_id)
    if feedback is None:
        raise ResourceNotFoundError("Feedback", feedback_id)
    if status is not None:
        feedback.status = coerce_enum(FeedbackStatus, status, "status")
    if admin_notes is not None:
        feedback.admin_notes = admin_notes
    await db.commit()
    return feedback


async def feedback_stats(db: AsyncSession) -> Dict[str, Any]:
    by_type_rows = await db.execute(
        select(Feedback.type, func.count(Feedback.id)).group_by(Feedback.type)
    )
    by_status_rows = await db.execute(
        select(Feedback.status, func.count(Feedback.id)).group_by(Feedback.status)
    )
    rating_row = (await db.execute(
        select(func.avg(Feedback.rating), func.count(Feedback.rating)).where(Feedback.rating.isnot(None))
    )).one()

    by_type = {t.value: c for t, c in by_type_rows.all()}
    average, rated_count = rating_row
    return {
        "total": sum(by_type.values()),
        "by_type": by_type,
        "by_status": {s.value: c for s, c in by_status_rows.all()},
        "average_rating": round(float(average), 2) if rated_count else None,
        "rated_count": rated_count or 0,
    }
