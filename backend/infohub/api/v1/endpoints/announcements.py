from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.core.exceptions import AnnouncementNotFoundError
from infohub.core.rate_limiter import bulk_rate_limit
from infohub.core.rbac import Permission
from infohub.models.announcement import AnnouncementStatus
from infohub.models.user import User
from infohub.modules.auth.dependencies import (
    get_content_manager,
    get_office_staff,
    get_optional_user,
    require_permission,
)
from infohub.schemas.announcement import AnnouncementCreate, AnnouncementUpdate
from infohub.schemas.common import BulkAction
from infohub.services.announcement_service import (
    AnnouncementFilters,
    AnnouncementService,
    serialize_announcement,
)
from infohub.services.event_service import is_manager

router = APIRouter()


@router.get("")
async def list_announcements(
    target_audience: Optional[str] = Query(None, alias="targetAudience"),
    priority: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    include_expired: bool = Query(False, alias="includeExpired"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List announcements ordered by smart score (priority, freshness, urgency).

    Only staff may look at drafts, archived or expired announcements;
    `status=all` lifts the status filter for them.
    """
    filters = AnnouncementFilters(target_audience=target_audience, priority=priority, search=search)
    if is_manager(current_user):
        filters.status = None if status_filter == "all" else (status_filter or AnnouncementStatus.PUBLISHED.value)
        filters.include_expired = include_expired

    result = await AnnouncementService(db).list_announcements(filters, page, limit)
    return {"success": True, **result}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_announcement(
    body: AnnouncementCreate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    announcement = await AnnouncementService(db).create(body.model_dump(exclude_unset=True), current_user)
    return {"success": True, "data": serialize_announcement(announcement)}


@router.get("/stats")
async def announcement_stats(
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await AnnouncementService(db).stats()}


@router.post("/bulk")
@bulk_rate_limit()
async def bulk_announcements(
    request: Request,
    body: BulkAction,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    """Publish, archive or delete several announcements at once"""
    result = await AnnouncementService(db).bulk(body.action, body.ids)
    return {"success": True, "data": result}


@router.get("/{announcement_id}")
async def get_announcement(
    announcement_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    announcement = await AnnouncementService(db).get(announcement_id)
    if announcement.status != AnnouncementStatus.PUBLISHED and not is_manager(current_user):
        raise AnnouncementNotFoundError(announcement_id)
    return {"success": True, "data": serialize_announcement(announcement)}


@router.put("/{announcement_id}")
async def update_announcement(
    announcement_id: int,
    body: AnnouncementUpdate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    announcement = await AnnouncementService(db).update(
        announcement_id, body.model_dump(exclude_unset=True), current_user
    )
    return {"success": True, "data": serialize_announcement(announcement)}


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: int,
    current_user: User = Depends(require_permission(Permission.ANNOUNCEMENT_DELETE)),
    db: AsyncSession = Depends(get_db)
):
    await AnnouncementService(db).delete(announcement_id)
    return {"success": True, "message": "Announcement deleted"}
