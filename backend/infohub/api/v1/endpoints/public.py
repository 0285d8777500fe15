"""
Public, unauthenticated endpoints for the parents' corner and the homepage.

Responses under this prefix are cached by ResponseCacheMiddleware, so
nothing here may depend on who is asking.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.models.announcement import TargetAudience
from infohub.services import carousel_service
from infohub.services.announcement_service import AnnouncementFilters, AnnouncementService
from infohub.services.carousel_service import serialize_image
from infohub.services.communication_service import CommunicationService
from infohub.services.event_service import EventFilters, EventService
from infohub.services.resource_service import ResourceFilters, ResourceService
from infohub.services.settings_service import get_public_settings

router = APIRouter(prefix="/public", tags=["Public"])


@router.get("/announcements")
async def public_announcements(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Published, unexpired announcements addressed to parents"""
    filters = AnnouncementFilters(target_audience=TargetAudience.PARENTS.value)
    result = await AnnouncementService(db).list_announcements(filters, page, limit)
    return {"success": True, **result}


@router.get("/events")
async def public_events(
    upcoming: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    result = await EventService(db).list_events(EventFilters(upcoming=upcoming), None, page, limit)
    return {"success": True, **result}


@router.get("/newsletters")
async def public_newsletters(
    month: Optional[str] = None,
    year: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Latest newsletters, optionally for one month (YYYY-MM) or year (YYYY)"""
    data = await CommunicationService(db).newsletters(month, year, limit)
    return {"success": True, "data": data, "filters": {"month": month, "year": year}}


@router.get("/newsletters/archive")
async def public_newsletter_archive(
    limit: int = Query(12, ge=1, le=120),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, **await CommunicationService(db).newsletter_archive(limit)}


@router.get("/resources")
async def public_resources(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    grade_level_id: Optional[int] = Query(None, alias="gradeLevelId"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    filters = ResourceFilters(search=search, category_id=category_id, grade_level_id=grade_level_id)
    result = await ResourceService(db).list_resources(filters, None, page, limit)
    return {"success": True, **result}


@router.get("/info")
async def public_info(db: AsyncSession = Depends(get_db)):
    """Site name, contact details and feature switches"""
    return {"success": True, "data": await get_public_settings(db)}


@router.get("/messages")
async def public_messages(
    audience: str = "all",
    priority: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Live announcements for one audience, including those addressed to everyone"""
    result = await CommunicationService(db).public_messages(audience, priority, search, page, limit)
    return {"success": True, **result}


@router.get("/parents-corner/carousel")
async def public_carousel(db: AsyncSession = Depends(get_db)):
    images = await carousel_service.list_images(db, active_only=True)
    return {
        "success": True,
        "data": [serialize_image(i, public=True) for i in images],
        "count": len(images),
    }
