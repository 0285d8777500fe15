from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional

from infohub.core.database import get_db
from infohub.core.rate_limiter import standard_rate_limit
from infohub.core.rbac import Permission
from infohub.models.event import RegistrationStatus
from infohub.models.user import User
from infohub.modules.auth.dependencies import (
    get_content_manager,
    get_current_user,
    require_permission,
)
from infohub.schemas.event import (
    CheckInRequest,
    EventCreate,
    EventNotificationCreate,
    EventUpdate,
    RegistrationCreate,
)
from infohub.services.event_service import (
    EventFilters,
    EventService,
    serialize_event,
    serialize_registration,
)

router = APIRouter()


@router.get("")
async def list_events(
    event_type: Optional[str] = Query(None, alias="eventType"),
    target_grade: Optional[str] = Query(None, alias="targetGrade"),
    search: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    upcoming: bool = False,
    featured: Optional[bool] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List events in date order. Only staff see drafts and cancelled events."""
    filters = EventFilters(
        event_type=event_type,
        target_grade=target_grade,
        search=search,
        start_date=start_date,
        end_date=end_date,
        upcoming=upcoming,
        featured=featured,
        status=status_filter,
    )
    result = await EventService(db).list_events(filters, current_user, page, limit)
    return {"success": True, **result}


@router.get("/calendar")
async def event_calendar(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Events grouped by day for one month (defaults to the current month)"""
    today = date.today()
    data = await EventService(db).calendar(year or today.year, month or today.month, current_user)
    return {"success": True, "data": data}


@router.post("", status_code=status.HTTP_201_CREATED)
@standard_rate_limit()
async def create_event(
    request: Request,
    body: EventCreate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    event = await EventService(db).create(body.model_dump(exclude_unset=True), current_user)
    return {"success": True, "data": serialize_event(event)}


@router.get("/{event_id}")
async def get_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await EventService(db).get_serialized(event_id, current_user)}


@router.put("/{event_id}")
async def update_event(
    event_id: int,
    body: EventUpdate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    event = await service.update(event_id, body.model_dump(exclude_unset=True), current_user)
    return {"success": True, "data": await service.get_serialized(event.id, current_user)}


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    current_user: User = Depends(require_permission(Permission.EVENT_DELETE)),
    db: AsyncSession = Depends(get_db)
):
    await EventService(db).delete(event_id, current_user)
    return {"success": True, "message": "Event deleted"}


# ============================================
# Registration
# ============================================

@router.get("/{event_id}/registration")
async def get_registration_status(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's registration for this event and what they may do next"""
    return {"success": True, "data": await EventService(db).registration_status(event_id, current_user)}


@router.post("/{event_id}/registration", status_code=status.HTTP_201_CREATED)
@standard_rate_limit()
async def register_for_event(
    request: Request,
    event_id: int,
    body: Optional[RegistrationCreate] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Register the caller; a full event puts them on the waiting list"""
    data = body.model_dump(exclude_unset=True) if body else {}
    registration = await EventService(db).register(event_id, current_user, data)
    waitlisted = registration.status == RegistrationStatus.WAITING_LIST
    return {
        "success": True,
        "message": "Added to the waiting list" if waitlisted else "Registration confirmed",
        "data": serialize_registration(registration),
    }


@router.delete("/{event_id}/registration")
async def cancel_registration(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await EventService(db).cancel_registration(event_id, current_user)
    return {"success": True, "message": "Registration cancelled", "data": result}


@router.get("/{event_id}/registrations")
async def list_event_registrations(
    event_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(require_permission(Permission.EVENT_MANAGE_REGISTRATIONS)),
    db: AsyncSession = Depends(get_db)
):
    data = await EventService(db).list_registrations(event_id, current_user, status_filter)
    return {"success": True, "data": data}


@router.post("/{event_id}/check-in")
async def check_in_registration(
    event_id: int,
    body: CheckInRequest,
    current_user: User = Depends(require_permission(Permission.EVENT_MANAGE_REGISTRATIONS)),
    db: AsyncSession = Depends(get_db)
):
    registration = await EventService(db).check_in(event_id, body.registration_id, current_user, body.checked_in)
    return {"success": True, "data": serialize_registration(registration)}


@router.post("/{event_id}/notifications")
async def send_event_notification(
    event_id: int,
    body: EventNotificationCreate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    """Send a custom message to an event's registrants (or to everyone)"""
    result = await EventService(db).send_custom_notification(
        event_id, current_user, body.title, body.message, body.registrants_only
    )
    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.get("errors") or "No notifications were sent"
        )
    return result
