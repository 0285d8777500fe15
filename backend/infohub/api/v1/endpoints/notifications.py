from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional

from infohub.core.config import settings
from infohub.core.database import get_db
from infohub.core.rate_limiter import bulk_rate_limit, standard_rate_limit
from infohub.core.rbac import Permission
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin, get_current_user, require_permission
from infohub.schemas.notification import (
    MaintenanceNotice,
    MarkReadRequest,
    NotificationBulk,
    NotificationSend,
    NotificationUpdate,
)
from infohub.services.notification_service import (
    NOTIFICATION_TEMPLATES,
    NotificationRequest,
    NotificationService,
    notification_broker,
    serialize_notification,
)

router = APIRouter()


@router.get("")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = None,
    is_read: Optional[bool] = Query(None, alias="isRead"),
    priority: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's notifications, newest first, with the unread count"""
    result = await NotificationService(db).list_for_user(
        str(current_user.id), page, limit, type=type, is_read=is_read, priority=priority
    )
    return {"success": True, **result}


@router.post("", status_code=status.HTTP_201_CREATED)
@standard_rate_limit()
async def send_notification(
    request: Request,
    body: NotificationSend,
    current_user: User = Depends(require_permission(Permission.NOTIFICATION_SEND)),
    db: AsyncSession = Depends(get_db)
):
    """Send a notification to everyone, specific users, roles or grades"""
    notification = NotificationRequest(**body.model_dump())
    result = await NotificationService(db).send_notification(notification)
    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.get("errors") or "No notifications were sent"
        )
    return result


@router.get("/stats")
async def notification_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await NotificationService(db).stats(str(current_user.id))}


@router.get("/templates")
async def list_templates(
    current_user: User = Depends(require_permission(Permission.NOTIFICATION_SEND))
):
    return {"success": True, "data": [t.to_dict() for t in NOTIFICATION_TEMPLATES.values()]}


@router.get("/preferences")
async def get_preferences(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await NotificationService(db).get_user_preferences(str(current_user.id))}


@router.put("/preferences")
async def update_preferences(
    preferences: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Merge the given keys into the caller's stored preferences"""
    data = await NotificationService(db).update_user_preferences(str(current_user.id), preferences)
    return {"success": True, "data": data}


@router.post("/mark-read")
async def mark_read(
    body: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    if body.mark_all:
        updated = await service.mark_all_read(str(current_user.id))
    elif body.notification_ids:
        result = await service.bulk_operation(str(current_user.id), "mark_read", body.notification_ids)
        updated = result["affectedCount"]
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide notificationIds or set markAll"
        )
    return {
        "success": True,
        "updatedCount": updated,
        "unreadCount": await service.unread_count(str(current_user.id)),
    }


@router.post("/bulk")
@bulk_rate_limit()
async def bulk_notifications(
    request: Request,
    body: NotificationBulk,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await NotificationService(db).bulk_operation(str(current_user.id), body.action, body.notification_ids)


@router.get("/stream")
async def notification_stream(
    current_user: User = Depends(get_current_user)
):
    """Server-sent events: new notifications for the caller, with periodic heartbeats"""
    return StreamingResponse(
        notification_broker.stream(str(current_user.id), settings.SSE_HEARTBEAT_SECONDS),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ============================================
# Admin maintenance
# ============================================

@router.post("/maintenance", status_code=status.HTTP_201_CREATED)
async def announce_maintenance(
    body: MaintenanceNotice,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    if body.end_time <= body.start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Maintenance must end after it starts"
        )
    return await NotificationService(db).notify_maintenance(body.start_time, body.end_time, body.description)


@router.post("/reminders")
async def send_event_reminders(
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Remind registrants of events starting tomorrow"""
    sent = await NotificationService(db).create_event_reminders()
    return {"success": True, "totalSent": sent}


@router.delete("/expired")
async def cleanup_expired(
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    removed = await NotificationService(db).cleanup_expired_notifications()
    return {"success": True, "deletedCount": removed}


# ============================================
# Single notification
# ============================================

@router.patch("/{notification_id}")
async def update_notification(
    notification_id: int,
    body: NotificationUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await NotificationService(db).set_read(str(current_user.id), notification_id, body.is_read)
    return {"success": True, "data": serialize_notification(notification)}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await NotificationService(db).delete_for_user(str(current_user.id), notification_id)
    return {"success": True, "message": "Notification deleted"}
