from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.core.rate_limiter import bulk_rate_limit, standard_rate_limit
from infohub.core.rbac import Permission
from infohub.models.user import User
from infohub.modules.auth.dependencies import (
    get_content_manager,
    get_office_staff,
    get_optional_user,
    require_permission,
)
from infohub.schemas.common import BulkAction
from infohub.schemas.communication import CommunicationCreate, CommunicationUpdate, ReplyCreate
from infohub.services.communication_service import (
    CommunicationFilters,
    CommunicationService,
    serialize_communication,
    serialize_reply,
)

router = APIRouter()


@router.get("")
async def list_communications(
    type: Optional[str] = None,
    source_group: Optional[str] = Query(None, alias="sourceGroup"),
    target_audience: Optional[str] = Query(None, alias="targetAudience"),
    board_type: Optional[str] = Query(None, alias="boardType"),
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    is_pinned: Optional[bool] = Query(None, alias="isPinned"),
    is_important: Optional[bool] = Query(None, alias="isImportant"),
    is_featured: Optional[bool] = Query(None, alias="isFeatured"),
    search: Optional[str] = None,
    author_id: Optional[str] = Query(None, alias="authorId"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    include_stats: bool = Query(True, alias="includeStats"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Unified listing for announcements, board messages, reminders and newsletters.

    Results are limited to what the caller's role may read; pinned items come first.
    """
    filters = CommunicationFilters(
        type=type,
        source_group=source_group,
        target_audience=target_audience,
        board_type=board_type,
        status=status_filter,
        priority=priority,
        is_pinned=is_pinned,
        is_important=is_important,
        is_featured=is_featured,
        search=search,
        author_id=author_id,
    )
    result = await CommunicationService(db).list(
        filters, current_user, page, limit, sort_by, sort_order, include_stats
    )
    return {"success": True, **result}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_communication(
    body: CommunicationCreate,
    current_user: User = Depends(require_permission(Permission.COMMUNICATION_CREATE)),
    db: AsyncSession = Depends(get_db)
):
    communication = await CommunicationService(db).create(body.model_dump(exclude_unset=True), current_user)
    return {"success": True, "data": serialize_communication(communication)}


@router.post("/bulk")
@bulk_rate_limit()
async def bulk_communications(
    request: Request,
    body: BulkAction,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await CommunicationService(db).bulk(body.action, body.ids)}


@router.get("/{communication_id}")
async def get_communication(
    communication_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Full communication with replies; each read counts as a view"""
    return {"success": True, "data": await CommunicationService(db).get(communication_id, current_user)}


@router.put("/{communication_id}")
async def update_communication(
    communication_id: int,
    body: CommunicationUpdate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    communication = await CommunicationService(db).update(
        communication_id, body.model_dump(exclude_unset=True), current_user
    )
    return {"success": True, "data": serialize_communication(communication)}


@router.delete("/{communication_id}")
async def delete_communication(
    communication_id: int,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    await CommunicationService(db).delete(communication_id, current_user)
    return {"success": True, "message": "Communication deleted"}


@router.get("/{communication_id}/replies")
async def list_replies(
    communication_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await CommunicationService(db).list_replies(communication_id, current_user)}


@router.post("/{communication_id}/replies", status_code=status.HTTP_201_CREATED)
@standard_rate_limit()
async def add_reply(
    request: Request,
    communication_id: int,
    body: ReplyCreate,
    current_user: User = Depends(require_permission(Permission.COMMUNICATION_REPLY)),
    db: AsyncSession = Depends(get_db)
):
    reply = await CommunicationService(db).add_reply(
        communication_id, body.content, current_user, body.parent_reply_id
    )
    return {"success": True, "data": serialize_reply(reply)}
