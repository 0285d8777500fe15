from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.database import get_db
from infohub.models.communication import CommunicationType
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_content_manager
from infohub.services.communication_service import CommunicationService

router = APIRouter(prefix="/teachers", tags=["Teachers"])


@router.get("/announcements")
async def teacher_announcements(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    data = await CommunicationService(db).teacher_board(CommunicationType.ANNOUNCEMENT.value, limit=limit)
    return {"success": True, "data": data}


@router.get("/messages")
async def teacher_messages(
    board_type: str = Query("teachers", alias="boardType"),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    """Message board posts for teachers; general board posts are always included"""
    data = await CommunicationService(db).teacher_board(
        CommunicationType.MESSAGE.value, board_type=board_type, limit=limit
    )
    return {"success": True, "data": data}


@router.get("/reminders")
async def teacher_reminders(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    """Reminders ordered by due date"""
    data = await CommunicationService(db).teacher_board(CommunicationType.REMINDER.value, limit=limit)
    return {"success": True, "data": data}
