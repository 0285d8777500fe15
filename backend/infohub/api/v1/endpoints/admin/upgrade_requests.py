"""
Admin review of role upgrade requests.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.schemas.admin import UpgradeReview
from infohub.services import user_service
from infohub.services.user_service import serialize_upgrade_request

router = APIRouter()


@router.get("")
async def list_upgrade_requests(
    status_filter: Optional[str] = Query("pending", alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Upgrade requests, oldest first; `status=all` lists every request"""
    status_value = None if status_filter == "all" else status_filter
    result = await user_service.list_upgrade_requests(db, status_value, page, limit)
    return {"success": True, **result}


@router.post("/{request_id}/review")
async def review_upgrade_request(
    request_id: str,
    body: UpgradeReview,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    if body.action not in ("approve", "reject"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Action must be 'approve' or 'reject'"
        )
    upgrade = await user_service.review_upgrade_request(
        db, request_id, current_admin, body.action == "approve", body.comment, request
    )
    return {
        "success": True,
        "message": f"Request {'approved' if body.action == 'approve' else 'rejected'}",
        "data": serialize_upgrade_request(upgrade),
    }
