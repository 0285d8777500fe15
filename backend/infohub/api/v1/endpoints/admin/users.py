"""
Admin User Management endpoints.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.schemas.admin import AdminUserUpdate, ApproveUserRequest, RejectUserRequest
from infohub.services import user_service
from infohub.services.user_service import serialize_user

router = APIRouter()


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    approval_status: Optional[str] = Query(None, alias="approvalStatus"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List users with search, role and approval filters"""
    result = await user_service.list_users(db, page, limit, search, role, approval_status, is_active)
    return {"success": True, **result}


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return {"success": True, "data": serialize_user(await user_service.get_user(db, user_id))}


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Change a user's role, active flag or profile"""
    user = await user_service.update_user(db, user_id, body.model_dump(exclude_unset=True), current_admin, request)
    return {"success": True, "data": serialize_user(user)}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    await user_service.delete_user(db, user_id, current_admin, request)
    return {"success": True, "message": "User deleted"}


@router.post("/{user_id}/approve")
async def approve_user(
    user_id: str,
    request: Request,
    body: Optional[ApproveUserRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Activate a pending account and assign its role"""
    role = body.role if body else None
    user = await user_service.approve_user(db, user_id, current_admin, role, request)
    return {"success": True, "message": "User approved", "data": serialize_user(user)}


@router.post("/{user_id}/reject")
async def reject_user(
    user_id: str,
    request: Request,
    body: Optional[RejectUserRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    reason = body.reason if body else None
    user = await user_service.reject_user(db, user_id, current_admin, reason, request)
    return {"success": True, "message": "User rejected", "data": serialize_user(user)}
