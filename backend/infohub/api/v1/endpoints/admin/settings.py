"""
Admin System Settings endpoints.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.schemas.admin import SettingsBatchUpdate, SystemSettingUpdate
from infohub.services import settings_service

router = APIRouter()


@router.get("")
async def list_settings(
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """All settings grouped by category"""
    await settings_service.ensure_default_settings(db)
    return {"success": True, "data": await settings_service.list_settings(db, category)}


@router.put("/batch")
async def batch_update_settings(
    body: SettingsBatchUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    changes = await settings_service.batch_update(db, body.settings, current_admin, request)
    return {"success": True, "message": f"Updated {len(changes)} settings", "data": changes}


@router.put("/{key}")
async def update_setting(
    key: str,
    body: SystemSettingUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    change = await settings_service.update_setting(db, key, body.value, current_admin, body.description, request)
    return {"success": True, "message": f"Setting '{key}' updated", "data": change}
