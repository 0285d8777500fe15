from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import uuid

from infohub.core.database import get_db
from infohub.core.logging_config import set_user_id
from infohub.core.rbac import Permission, Role, has_minimum_role, has_permission
from infohub.core.security import decode_token, extract_token
from infohub.models.user import User


async def _load_user(token: str, db: AsyncSession) -> User:
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format"
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user from the bearer token or auth cookie"""
    token = extract_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await _load_user(token, db)
    request.state.user_id = str(user.id)
    set_user_id(str(user.id))
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Current user if a valid token was sent, otherwise None"""
    token = extract_token(request)
    if not token:
        return None
    try:
        user = await _load_user(token, db)
    except HTTPException:
        return None
    request.state.user_id = str(user.id)
    return user


def require_role(minimum: Role):
    """Dependency factory: user must hold `minimum` or a higher role"""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_minimum_role(current_user, minimum):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{minimum.value.replace('_', ' ').title()} access required"
            )
        return current_user

    return checker


def require_permission(permission: Permission):
    """Dependency factory: user's role must grant `permission`"""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user

    return checker


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current admin user"""
    if current_user.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


get_content_manager = require_role(Role.TEACHER)
get_office_staff = require_role(Role.OFFICE_MEMBER)
