"""
User Service - accounts, approvals and role upgrade requests

New accounts start pending and inactive; an admin approves them (assigning a
role) or rejects them. Approved users may ask to be moved to a higher role.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.config import settings
from infohub.core.exceptions import ConflictError, ResourceNotFoundError, UserNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.core.rbac import Role, has_higher_role
from infohub.core.security import create_password_reset_token, get_password_hash, hash_token
from infohub.models.user import ApprovalStatus, RoleUpgradeRequest, User
from infohub.services.audit_service import log_admin_action
from infohub.services.email_service import email_service
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ("first_name", "last_name", "display_name", "phone", "avatar_url")


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "displayName": user.display_name,
        "fullName": user.full_name,
        "phone": user.phone,
        "avatarUrl": user.avatar_url,
        "role": user.role.value,
        "isActive": user.is_active,
        "approvalStatus": user.approval_status.value,
        "oauthProvider": user.oauth_provider,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "lastLogin": user.last_login.isoformat() if user.last_login else None,
    }


def serialize_upgrade_request(r: RoleUpgradeRequest, user: Optional[User] = None) -> Dict[str, Any]:
    return {
        "id": r.id,
        "userId": r.user_id,
        "user": {"email": user.email, "name": user.full_name, "role": user.role.value} if user else None,
        "requestedRole": r.requested_role.value,
        "reason": r.reason,
        "status": r.status.value,
        "reviewedBy": r.reviewed_by,
        "reviewComment": r.review_comment,
        "reviewedAt": r.reviewed_at.isoformat() if r.reviewed_at else None,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
    }


def is_allowed_domain(email: str) -> bool:
    domain = email.rsplit("@", 1)[-1].lower()
    return domain in settings.GOOGLE_ALLOWED_DOMAINS


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, str(user_id))
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


# ==================== REGISTRATION ====================

async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
) -> User:
    """Create a self-registered account awaiting admin approval"""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password")
    if await get_user_by_email(db, email):
        raise ConflictError("Email already registered", details={"email": email})

    user = User(
        email=email.lower(),
        hashed_password=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=Role.VIEWER,
        is_active=False,
        approval_status=ApprovalStatus.PENDING,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_or_create_oauth_user(db: AsyncSession, profile: Dict[str, Any]) -> tuple:
    """
    Link or create the account for a Google profile.

    Returns (user, is_new_user). Accounts from an allowed domain are approved
    straight away; everyone else waits for an admin.
    """
    email = profile["email"].lower()
    google_id = profile.get("google_id")

    result = await db.execute(
        select(User).where(or_(User.google_id == google_id, func.lower(User.email) == email))
    )
    user = result.scalar_one_or_none()

    if user:
        if not user.google_id:
            user.google_id = google_id
            user.oauth_provider = "google"
        if profile.get("avatar_url") and not user.avatar_url:
            user.avatar_url = profile["avatar_url"]
        user.last_login = datetime.utcnow()
        await db.commit()
        return user, False

    trusted = is_allowed_domain(email)
    user = User(
        email=email,
        google_id=google_id,
        oauth_provider="google",
        first_name=profile.get("given_name") or None,
        last_name=profile.get("family_name") or None,
        display_name=profile.get("full_name") or None,
        avatar_url=profile.get("avatar_url") or None,
        hashed_password=None,
        role=Role(settings.DEFAULT_APPROVED_ROLE) if trusted else Role.VIEWER,
        is_active=trusted,
        approval_status=ApprovalStatus.APPROVED if trusted else ApprovalStatus.PENDING,
        last_login=datetime.utcnow() if trusted else None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"[Users] Created Google account {email} ({user.approval_status.value})")
    return user, True


# ==================== PASSWORD RESET ====================

async def request_password_reset(db: AsyncSession, email: str) -> Optional[str]:
    """
    Issue a reset token and email it. Returns the token, or None when no
    password account exists for the address.
    """
    user = await get_user_by_email(db, email)
    if user is None or not user.hashed_password:
        return None

    token = create_password_reset_token(str(user.id), user.email)
    user.reset_token_hash = hash_token(token)
    user.reset_token_expires = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    await db.commit()

    email_service.queue_password_reset_email(user.email, user.full_name, token)
    return token


async def reset_password(db: AsyncSession, user_id: str, token: str, new_password: str) -> User:
    """Set a new password; the token is single-use"""
    user = await get_user(db, user_id)
    if user.reset_token_hash != hash_token(token):
        raise ValidationError("Invalid or already used reset token", field="token")
    if user.reset_token_expires and user.reset_token_expires < datetime.utcnow():
        raise ValidationError("Reset token has expired", field="token")
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="newPassword")

    user.hashed_password = get_password_hash(new_password)
    user.reset_token_hash = None
    user.reset_token_expires = None
    await db.commit()
    return user


# ==================== ADMIN MANAGEMENT ====================

async def list_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    role: Optional[str] = None,
    approval_status: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Dict[str, Any]:
    query = select(User)
    if search:
        term = f"%{search.lower()}%"
        query = query.where(or_(
            func.lower(User.email).like(term),
            func.lower(User.first_name).like(term),
            func.lower(User.last_name).like(term),
            func.lower(User.display_name).like(term),
        ))
    if role:
        query = query.where(User.role == coerce_enum(Role, role, "role"))
    if approval_status:
        query = query.where(User.approval_status == coerce_enum(ApprovalStatus, approval_status, "approvalStatus"))
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))

    query = query.order_by(User.created_at.desc())
    users, pagination = await paginate(db, query, page, limit)
    return {"data": [serialize_user(u) for u in users], "pagination": pagination}


async def update_user(db: AsyncSession, user_id: str, data: Dict[str, Any], admin: User,
                      request: Request = None) -> User:
    user = await get_user(db, user_id)
    changes = {}

    if "role" in data and data["role"] is not None:
        role = coerce_enum(Role, data["role"], "role")
        if str(user.id) == str(admin.id) and role != Role.ADMIN:
            raise ValidationError("You cannot remove your own admin role", field="role")
        changes["role"] = {"old": user.role.value, "new": role.value}
        user.role = role
    if "is_active" in data and data["is_active"] is not None:
        if str(user.id) == str(admin.id) and not data["is_active"]:
            raise ValidationError("You cannot deactivate your own account", field="isActive")
        changes["is_active"] = {"old": user.is_active, "new": data["is_active"]}
        user.is_active = data["is_active"]
    for key in PROFILE_FIELDS:
        if key in data:
            setattr(user, key, data[key])

    await db.commit()
    await log_admin_action(db, admin.id, "user_updated", "user", user.id, changes, request)
    return user


async def delete_user(db: AsyncSession, user_id: str, admin: User, request: Request = None) -> None:
    if str(user_id) == str(admin.id):
        raise ValidationError("You cannot delete your own account")
    user = await get_user(db, user_id)
    email = user.email
    await db.delete(user)
    await db.commit()
    await log_admin_action(db, admin.id, "user_deleted", "user", user_id, {"email": email}, request)


async def approve_user(db: AsyncSession, user_id: str, admin: User, role: Optional[str] = None,
                       request: Request = None) -> User:
    user = await get_user(db, user_id)
    if user.approval_status == ApprovalStatus.APPROVED and user.is_active:
        raise ConflictError("User is already approved")

    assigned = coerce_enum(Role, role or settings.DEFAULT_APPROVED_ROLE, "role")
    user.role = assigned
    user.is_active = True
    user.approval_status = ApprovalStatus.APPROVED
    user.rejection_reason = None
    await db.commit()

    await log_admin_action(db, admin.id, "user_approved", "user", user.id, {"role": assigned.value}, request)
    email_service.queue_account_approved_email(user.email, user.full_name, assigned.value)
    return user


async def reject_user(db: AsyncSession, user_id: str, admin: User, reason: Optional[str] = None,
                      request: Request = None) -> User:
    user = await get_user(db, user_id)
    if str(user.id) == str(admin.id):
        raise ValidationError("You cannot reject your own account")

    user.is_active = False
    user.approval_status = ApprovalStatus.REJECTED
    user.rejection_reason = reason
    await db.commit()

    await log_admin_action(db, admin.id, "user_rejected", "user", user.id, {"reason": reason}, request)
    return user


# ==================== ROLE UPGRADE REQUESTS ====================

async def create_upgrade_request(db: AsyncSession, user: User, requested_role: str,
                                 reason: Optional[str] = None) -> RoleUpgradeRequest:
    role = coerce_enum(Role, requested_role, "requestedRole")
    if role == Role.ADMIN:
        raise ValidationError("The admin role cannot be requested", field="requestedRole")
    if role == user.role or has_higher_role(user.role, role):
        raise ValidationError("Requested role must be above your current role", field="requestedRole")

    pending = await db.execute(
        select(RoleUpgradeRequest.id).where(
            RoleUpgradeRequest.user_id == user.id,
            RoleUpgradeRequest.status == ApprovalStatus.PENDING,
        )
    )
    if pending.scalar_one_or_none() is not None:
        raise ConflictError("You already have a pending upgrade request")

    upgrade = RoleUpgradeRequest(
        user_id=user.id,
        requested_role=role,
        reason=reason,
        status=ApprovalStatus.PENDING,
    )
    db.add(upgrade)
    await db.commit()
    await db.refresh(upgrade)
    logger.info(f"[Users] {user.email} requested upgrade to {role.value}")
    return upgrade


async def list_upgrade_requests(db: AsyncSession, status: Optional[str] = "pending",
                                page: int = 1, limit: int = 20) -> Dict[str, Any]:
    query = select(RoleUpgradeRequest)
    if status:
        query = query.where(RoleUpgradeRequest.status == coerce_enum(ApprovalStatus, status, "status"))
    query = query.order_by(RoleUpgradeRequest.created_at.asc())

    requests, pagination = await paginate(db, query, page, limit)
    users = {}
    if requests:
        rows = await db.execute(select(User).where(User.id.in_({r.user_id for r in requests})))
        users = {str(u.id): u for u in rows.scalars().all()}

    data = [serialize_upgrade_request(r, users.get(str(r.user_id))) for r in requests]
    return {"data": data, "pagination": pagination}


async def review_upgrade_request(db: AsyncSession, request_id: str, admin: User, approve: bool,
                                 comment: Optional[str] = None, request: Request = None) -> RoleUpgradeRequest:
    upgrade = await db.get(RoleUpgradeRequest, str(request_id))
    if upgrade is None:
        raise ResourceNotFoundError("Upgrade request", request_id)
    if upgrade.status != ApprovalStatus.PENDING:
        raise ConflictError("This request has already been reviewed")

    upgrade.status = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
    upgrade.reviewed_by = admin.id
    upgrade.review_comment = comment
    upgrade.reviewed_at = datetime.utcnow()

    if approve:
        user = await get_user(db, upgrade.user_id)
        user.role = upgrade.requested_role

    await db.commit()
    await log_admin_action(
        db, admin.id,
        "upgrade_request_approved" if approve else "upgrade_request_rejected",
        "role_upgrade_request", upgrade.id,
        {"user_id": upgrade.user_id, "requested_role": upgrade.requested_role.value, "comment": comment},
        request,
    )
    return upgrade
