"""
Audit trail for admin actions
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.logging_config import logger
from infohub.models import AuditLog, User
from infohub.utils.pagination import MAX_PAGE_SIZE, paginate


async def log_admin_action(
    db: AsyncSession,
    admin_id: str,
    action: str,
    target_type: str,
    target_id: str = None,
    details: dict = None,
    request: Request = None,
    commit: bool = True,
):
    """Log an admin action to audit log"""
    log = AuditLog(
        admin_id=str(admin_id),
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        details=details,
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None
    )
    db.add(log)
    if commit:
        await db.commit()
    logger.info(f"[Audit] {action} on {target_type} {target_id or ''} by {admin_id}")
    return log


async def list_audit_logs(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    admin_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    max_limit: int = MAX_PAGE_SIZE,
) -> Dict[str, Any]:
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if target_type:
        conditions.append(AuditLog.target_type == target_type)
    if admin_id:
        conditions.append(AuditLog.admin_id == admin_id)
    if start_date:
        conditions.append(AuditLog.created_at >= start_date)
    if end_date:
        conditions.append(AuditLog.created_at <= end_date)
    if search:
        term = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(AuditLog.action).like(term),
            func.lower(AuditLog.target_type).like(term),
        ))

    where = and_(*conditions) if conditions else True
    query = select(AuditLog).where(where).order_by(AuditLog.created_at.desc())
    logs, pagination = await paginate(
        db, query, page, limit,
        count_query=select(func.count(AuditLog.id)).where(where),
        max_limit=max_limit,
    )

    admin_ids = {log.admin_id for log in logs}
    admins = {}
    if admin_ids:
        rows = await db.execute(select(User).where(User.id.in_(admin_ids)))
        admins = {str(u.id): u for u in rows.scalars().all()}

    items = []
    for log in logs:
        admin = admins.get(str(log.admin_id))
        items.append({
            "id": str(log.id),
            "adminId": str(log.admin_id),
            "adminEmail": admin.email if admin else None,
            "adminName": admin.full_name if admin else None,
            "action": log.action,
            "targetType": log.target_type,
            "targetId": log.target_id,
            "details": log.details,
            "ipAddress": log.ip_address,
            "createdAt": log.created_at.isoformat() if log.created_at else None,
        })

    return {"data": items, "pagination": pagination}
