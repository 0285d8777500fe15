"""
Admin Audit Logs endpoints.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional
import csv
import io

from infohub.core.database import get_db
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.services.audit_service import list_audit_logs

router = APIRouter()

EXPORT_LIMIT = 10000


@router.get("")
async def get_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: Optional[str] = None,
    target_type: Optional[str] = Query(None, alias="targetType"),
    admin_id: Optional[str] = Query(None, alias="adminId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List audit logs with filtering and pagination"""
    result = await list_audit_logs(
        db, page, limit, action, target_type, admin_id, start_date, end_date, search
    )
    return {"success": True, **result}


@router.get("/export")
async def export_audit_logs(
    action: Optional[str] = None,
    target_type: Optional[str] = Query(None, alias="targetType"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Export audit logs to CSV"""
    result = await list_audit_logs(
        db, 1, EXPORT_LIMIT, action, target_type, None, start_date, end_date, max_limit=EXPORT_LIMIT
    )

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["ID", "Admin Email", "Action", "Target Type", "Target ID", "IP Address", "Created At"])
    for log in result["data"]:
        writer.writerow([
            log["id"],
            log["adminEmail"] or "",
            log["action"],
            log["targetType"],
            log["targetId"] or "",
            log["ipAddress"] or "",
            log["createdAt"] or "",
        ])

    output.seek(0)
    filename = f"audit_logs_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
