"""
Admin Performance endpoints.

GET  ?type=summary|health|slow-queries|requests
POST ?action=clear
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.database import get_db
from infohub.core.logging_config import logger
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.services.performance import (
    database_health_check,
    generate_performance_report,
    performance_log,
    query_monitor,
)
from infohub.services.response_cache import response_cache

router = APIRouter()

REPORT_TYPES = ("summary", "health", "slow-queries", "requests")


@router.get("")
async def get_performance(
    type: str = Query("summary"),
    limit: int = Query(50, ge=1, le=500),
    window: int = Query(300, ge=1, le=86400, description="Request stats window in seconds"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    if type == "summary":
        data = generate_performance_report()
    elif type == "health":
        data = await database_health_check(db)
    elif type == "slow-queries":
        data = query_monitor.slow_queries_report(limit)
    elif type == "requests":
        data = {"stats": performance_log.stats(window), "recent": performance_log.recent(limit)}
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown report type. Must be one of: {', '.join(REPORT_TYPES)}"
        )
    return {"success": True, "type": type, "data": data}


@router.post("")
async def performance_action(
    action: str = Query(...),
    current_admin: User = Depends(get_current_admin)
):
    """Reset collected metrics (`clear`) or drop cached responses (`clear-cache`)"""
    if action == "clear":
        performance_log.clear()
        query_monitor.clear()
        logger.info(f"[Performance] Metrics cleared by {current_admin.email}")
        return {"success": True, "message": "Performance metrics cleared"}
    if action == "clear-cache":
        await response_cache.clear()
        logger.info(f"[Performance] Response cache cleared by {current_admin.email}")
        return {"success": True, "message": "Response cache cleared"}
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Unknown action. Must be one of: clear, clear-cache"
    )
