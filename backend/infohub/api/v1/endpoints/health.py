"""
Health Check Endpoints

Endpoints:
- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database reachable and tables present)
- /health/deep  - Detailed diagnostics for debugging
"""

from fastapi import APIRouter, HTTPException, status
from datetime import datetime
from typing import Dict, Any
import time

from infohub import __version__
from infohub.core.config import settings
from infohub.core.database import get_session_local
from infohub.core.logging_config import logger
from infohub.services.email_service import email_service
from infohub.services.performance import database_health_check, performance_log, query_monitor
from infohub.services.response_cache import response_cache


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the core tables exist"""
    session_factory = get_session_local()
    async with session_factory() as session:
        result = await database_health_check(session)
    result["status"] = "healthy" if result.get("healthy") else "unhealthy"
    return result


async def check_cache() -> Dict[str, Any]:
    try:
        stats = await response_cache.stats()
    except Exception as e:
        logger.warning(f"[HealthCheck] Cache check failed: {e}")
        return {"status": "degraded", "error": str(e), "message": "Response cache unavailable"}
    return {"status": "healthy", **stats}


def check_email_config() -> Dict[str, Any]:
    """Check email service configuration (not actual connectivity)"""
    if email_service.is_configured:
        return {
            "status": "healthy",
            "provider": "smtp",
            "configured": True,
            "host": settings.SMTP_HOST,
            "message": "SMTP credentials configured"
        }
    return {
        "status": "degraded",
        "provider": "none",
        "configured": False,
        "message": "Email not configured - notification emails will be skipped"
    }


def performance_summary() -> Dict[str, Any]:
    queries = query_monitor.metrics()
    return {
        "status": "healthy",
        "requests": performance_log.stats(),
        "totalQueries": queries["totalQueries"],
        "slowQueries": queries["slowQueries"],
        "averageQueryTime": queries["averageQueryTime"],
    }


@router.get("/live")
async def liveness_check():
    """
    Liveness check - indicates the application is running.

    Returns 200 if the process is alive.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
        "version": __version__
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - indicates the application can handle requests.

    Returns 503 unless the database answers and the core tables exist.
    """
    db_check = await check_database()
    is_ready = db_check["status"] == "healthy"

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {"database": db_check},
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response
        )

    return response


@router.get("/deep")
async def deep_health_check():
    """
    Deep health check with full diagnostics.

    Use this for debugging and monitoring dashboards.
    """
    start_time = time.time()

    checks = {
        "database": await check_database(),
        "cache": await check_cache(),
        "email": check_email_config(),
        "performance": performance_summary(),
    }

    statuses = [c.get("status", "unknown") for c in checks.values()]
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": __version__,
        "total_check_time_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }
