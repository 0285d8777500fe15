"""
Admin API endpoints.
All endpoints require the admin role.
"""
from fastapi import APIRouter

from infohub.api.v1.endpoints.admin import users, upgrade_requests, settings, performance, feedback, audit_logs, email_queue, carousel

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

# Include all admin sub-routers
admin_router.include_router(users.router, prefix="/users", tags=["Admin Users"])
admin_router.include_router(upgrade_requests.router, prefix="/upgrade-requests", tags=["Admin Upgrade Requests"])
admin_router.include_router(settings.router, prefix="/settings", tags=["Admin Settings"])
admin_router.include_router(performance.router, prefix="/performance", tags=["Admin Performance"])
admin_router.include_router(feedback.router, prefix="/feedback", tags=["Admin Feedback"])
admin_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Admin Audit Logs"])
admin_router.include_router(email_queue.router, prefix="/email-queue", tags=["Admin Email Queue"])
admin_router.include_router(carousel.router, prefix="/parents-corner/carousel", tags=["Admin Carousel"])
