from fastapi import APIRouter
from infohub.api.v1.endpoints import auth, announcements, events, notifications, communications, resources, upload, public, teachers, feedback, health
from infohub.api.v1.endpoints.admin import admin_router

api_router = APIRouter()

# Liveness, readiness and deep diagnostics under /health/*
api_router.include_router(health.router)


# Simple health check endpoint for load balancers
@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint"""
    return {"status": "healthy", "service": "infohub-backend"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(announcements.router, prefix="/announcements", tags=["Announcements"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(communications.router, prefix="/communications", tags=["Communications"])
api_router.include_router(resources.router, prefix="/resources", tags=["Resources"])
api_router.include_router(upload.router)
api_router.include_router(public.router)
api_router.include_router(teachers.router)
api_router.include_router(feedback.router)
api_router.include_router(admin_router)
