# API endpoints
from . import auth, announcements, events, notifications, communications, resources, upload, public, teachers, feedback, health

__all__ = ["auth", "announcements", "events", "notifications", "communications", "resources", "upload", "public", "teachers", "feedback", "health"]
