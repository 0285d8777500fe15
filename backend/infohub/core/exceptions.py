"""
Custom Exceptions for School Info Hub
=====================================

Services raise these instead of HTTPException so that the same business rules
can be reused from scripts and tests. The handlers registered in
`register_exception_handlers` turn them into JSON responses of the shape:

    {"success": false, "error": "<code>", "message": "...", "details": {...}}

Usage:
    from infohub.core.exceptions import EventNotFoundError

    if not event:
        raise EventNotFoundError(event_id)
"""

from typing import Optional, Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class InfoHubError(Exception):
    """Base exception for all School Info Hub errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(InfoHubError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="authentication_required")


class AuthorizationError(InfoHubError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="insufficient_permissions")


class AccountPendingError(AuthorizationError):
    """Account exists but has not been approved by an administrator"""

    def __init__(self):
        super().__init__("Account is pending administrator approval")
        self.code = "account_pending"


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(InfoHubError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.lower().replace(' ', '_')}_not_found",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class UserNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: Any):
        super().__init__("User", user_id)


class AnnouncementNotFoundError(ResourceNotFoundError):
    def __init__(self, announcement_id: Any):
        super().__init__("Announcement", announcement_id)


class EventNotFoundError(ResourceNotFoundError):
    def __init__(self, event_id: Any):
        super().__init__("Event", event_id)


class CommunicationNotFoundError(ResourceNotFoundError):
    def __init__(self, communication_id: Any):
        super().__init__("Communication", communication_id)


class ResourceItemNotFoundError(ResourceNotFoundError):
    """A teaching resource (file or link) was not found"""

    def __init__(self, resource_id: Any):
        super().__init__("Resource", resource_id)


class CarouselImageNotFoundError(ResourceNotFoundError):
    def __init__(self, image_id: Any):
        super().__init__("Carousel image", image_id)


class NotificationNotFoundError(ResourceNotFoundError):
    def __init__(self, notification_id: Any):
        super().__init__("Notification", notification_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(InfoHubError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="validation_error", details=details)


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, file_type: str, allowed_types: list):
        super().__init__(
            f"File type '{file_type}' not allowed. Allowed: {', '.join(allowed_types)}"
        )
        self.code = "invalid_file_type"
        self.details = {"file_type": file_type, "allowed_types": allowed_types}


class RegistrationError(InfoHubError):
    """Event registration could not be completed"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="registration_error")


class ConflictError(InfoHubError):
    """Request conflicts with existing state"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="conflict", details=details)


class RateLimitError(InfoHubError):
    status_code = 429

    def __init__(self, retry_after: Optional[int] = None):
        super().__init__("Too many requests. Please try again later.", code="rate_limit_exceeded")
        if retry_after:
            self.details["retry_after_seconds"] = retry_after


# ============================================
# Storage Errors
# ============================================

class StorageError(InfoHubError):
    """Storage operation failed"""

    def __init__(self, message: str):
        super().__init__(message, code="storage_error")


# ============================================
# Helpers for API responses
# ============================================

def error_response(error: InfoHubError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    body: Dict[str, Any] = {
        "success": False,
        "error": error.code,
        "message": error.message,
    }
    if error.details:
        body["details"] = error.details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Attach domain and catch-all exception handlers to the application"""
    from infohub.core.config import settings
    from infohub.core.logging_config import logger

    @app.exception_handler(InfoHubError)
    async def infohub_error_handler(request: Request, exc: InfoHubError):
        if exc.status_code >= 500:
            logger.error(f"[Errors] {exc.code}: {exc.message}", extra={"path": request.url.path})
        else:
            logger.info(f"[Errors] {exc.code} on {request.method} {request.url.path}: {exc.message}")
        headers = None
        if isinstance(exc, RateLimitError) and "retry_after_seconds" in exc.details:
            headers = {"Retry-After": str(exc.details["retry_after_seconds"])}
        return JSONResponse(status_code=exc.status_code, content=error_response(exc), headers=headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.log_error_with_context(
            exc,
            context=f"{request.method} {request.url.path}",
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_error",
                "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
            }
        )
