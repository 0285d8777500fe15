"""
School Info Hub - Logging

Plain readable lines in development, one JSON object per line in production.
Every record carries the request id and user id of the request being served.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from infohub.core.config import settings


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024

# LogRecord attributes that are never copied into the JSON payload
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "request_id", "user_id",
}

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "aiosqlite")


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_user_id() -> str:
    return user_id_var.get()


def set_user_id(user_id: str) -> None:
    user_id_var.set(user_id)


def generate_request_id() -> str:
    """Short id used for X-Request-ID when the client does not send one"""
    return uuid.uuid4().hex[:8]


class JSONFormatter(logging.Formatter):
    """Structured output for production log shipping"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if get_request_id():
            payload["request_id"] = get_request_id()
        if get_user_id():
            payload["user_id"] = get_user_id()

        exc_type, exc_value, exc_tb = record.exc_info or (None, None, None)
        if exc_type is not None:
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        payload.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


class ContextualFormatter(logging.Formatter):
    """Text formatter that fills %(request_id)s and %(user_id)s"""

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or "-"
        record.user_id = get_user_id() or "-"
        return super().format(record)


class InfoHubLogger(logging.Logger):
    """Logger with helpers for the events the hub reports on"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **extra) -> None:
        """Completed HTTP request; 4xx logs as warning and 5xx as error"""
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.log(level, f"{method} {path} -> {status_code} ({duration_ms:.2f}ms)", extra={
            "event_type": "http_request",
            "http_method": method,
            "http_path": path,
            "http_status": status_code,
            "duration_ms": round(duration_ms, 2),
            **extra,
        })

    def log_content_change(self, area: str, action: str, item_id: Any,
                           actor: Optional[str] = None, **extra) -> None:
        """Create/update/delete/bulk changes to announcements, events, resources, etc."""
        message = f"[{area}] {action} {item_id}"
        if actor:
            message += f" by {actor}"
        self.info(message, extra={
            "event_type": "content_change",
            "content_area": area,
            "content_action": action,
            "content_id": str(item_id),
            "actor": actor,
            **extra,
        })

    def log_auth_event(self, event: str, success: bool, user_email: Optional[str] = None,
                       reason: Optional[str] = None, **extra) -> None:
        parts = [f"Auth {event} {'ok' if success else 'failed'}"]
        if user_email:
            parts.append(user_email)
        if reason:
            parts.append(reason)
        self.log(logging.INFO if success else logging.WARNING, " - ".join(parts), extra={
            "event_type": "auth",
            "auth_event": event,
            "auth_success": success,
            "user_email": user_email,
            "failure_reason": reason,
            **extra,
        })

    def log_db_query(self, operation: str, duration_ms: float,
                     success: bool = True, **extra) -> None:
        self.debug(f"Query {operation} {'ok' if success else 'failed'} ({duration_ms:.2f}ms)", extra={
            "event_type": "db_query",
            "db_operation": operation,
            "db_success": success,
            "duration_ms": round(duration_ms, 2),
            **extra,
        })

    def log_error_with_context(self, error: Exception, context: Optional[str] = None,
                               **extra) -> None:
        """Unexpected exception, logged with its traceback"""
        self.error(f"Unhandled {type(error).__name__} in {context or 'unknown'}: {error}", exc_info=error, extra={
            "event_type": "error",
            "error_type": type(error).__name__,
            "error_context": context,
            **extra,
        })

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **extra) -> None:
        slow = duration_ms > threshold_ms
        message = f"Slow: {operation} took {duration_ms:.2f}ms (limit {threshold_ms}ms)" if slow \
            else f"{operation} took {duration_ms:.2f}ms"
        self.log(logging.WARNING if slow else logging.DEBUG, message, extra={
            "event_type": "performance",
            "operation": operation,
            "duration_ms": round(duration_ms, 2),
            "threshold_ms": threshold_ms,
            "exceeded_threshold": slow,
            **extra,
        })


def _file_handler(formatter: logging.Formatter, backups: int) -> RotatingFileHandler:
    path = Path(settings.LOG_FILE)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=backups)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> InfoHubLogger:
    """Configure the "infohub" logger for the current environment"""
    logging.setLoggerClass(InfoHubLogger)
    hub_logger = logging.getLogger("infohub")
    hub_logger.__class__ = InfoHubLogger
    hub_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    hub_logger.handlers.clear()

    json_output = settings.is_production()
    if json_output:
        console_formatter = file_formatter = JSONFormatter()
    else:
        console_formatter = ContextualFormatter("%(levelname)-8s | [%(request_id)s] %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(user_id)s] | "
            "%(name)s.%(funcName)s:%(lineno)d | %(message)s"
        )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(console_formatter)
    hub_logger.addHandler(console)

    if settings.LOG_FILE:
        hub_logger.addHandler(_file_handler(file_formatter, backups=10 if json_output else 5))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    hub_logger.info("Logging ready", extra={
        "environment": settings.ENVIRONMENT,
        "log_level": settings.LOG_LEVEL,
        "json_logging": json_output,
    })
    return hub_logger


logger: InfoHubLogger = setup_logging()
