"""
School Info Hub - ASGI application

    uvicorn infohub.main:app
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

import infohub.models  # noqa: F401  registers every table before init_db
from infohub import __version__
from infohub.api.v1.router import api_router
from infohub.core.config import settings
from infohub.core.database import close_db, get_session_local, init_db
from infohub.core.exceptions import register_exception_handlers
from infohub.core.logging_config import logger
from infohub.core.middleware import (
    InputValidationMiddleware,
    PerformanceMonitoringMiddleware,
    RequestLoggingMiddleware,
    ResponseCacheMiddleware,
    SecurityHeadersMiddleware,
)
from infohub.core.rate_limiter import RateLimitMiddleware, limiter, rate_limit_exceeded_handler
from infohub.services.email_queue import email_queue
from infohub.services.response_cache import response_cache
from infohub.services.settings_service import ensure_default_settings

INSECURE_SECRETS = {"", "CHANGE_ME", "your-secret-key"}


async def validate_critical_config() -> bool:
    """Refuse to start without a database URL and real signing secrets"""
    problems = [
        message for failed, message in (
            (not settings.DATABASE_URL, "DATABASE_URL is not set"),
            (settings.SECRET_KEY in INSECURE_SECRETS, "SECRET_KEY is missing or a placeholder"),
            (settings.JWT_SECRET_KEY in INSECURE_SECRETS, "JWT_SECRET_KEY is missing or a placeholder"),
        ) if failed
    ]
    if problems:
        for problem in problems:
            logger.critical(f"[Startup] {problem}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(problems)}")

    if not (settings.SMTP_USER and settings.SMTP_PASSWORD):
        logger.warning("[Startup] SMTP credentials not set, notification emails are disabled")
    if settings.is_production() and "sqlite" in settings.DATABASE_URL:
        logger.warning("[Startup] Running production on SQLite")

    logger.info("[Startup] Configuration ok")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"[Startup] {settings.APP_NAME} {__version__} ({settings.ENVIRONMENT}, api {settings.API_VERSION})")
    await validate_critical_config()

    await init_db()
    async with get_session_local()() as session:
        seeded = await ensure_default_settings(session)
    logger.info(f"[Startup] Database ready, {seeded} default settings added")
    if settings.SMTP_USER and settings.SMTP_PASSWORD:
        await email_queue.start()

    yield

    logger.info(f"[Shutdown] Stopping {settings.APP_NAME}")
    await email_queue.stop()
    await response_cache.close()
    await close_db()


def add_middleware_stack(app: FastAPI) -> None:
    """
    Starlette runs the last added middleware first, so requests pass through
    logging, security headers, input validation, rate limiting, performance
    timing, the public response cache and finally CORS.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time", "X-Cache", "X-RateLimit-Remaining"],
    )
    app.add_middleware(ResponseCacheMiddleware)
    app.add_middleware(PerformanceMonitoringMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(InputValidationMiddleware, max_size=settings.MAX_REQUEST_SIZE)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)


app = FastAPI(
    title=settings.APP_NAME,
    description="School information portal: announcements, events, resources and family communications",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,  # 307s on trailing slashes break CORS preflight
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)
add_middleware_stack(app)
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs",
        "health": f"/api/{settings.API_VERSION}/health",
    }


def run():
    """Console entry point (infohub-server)"""
    import uvicorn

    uvicorn.run(
        "infohub.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
