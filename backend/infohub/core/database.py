"""
School Info Hub - Database engine and sessions

The engine is built lazily so tests and the seed script can point
DATABASE_URL somewhere else before the first connection is made.
"""
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, QueuePool

from infohub.core.config import settings
from infohub.services.performance import query_monitor

Base = declarative_base()

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite:///": "sqlite+aiosqlite:///",
}

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """DATABASE_URL with its async driver filled in"""
    url = settings.DATABASE_URL
    for plain, async_prefix in _ASYNC_DRIVERS.items():
        if url.startswith(plain):
            return async_prefix + url[len(plain):]
    return url


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.DB_ECHO}
    if url.startswith("sqlite"):
        options.update(poolclass=NullPool, connect_args={"check_same_thread": False})
    elif settings.is_dev_mode():
        options["poolclass"] = NullPool
    else:
        options.update(
            poolclass=QueuePool,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        url = get_database_url()
        _engine = create_async_engine(url, **_engine_options(url))
        query_monitor.instrument(_engine.sync_engine)
    return _engine


def get_session_local() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


def AsyncSessionLocal() -> AsyncSession:
    """Session for code running outside a request (seed script, background jobs)"""
    return get_session_local()()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Pending changes left by a handler are committed on the way out;
    any exception rolls the session back before propagating.
    """
    async with get_session_local()() as session:
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables"""
    import infohub.models  # noqa: F401  registers every table on Base.metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
