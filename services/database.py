from __future__ import annotations

from typing import AsyncGenerator

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings

logger = structlog.get_logger(__name__)

# -----------------------------------------------------------------------------
# Database Engine
# -----------------------------------------------------------------------------
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    future=True,
)

# -----------------------------------------------------------------------------
# Session Maker
# -----------------------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# -----------------------------------------------------------------------------
# Declarative Base
# -----------------------------------------------------------------------------
class Base(DeclarativeBase):
    pass

# -----------------------------------------------------------------------------
# Dependency
# -----------------------------------------------------------------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency to provide a database session.
    Ensures the session is closed after the request is processed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

# -----------------------------------------------------------------------------
# Lifecycle Utilities
# -----------------------------------------------------------------------------
async def init_db() -> bool:
    """
    Initialize database tables.
    Entity, field, REST and account models must be imported before this runs.
    Returns False, after logging the error, when the tables could not be
    created.
    """
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except Exception:
            logger.warning(
                "database_tables_not_created",
                url=engine.url.render_as_string(hide_password=True),
                exc_info=True,
            )
            return False
    logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))
    return True

async def close_db():
    """
    Close the database engine.
    Should be called on application shutdown.
    """
    await engine.dispose()
