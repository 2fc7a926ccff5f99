"""
Engine, session factory and declarative base.

Scheduling works inside one session per request: the scheduler flushes run
changes as it goes and commits or rolls back once, so autoflush is off and
objects stay loaded after commit for building the response.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from paratransit.app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """FastAPI dependency yielding the request's scheduling session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
