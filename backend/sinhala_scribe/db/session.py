from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sinhala_scribe.core.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    In-memory SQLite needs a single shared connection, otherwise every
    checkout would see an empty database.
    """
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


# Create async engine
engine = build_engine(settings.DATABASE_URL)

# Create async session
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Get database session dependency.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
