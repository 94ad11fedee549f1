"""
Database session management

Async SQLAlchemy engine and session factory used by the billing
repositories. Sessions are opened per unit of work:

    async with async_db_session() as session:
        await session.execute(...)
        await session.commit()
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from subscription_backend.core.conf import settings


def create_database_engine(url: str | None = None) -> AsyncEngine:
    """Create the async engine for the configured PostgreSQL database."""
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        future=True,
        pool_size=settings.DATABASE_POOL_SIZE,
        pool_pre_ping=True,
    )


async_engine = create_database_engine()
async_db_session = async_sessionmaker(bind=async_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
