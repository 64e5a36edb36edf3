"""Database session management."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings

# asyncpg's prepared statement cache breaks behind a transaction-mode
# pooler (Supavisor), so it is turned off for pooled URLs.
_connect_args: dict = {}
if "pooler.supabase.com" in settings.async_database_url:
    _connect_args["statement_cache_size"] = 0

engine = create_async_engine(
    settings.async_database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for one request or health probe."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
