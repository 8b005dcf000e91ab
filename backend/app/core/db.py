"""Async database session management helpers."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions.
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "isolation_level": settings.DB_ISOLATION_LEVEL,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""

    async with SessionLocal() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Run the enclosed block in a fresh transaction on ``session``.

    Reads issued earlier in the request (for example while resolving the
    current user) autobegin a transaction; it is closed first so that the
    block gets its own BEGIN/COMMIT and row locks are scoped to it.
    """

    if session.in_transaction():
        await session.commit()

    if session.bind.dialect.name == "mysql":
        conn = await session.connection()
        await conn.exec_driver_sql(
            f"SET SESSION innodb_lock_wait_timeout = {settings.INNODB_LOCK_WAIT_TIMEOUT_SEC}"
        )
        await session.commit()

    async with session.begin():
        yield session


async def create_all() -> None:
    """Create all tables for the current ORM metadata (tests and local dev)."""

    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
