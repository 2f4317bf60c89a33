import logging
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from weekboard.core.config import settings
from weekboard.repositories.store import SqlWeeklyTaskStore

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


def build_engine(database_url: str) -> AsyncEngine:
    """Async engine for SQLite (local) or PostgreSQL (production)"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": settings.DEBUG}
        # an in-memory database only exists on its one connection
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        return create_async_engine(database_url, **kwargs)

    return create_async_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=settings.DEBUG,
    )


async def create_tables(db_engine: AsyncEngine) -> None:
    from weekboard.models.base import Base
    from weekboard.models.task import TaskDB, SubtaskDB, TaskUpdateDB, TaskActivityDB  # noqa: F401
    from weekboard.models.completion import WeeklyTaskCompletionDB  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(database_url: Optional[str] = None):
    """Initialize database connection and create tables"""
    global engine, async_session_maker

    from weekboard.core.database_url import get_database_url
    database_url = database_url or get_database_url()

    engine = build_engine(database_url)
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await create_tables(engine)
    logger.info(f"Database initialized ({engine.dialect.name})")


async def close_db():
    """Close database connection"""
    global engine, async_session_maker
    if engine:
        await engine.dispose()
    engine = None
    async_session_maker = None


async def get_store() -> SqlWeeklyTaskStore:
    """Dependency returning the store the lifecycle services run against"""
    if async_session_maker is None:
        await init_db()
    return SqlWeeklyTaskStore(async_session_maker)
