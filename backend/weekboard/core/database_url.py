"""
Database URL resolution for local SQLite and hosted PostgreSQL
"""
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./weekboard.db"


def normalize_database_url(database_url: str) -> str:
    """Make sure the URL names an async driver"""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def get_database_url() -> str:
    """Get database URL from settings or environment, defaulting to SQLite"""
    from weekboard.core.config import settings

    database_url = settings.DATABASE_URL or os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL
    normalized = normalize_database_url(database_url)
    if normalized != database_url:
        logger.info("Normalized DATABASE_URL to async driver scheme")
    return normalized
