"""Database connection and migration management."""

from pathlib import Path
from typing import List, Optional

import asyncpg
import structlog

from src.config import get_settings

logger = structlog.get_logger(__name__)

# Global connection pool
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        asyncpg connection pool

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Initialize the database connection pool.

    Returns:
        asyncpg connection pool
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=60,
        )
        logger.info(
            "database_pool_created",
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        return _pool
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise


async def close_database() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


MIGRATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

DEFAULT_MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


async def run_migrations(migrations_dir: Optional[Path] = None) -> List[str]:
    """Apply pending SQL migrations in filename order.

    Applied filenames are recorded in ``schema_migrations``; each file runs
    in its own transaction together with its bookkeeping row, so a failed
    migration leaves nothing behind and is retried on the next start.

    Returns:
        Names of the files applied by this call
    """
    pool = await get_pool()
    migrations_dir = migrations_dir or DEFAULT_MIGRATIONS_DIR

    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return []

    migration_files = sorted(migrations_dir.glob("*.sql"))

    if not migration_files:
        logger.info("no_migrations_found")
        return []

    applied_now: List[str] = []

    async with pool.acquire() as conn:
        await conn.execute(MIGRATIONS_TABLE_SQL)
        rows = await conn.fetch("SELECT filename FROM schema_migrations")
        already_applied = {row["filename"] for row in rows}

        for migration_file in migration_files:
            if migration_file.name in already_applied:
                continue
            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text())
                    await conn.execute(
                        "INSERT INTO schema_migrations (filename) VALUES ($1)",
                        migration_file.name,
                    )
            except Exception as e:
                logger.error(
                    "migration_failed",
                    file=migration_file.name,
                    error=str(e),
                )
                raise
            applied_now.append(migration_file.name)
            logger.info("migration_applied", file=migration_file.name)

    logger.info(
        "migrations_complete",
        applied=len(applied_now),
        skipped=len(already_applied),
    )
    return applied_now


async def health_check() -> bool:
    """Check database connectivity.

    Returns:
        True if database is healthy, False otherwise
    """
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
