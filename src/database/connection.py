"""
Database connection and pool management
"""

import asyncpg
import logging

logger = logging.getLogger(__name__)


async def create_db_pool(database_url: str) -> asyncpg.Pool:
    """Create and verify a connection pool for the postgres cache backend"""
    db_pool = await asyncpg.create_pool(
        database_url,
        min_size=1,
        max_size=5,
        command_timeout=60,
        statement_cache_size=0  # Fix for pgbouncer compatibility
    )

    # Test connection
    async with db_pool.acquire() as conn:
        await conn.fetchval("SELECT 1")

    logger.info("Database initialized successfully")
    return db_pool


async def close_db_pool(db_pool) -> None:
    """Close database connection pool"""
    if db_pool:
        await db_pool.close()
    logger.info("Database connections closed")
