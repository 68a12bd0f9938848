"""Database module for managing connections to PostgreSQL.

This module handles:
- Database connection pool initialization
- Schema management
- Connection lifecycle
"""

import logging
from typing import Optional
import backoff
import asyncpg

from .exceptions import DatabaseError, DatabaseConnectionError, DatabaseSchemaError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def _create_pool(url: str) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        url,
        min_size=2,          # Minimum idle connections
        max_size=20,         # Maximum connections
        max_inactive_connection_lifetime=300.0,  # 5 minutes
        command_timeout=60.0,  # 1 minute command timeout
    )

async def init_db(db_url: Optional[str] = None) -> None:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Optional database URL. If not provided, will use settings.

    Raises:
        DatabaseConnectionError: If the pool cannot be created after retries
        DatabaseSchemaError: If schema creation or migration fails
    """
    global _pool, _schema_manager

    # Import here to avoid circular imports
    from config import settings_conf

    url = db_url or settings_conf.get('db_url')
    if not url:
        raise DatabaseConnectionError("Database URL not provided")

    try:
        _pool = await _create_pool(url)
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise DatabaseConnectionError(f"Failed to connect to database: {e}")

    _schema_manager = SchemaManager(_pool)
    await _schema_manager.initialize()
    logger.info(f"Database ready at schema version {_schema_manager.current_version}")

async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        The connection pool

    Raises:
        DatabaseConnectionError: If pool hasn't been initialized
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise DatabaseConnectionError("Failed to initialize database pool")
    return _pool

async def close() -> None:
    """Close the database connection pool."""
    global _pool, _schema_manager

    if _pool:
        await _pool.close()
        _pool = None
        _schema_manager = None

# Export public interface
__all__ = [
    'init_db', 'get_pool', 'close',
    'DatabaseError', 'DatabaseConnectionError', 'DatabaseSchemaError'
]
