"""Database module for managing connections to PostgreSQL.

This module handles:
- Database connection pool initialization
- Schema management
- Connection lifecycle
- Bounding every remote call by the configured remote_timeout
"""

import asyncio
import logging
import ssl
from typing import Optional, Dict, Any
from urllib.parse import urlparse, parse_qs
import backoff
import asyncpg

from .exceptions import DatabaseError, DatabaseSchemaError, DatabaseTimeoutError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None

# sslmode values that require an encrypted connection
SSL_MODES = ('require', 'verify-ca', 'verify-full')

def remote_error(e: Exception, error_cls: type, action: str) -> Exception:
    """Map a failed remote call onto error_cls.

    Timeouts become DatabaseTimeoutError so callers can tell a hung call
    apart from a rejected one.
    """
    if isinstance(e, asyncio.TimeoutError):
        return DatabaseTimeoutError(f"{action}: timed out")
    return error_cls(f"{action}: {e}")

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for hosted database connections."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    params = parse_qs(urlparse(db_url).query)
    sslmode = params.get('sslmode', ['disable'])[0]

    kwargs: Dict[str, Any] = {}
    if sslmode in SSL_MODES:
        kwargs['ssl'] = _get_ssl_context()
    return kwargs

def _get_database_name(db_url: str) -> str:
    """Extract the database name from a connection URL."""
    db_name = urlparse(db_url).path.strip('/')
    return db_name or 'postgres'

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def create_database_if_not_exists(db_url: str) -> None:
    """Create the database if it doesn't exist.

    Args:
        db_url: Database connection URL

    Raises:
        Exception: If database creation fails after retries
    """
    db_name = _get_database_name(db_url)
    if db_name == 'postgres':
        return

    parsed = urlparse(db_url)
    base_url = parsed._replace(path='/postgres').geturl()
    logger.info(f"Connecting to postgres to create {db_name} if needed")

    conn = await asyncpg.connect(base_url, **_get_connection_kwargs(db_url))
    try:
        exists = await conn.fetchval(
            'SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)',
            db_name
        )
        if not exists:
            await conn.execute(f'CREATE DATABASE "{db_name}"')
            logger.info(f"Created database {db_name}")
    except Exception as e:
        logger.error(f"Error creating database: {e}")
        raise
    finally:
        await conn.close()

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def init_db(db_url: Optional[str] = None, force_recreate: bool = False) -> None:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Optional database URL. If not provided, will use settings.
        force_recreate: If True, drop and recreate all tables

    Raises:
        ValueError: If database URL is not provided
        Exception: If initialization fails after retries
    """
    global _pool, _schema_manager

    # Import here to avoid circular imports
    from config import settings_conf

    url = db_url or settings_conf.get('db_url')
    if not url:
        raise ValueError("Database URL not provided")

    timeout = float(settings_conf['remote_timeout'])

    try:
        await create_database_if_not_exists(url)

        _pool = await asyncpg.create_pool(
            url,
            min_size=2,
            max_size=20,
            max_queries=10000,
            max_inactive_connection_lifetime=300.0,
            command_timeout=timeout,  # Every query is bounded
            timeout=timeout,          # Connection establishment is bounded
            **_get_connection_kwargs(url)
        )

        if force_recreate:
            await drop_all_tables(_pool)

        _schema_manager = SchemaManager(_pool)
        await _schema_manager.initialize()

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

async def drop_all_tables(pool: asyncpg.Pool) -> None:
    """Drop every table in the public schema, including schema_version."""
    async with pool.acquire() as conn:
        tables = await conn.fetch(
            '''
            SELECT tablename
            FROM pg_tables
            WHERE schemaname = 'public'
            '''
        )
        for table in tables:
            await conn.execute(f'DROP TABLE IF EXISTS "{table["tablename"]}" CASCADE')
            logger.info(f"Dropped table {table['tablename']}")

async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Returns:
        The connection pool

    Raises:
        RuntimeError: If pool hasn't been initialized
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise RuntimeError("Failed to initialize database pool")
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
    'init_db', 'get_pool', 'close', 'drop_all_tables', 'remote_error',
    'DatabaseError', 'DatabaseSchemaError', 'DatabaseTimeoutError'
]
