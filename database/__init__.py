"""Database module for the marketplace document store.

This module handles:
- Database connection pool initialization
- Schema management
- The document store shared by the listing, user and settlement modules
- Connection lifecycle
"""

import logging
import ssl
from typing import Optional, Dict, Any
import backoff
import asyncpg
from urllib.parse import urlparse, parse_qs

from .lib.schema_manager import SchemaManager
from .documents import Document, DocumentStore, now_iso, split_path
from .exceptions import (
    DatabaseError, DatabaseSchemaError, DocumentNotFoundError, InvalidPathError
)

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_store: Optional[DocumentStore] = None

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for managed database connections."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.

    SSL is enabled unless the URL asks for sslmode=disable.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    params = parse_qs(urlparse(db_url).query)
    kwargs: Dict[str, Any] = {}

    if params.get('sslmode', [''])[0] != 'disable':
        kwargs['ssl'] = _get_ssl_context()

    return kwargs

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def init_db(db_url: Optional[str] = None) -> None:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Optional database URL. If not provided, will use settings.

    Raises:
        ValueError: If database URL is not provided
        Exception: If initialization fails after retries
    """
    global _pool, _store

    # Import here to avoid circular imports
    from config import settings_conf

    url = db_url or settings_conf.get('db_url')
    if not url:
        raise ValueError("Database URL not provided")

    try:
        _pool = await asyncpg.create_pool(
            url,
            min_size=2,
            max_size=20,
            max_inactive_connection_lifetime=300.0,
            command_timeout=60.0,
            **_get_connection_kwargs(url)
        )

        await SchemaManager(_pool).initialize()
        _store = DocumentStore(_pool)
        logger.info("Document store ready")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

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

async def get_store() -> DocumentStore:
    """Get the shared document store, initializing the pool if needed."""
    global _store
    if not _store:
        _store = DocumentStore(await get_pool())
    return _store

async def close() -> None:
    """Close the database connection pool."""
    global _pool, _store

    if _pool:
        await _pool.close()
        _pool = None
        _store = None

# Export public interface
__all__ = [
    'init_db', 'get_pool', 'get_store', 'close',
    'Document', 'DocumentStore', 'now_iso', 'split_path',
    'DatabaseError', 'DatabaseSchemaError', 'DocumentNotFoundError', 'InvalidPathError'
]
