"""
Toprank: Database Connection Management

Two PostgreSQL databases are used:

- historical_db: read-only daily prices (``prices_daily``) consumed by
  :class:`toprank.data.prices.DatabasePriceFeed`;
- runtime_db: strategy identity, run batches, scores, holdings, actions,
  performance points and signal diagnostics.

Each database gets a lazily created psycopg2 ``SimpleConnectionPool``.
Connections are handed out through context managers; a connection that
leaves the block with an open, failed transaction is rolled back before
it is returned to the pool so the next borrower starts clean.

External dependencies:
- psycopg2-binary: PostgreSQL client and connection pooling

Thread safety: Thread-safe under normal psycopg2 pool usage. One
DatabaseManager is created per process by the CLI entry points.
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Generator

import psycopg2
from psycopg2 import pool
from psycopg2.extensions import TRANSACTION_STATUS_IDLE
from psycopg2.extensions import connection as PsycopgConnection

from toprank.core.config import DatabaseConfig, ToprankConfig
from toprank.core.errors import PersistenceError
from toprank.core.logging import get_logger

# ============================================================================
# Module Setup
# ============================================================================

logger = get_logger(__name__)

HISTORICAL = "historical_db"
RUNTIME = "runtime_db"


class DatabaseError(PersistenceError):
    """Raised when a pool cannot be created or a connection acquired."""


class DatabaseManager:
    """Own the connection pools for the historical and runtime databases.

    Typical usage::

        db = DatabaseManager(get_config())
        with db.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("SELECT 1")
                result = cursor.fetchone()
            finally:
                cursor.close()
        db.close_all()
    """

    def __init__(self, config: ToprankConfig) -> None:
        self.config = config
        self._pools: Dict[str, pool.SimpleConnectionPool] = {}
        logger.info("DatabaseManager initialised (environment=%s)", config.environment)

    # ======================================================================
    # Internal helpers
    # ======================================================================

    @staticmethod
    def _create_connection_string(db_config: DatabaseConfig) -> str:
        """Build a libpq DSN from configuration."""

        return (
            f"host={db_config.host} "
            f"port={db_config.port} "
            f"dbname={db_config.name} "
            f"user={db_config.user} "
            f"password={db_config.password}"
        )

    def _db_config(self, label: str) -> DatabaseConfig:
        return self.config.historical_db if label == HISTORICAL else self.config.runtime_db

    def _pool(self, label: str) -> pool.SimpleConnectionPool:
        existing = self._pools.get(label)
        if existing is not None:
            return existing

        db_config = self._db_config(label)
        try:
            new_pool = pool.SimpleConnectionPool(
                minconn=1,
                maxconn=db_config.pool_size,
                dsn=self._create_connection_string(db_config),
            )
        except psycopg2.Error as exc:
            logger.error("Failed to create %s connection pool: %s", label, exc)
            raise DatabaseError(f"Failed to create {label} connection pool") from exc

        self._pools[label] = new_pool
        logger.info("Created %s connection pool for database '%s'", label, db_config.name)
        return new_pool

    @contextmanager
    def _connection(self, label: str) -> Generator[PsycopgConnection, None, None]:
        pool_obj = self._pool(label)
        try:
            conn = pool_obj.getconn()
        except (psycopg2.Error, pool.PoolError) as exc:
            logger.error("Failed to acquire %s connection: %s", label, exc)
            raise DatabaseError(f"Failed to acquire {label} connection") from exc

        try:
            yield conn
        finally:
            if not conn.closed and conn.get_transaction_status() != TRANSACTION_STATUS_IDLE:
                conn.rollback()
            pool_obj.putconn(conn)

    # ======================================================================
    # Public context managers
    # ======================================================================

    def get_historical_connection(self):  # type: ignore[no-untyped-def]
        """Return a context manager yielding a historical_db connection."""

        return self._connection(HISTORICAL)

    def get_runtime_connection(self):  # type: ignore[no-untyped-def]
        """Return a context manager yielding a runtime_db connection."""

        return self._connection(RUNTIME)

    # ======================================================================
    # Lifecycle
    # ======================================================================

    def close_all(self) -> None:
        """Close every open pool."""

        for label, pool_obj in list(self._pools.items()):
            pool_obj.closeall()
            logger.info("Closed %s connection pool", label)
        self._pools.clear()
