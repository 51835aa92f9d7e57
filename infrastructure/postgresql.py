# ============================================================================
# POSTGRESQL BASE REPOSITORY
# ============================================================================
# STATUS: Infrastructure - PostgreSQL connection and query execution
# PURPOSE: Shared psycopg plumbing for the grant store and region catalogue
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
PostgreSQL Repository Base - Direct Database Access.

Architecture:
    BaseRepository (abstract)
        ↓
    PostgreSQLRepository (this file)
        ↓
    PostgreSQLGrantRepository, PostgreSQLRegionRepository

Key Features:
- Direct PostgreSQL access using psycopg3
- SQL composition for injection safety
- Always-commit single statements, explicit multi-statement transactions
- psycopg errors surfaced as DatabaseError

Exports:
    PostgreSQLRepository: Base class for PostgreSQL repositories
"""

from contextlib import contextmanager
from typing import Any, Optional, Tuple

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from config import DatabaseConfig, get_config
from exceptions import ConfigurationError, ContractViolationError, DatabaseError
from util_logger import LoggerFactory, ComponentType
from .base import BaseRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLRepository")


# ============================================================================
# POSTGRESQL BASE REPOSITORY - Connection and common operations
# ============================================================================

class PostgreSQLRepository(BaseRepository):
    """
    PostgreSQL-specific repository base class with connection management.

    Configuration priority:
    1. Explicit parameters (connection_string, schema_name)
    2. Provided DatabaseConfig
    3. Global configuration from get_config()
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: Optional[str] = None,
                 config: Optional[DatabaseConfig] = None,
                 check_schema: bool = True):
        super().__init__()

        if config is None and connection_string is None:
            config = get_config().database
            if config is None:
                raise ConfigurationError(
                    "PostgreSQL repository requested but POSTGIS_HOST/POSTGIS_DATABASE are not set"
                )

        self.db_config = config
        self.schema_name = schema_name or (config.app_schema if config else "app")
        self.conn_string = connection_string or config.connection_string

        if check_schema:
            self._ensure_schema_exists()

        logger.info(f"✅ {self.__class__.__name__} initialized with schema: {self.schema_name}")

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        Rolls back on error and always closes. Autocommit is off, callers
        commit explicitly (or use _execute_query which always commits).

        Raises:
            DatabaseError: On connection failure
        """
        conn = None
        try:
            logger.debug("🔗 Attempting PostgreSQL connection...")
            try:
                conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            except psycopg.Error as e:
                logger.error(f"❌ PostgreSQL connection error: {type(e).__name__}: {e}")
                raise DatabaseError(f"Database connection failed: {e}") from e
            yield conn
        except Exception:
            if conn is not None and not conn.closed:
                try:
                    conn.rollback()
                except psycopg.Error as rollback_error:
                    logger.error(f"❌ ROLLBACK ALSO FAILED: {rollback_error}")
            raise
        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def _transaction(self):
        """
        Multi-statement transaction. Yields a dict_row cursor and commits
        once the block completes.

        Usage:
            with self._transaction() as cur:
                cur.execute(insert_grant, ...)
                cur.execute(insert_mirror, ...)
        """
        with self._get_connection() as conn:
            try:
                with conn.cursor() as cursor:
                    yield cursor
                conn.commit()
            except psycopg.Error as e:
                logger.error(f"❌ TRANSACTION FAILED: {e}")
                raise DatabaseError(f"Transaction failed: {e}") from e

    def _ensure_schema_exists(self) -> None:
        """
        Verify that the target schema exists.

        Logs only. Does NOT create the schema; GrantSchemaDeployer does that.
        """
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        sql.SQL("SELECT schema_name FROM information_schema.schemata WHERE schema_name = %s"),
                        (self.schema_name,)
                    )
                    if not cursor.fetchone():
                        logger.warning(
                            f"⚠️ Schema {self.schema_name} does not exist. "
                            f"It should be created by schema deployment."
                        )
                    else:
                        logger.debug(f"✅ Schema {self.schema_name} exists")
        except DatabaseError as e:
            # Actual operations fail later with specific errors
            logger.error(f"❌ Error checking schema existence: {e}")

    def _execute_query(self, query: sql.Composed, params: Optional[Tuple] = None,
                       fetch: Optional[str] = None) -> Optional[Any]:
        """
        Execute a single statement and ALWAYS commit.

        Args:
            query: psycopg.sql composition (plain strings are rejected)
            params: Parameters for %s placeholders
            fetch: None | 'one' | 'all'

        Returns:
            Fetched row(s) for fetch modes, affected row count for DML

        Raises:
            ContractViolationError: query is not sql.Composed or fetch mode invalid
            DatabaseError: Any database failure
        """
        if not isinstance(query, sql.Composed):
            raise ContractViolationError(f"❌ SECURITY: Query must be sql.Composed, got {type(query)}")

        if fetch and fetch not in ('one', 'all'):
            raise ContractViolationError(f"❌ INVALID FETCH MODE: {fetch}")

        with self._get_connection() as conn:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)

                    result = None
                    if fetch == 'one':
                        result = cursor.fetchone()
                    elif fetch == 'all':
                        result = cursor.fetchall()

                    conn.commit()

                    if fetch:
                        return result
                    return cursor.rowcount

            except psycopg.errors.SerializationFailure as e:
                logger.error(f"❌ SERIALIZATION FAILURE: {e}")
                raise DatabaseError("Concurrent transaction conflict") from e

            except psycopg.errors.IntegrityError as e:
                constraint = e.diag.constraint_name if e.diag else 'unknown'
                logger.error(f"❌ INTEGRITY CONSTRAINT VIOLATION: {constraint}: {e}")
                raise DatabaseError(f"Constraint violation: {e}") from e

            except psycopg.Error as e:
                logger.error(f"❌ QUERY FAILED: {e}")
                logger.error(f"   SQL State: {getattr(e, 'sqlstate', 'unknown')}")
                raise DatabaseError(f"Query execution failed: {e}") from e

    def _table(self, name: str) -> sql.Composed:
        """Schema-qualified table identifier."""
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema_name), sql.Identifier(name))
