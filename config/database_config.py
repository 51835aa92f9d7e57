"""
PostgreSQL Database Configuration.

Provides connection settings for the grant store. Only required when
ACCESS_STORAGE_BACKEND=postgres; the in-memory backend never reads it.

Exports:
    DatabaseConfig: Grant store database configuration
    get_postgres_connection_string: Connection string factory
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import DatabaseDefaults


# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================

class DatabaseConfig(BaseModel):
    """
    PostgreSQL configuration with password authentication.
    """

    host: str = Field(
        ...,
        description="PostgreSQL server hostname",
        examples=["localhost"]
    )

    port: int = Field(
        default=DatabaseDefaults.PORT,
        description="PostgreSQL server port number"
    )

    user: Optional[str] = Field(
        default=None,
        description="PostgreSQL username"
    )

    password: Optional[str] = Field(
        default=None,
        repr=False,
        description="PostgreSQL password from POSTGIS_PASSWORD environment variable"
    )

    database: str = Field(
        ...,
        description="PostgreSQL database name",
        examples=["fieldops"]
    )

    app_schema: str = Field(
        default=DatabaseDefaults.APP_SCHEMA,
        description="Schema holding regions, permanent_assignments, temporary_grants "
                    "and current_region_access"
    )

    connection_timeout_seconds: int = Field(
        default=DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS,
        ge=1,
        description="Connection timeout passed to psycopg.connect"
    )

    @property
    def connection_string(self) -> str:
        """Build the libpq connection string."""
        return get_postgres_connection_string(self)

    def debug_dict(self) -> dict:
        """Debug output with masked password."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "password": "***MASKED***" if self.password else None,
            "app_schema": self.app_schema,
            "connection_timeout_seconds": self.connection_timeout_seconds,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            host=os.environ["POSTGIS_HOST"],
            port=int(os.environ.get("POSTGIS_PORT", str(DatabaseDefaults.PORT))),
            user=os.environ.get("POSTGIS_USER"),
            password=os.environ.get("POSTGIS_PASSWORD"),
            database=os.environ["POSTGIS_DATABASE"],
            app_schema=os.environ.get("APP_SCHEMA", DatabaseDefaults.APP_SCHEMA),
            connection_timeout_seconds=int(os.environ.get(
                "DB_CONNECTION_TIMEOUT", str(DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS)
            )),
        )


def get_postgres_connection_string(config: DatabaseConfig) -> str:
    """
    Build a libpq keyword/value connection string.

    Args:
        config: DatabaseConfig instance

    Returns:
        Connection string accepted by psycopg.connect
    """
    parts = [
        f"host={config.host}",
        f"port={config.port}",
        f"dbname={config.database}",
        f"connect_timeout={config.connection_timeout_seconds}",
    ]
    if config.user:
        parts.append(f"user={config.user}")
    if config.password:
        parts.append(f"password={config.password}")
    return " ".join(parts)
