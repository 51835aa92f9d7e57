"""
Configuration Defaults - Single source of truth for all default values.

Organization:
    - DatabaseDefaults: PostgreSQL connection and schema
    - BoundaryDefaults: Reference boundary dataset and ingestion
    - AccessDefaults: Grant store backend, roles, resolver cache
    - ReconciliationDefaults: Background purge loop
    - PollerDefaults: Client region poller
    - AppDefaults: Environment, debug, logging

Usage:
    from config.defaults import DatabaseDefaults, AccessDefaults

    # In Pydantic Field definitions:
    port: int = Field(default=DatabaseDefaults.PORT, ...)
"""


# =============================================================================
# DATABASE DEFAULTS
# =============================================================================

class DatabaseDefaults:
    """
    Database configuration reference values.
    """

    PORT = 5432
    APP_SCHEMA = "app"
    CONNECTION_TIMEOUT_SECONDS = 30


# =============================================================================
# BOUNDARY DEFAULTS
# =============================================================================

class BoundaryDefaults:
    """
    Reference boundary dataset defaults.

    The region dataset is a GeoJSON FeatureCollection, one feature per
    administrative region. Name properties are checked in order.
    """

    # No default dataset; without BOUNDARY_SOURCE the index fails open
    SOURCE = None
    ID_PROPERTY = "region_id"
    NAME_PROPERTIES = ["NAME_1", "ST_NM", "st_nm", "name"]
    FAIL_OPEN = True
    FETCH_TIMEOUT_SECONDS = 30.0


# =============================================================================
# ACCESS DEFAULTS
# =============================================================================

class AccessDefaults:
    """
    Grant store and resolver defaults.
    """

    STORAGE_BACKEND = "postgres"
    VALID_BACKENDS = ["postgres", "memory"]
    GRANT_ADMIN_ROLES = ["admin", "manager"]
    DEFAULT_ACCESS_LEVEL = "read"

    # Must stay at or below PollerDefaults.INTERVAL_SECONDS
    RESOLVER_CACHE_TTL_SECONDS = 15


# =============================================================================
# RECONCILIATION DEFAULTS
# =============================================================================

class ReconciliationDefaults:
    """
    Background reconciliation loop defaults.
    """

    ENABLED = True
    INTERVAL_SECONDS = 300
    SHUTDOWN_TIMEOUT_SECONDS = 30


# =============================================================================
# POLLER DEFAULTS
# =============================================================================

class PollerDefaults:
    """
    Client region poller defaults.
    """

    INTERVAL_SECONDS = 30
    INITIAL_DELAY_SECONDS = 5
    TIMEOUT_SECONDS = 10.0


# =============================================================================
# APPLICATION DEFAULTS
# =============================================================================

class AppDefaults:
    """
    Application-wide defaults.

    Controls debug mode and logging.
    """

    DEBUG_MODE = False
    ENVIRONMENT = "dev"
    LOG_LEVEL = "INFO"
