"""
Main Application Configuration.

Composes domain-specific configuration modules:
    - DatabaseConfig (PostgreSQL grant store)
    - BoundaryConfig (Reference boundary dataset)
    - AccessConfig (Grant store backend, admin roles, resolver cache)
    - ReconciliationConfig (Background purge loop)
    - PollerConfig (Client region poller)

Exports:
    AppConfig: Main configuration class

Dependencies:
    pydantic: BaseModel for configuration validation
    config.defaults: Default value constants

Pattern:
    Composition over inheritance - domain configs are composed, not inherited.
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .database_config import DatabaseConfig
from .boundary_config import BoundaryConfig
from .access_config import AccessConfig, ReconciliationConfig, PollerConfig
from .defaults import AppDefaults


# ============================================================================
# APPLICATION CONFIGURATION
# ============================================================================

class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    Each domain config manages its own validation and defaults. Cross-domain
    rules live here.
    """

    # ========================================================================
    # Core Application Settings
    # ========================================================================

    debug_mode: bool = Field(
        default=AppDefaults.DEBUG_MODE,
        description="Enable debug mode for verbose diagnostics. "
                    "Set DEBUG_MODE=true in environment to enable."
    )

    environment: str = Field(
        default=AppDefaults.ENVIRONMENT,
        description="Environment name (dev, qa, prod)"
    )

    log_level: str = Field(
        default=AppDefaults.LOG_LEVEL,
        description="Root log level"
    )

    # ========================================================================
    # Domain Configurations
    # ========================================================================

    database: Optional[DatabaseConfig] = Field(
        default=None,
        description="PostgreSQL settings, required for the postgres backend"
    )

    boundary: BoundaryConfig = Field(default_factory=BoundaryConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL, got '{v}'")
        return level

    # ========================================================================
    # Cross-domain validation
    # ========================================================================

    @model_validator(mode='after')
    def validate_cross_domain(self) -> 'AppConfig':
        """
        Resolver cache must not outlive one poll interval, otherwise a
        revocation could stay invisible for longer than the staleness
        window clients are promised.
        """
        if self.access.resolver_cache_ttl_seconds > self.poller.interval_seconds:
            raise ValueError(
                f"ACCESS_RESOLVER_CACHE_TTL_SECONDS ({self.access.resolver_cache_ttl_seconds}) "
                f"must not exceed POLLER_INTERVAL_SECONDS ({self.poller.interval_seconds})"
            )
        if self.access.storage_backend == "postgres" and self.database is None:
            raise ValueError(
                "ACCESS_STORAGE_BACKEND=postgres requires POSTGIS_HOST and POSTGIS_DATABASE"
            )
        return self

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def from_environment(cls):
        """Load all configs from environment."""
        access = AccessConfig.from_environment()
        wants_database = (
            access.storage_backend == "postgres"
            or bool(os.environ.get("POSTGIS_HOST"))
        )
        return cls(
            debug_mode=os.environ.get("DEBUG_MODE", str(AppDefaults.DEBUG_MODE).lower()).lower() == "true",
            environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
            log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),

            # Domain configs
            database=DatabaseConfig.from_environment()
                if wants_database and os.environ.get("POSTGIS_HOST") and os.environ.get("POSTGIS_DATABASE")
                else None,
            boundary=BoundaryConfig.from_environment(),
            access=access,
            reconciliation=ReconciliationConfig.from_environment(),
            poller=PollerConfig.from_environment(),
        )
