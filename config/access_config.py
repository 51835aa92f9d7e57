"""
Access Control Configuration.

Settings for the grant store, resolver cache, background reconciliation
loop and the client-side region poller.

Exports:
    AccessConfig: Grant store backend, admin roles, resolver cache
    ReconciliationConfig: Background purge loop
    PollerConfig: Client region poller
"""

import os
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from .defaults import AccessDefaults, ReconciliationDefaults, PollerDefaults


# ============================================================================
# ACCESS CONFIGURATION
# ============================================================================

class AccessConfig(BaseModel):
    """
    Grant store and resolver configuration.
    """

    storage_backend: str = Field(
        default=AccessDefaults.STORAGE_BACKEND,
        description="Grant store backend: 'postgres' or 'memory'"
    )

    grant_admin_roles: List[str] = Field(
        default_factory=lambda: list(AccessDefaults.GRANT_ADMIN_ROLES),
        description="Roles allowed to issue and revoke grants (case-insensitive)"
    )

    resolver_cache_ttl_seconds: int = Field(
        default=AccessDefaults.RESOLVER_CACHE_TTL_SECONDS,
        ge=0,
        description="Per-user effective region cache lifetime. 0 disables caching."
    )

    default_access_level: str = Field(
        default=AccessDefaults.DEFAULT_ACCESS_LEVEL,
        description="Access level applied when a request omits one"
    )

    region_catalog_source: Optional[str] = Field(
        default=None,
        description="JSON file with a list of regions seeding the in-memory catalogue"
    )

    @field_validator('storage_backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Backend must be one of the supported stores."""
        v = v.strip().lower()
        if v not in AccessDefaults.VALID_BACKENDS:
            raise ValueError(
                f"storage_backend must be one of {AccessDefaults.VALID_BACKENDS}, got '{v}'"
            )
        return v

    @field_validator('grant_admin_roles')
    @classmethod
    def normalize_roles(cls, v: List[str]) -> List[str]:
        """Roles compare case-insensitively."""
        return [r.strip().lower() for r in v if r and r.strip()]

    @field_validator('default_access_level')
    @classmethod
    def validate_access_level(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("read", "write", "admin"):
            raise ValueError(f"default_access_level must be read, write or admin, got '{v}'")
        return v

    def is_grant_admin(self, role: Optional[str]) -> bool:
        """Check a caller role against the configured admin roles."""
        return bool(role) and role.strip().lower() in self.grant_admin_roles

    def debug_dict(self) -> dict:
        """Debug output for logging."""
        return {
            "storage_backend": self.storage_backend,
            "grant_admin_roles": self.grant_admin_roles,
            "resolver_cache_ttl_seconds": self.resolver_cache_ttl_seconds,
            "default_access_level": self.default_access_level,
            "region_catalog_source": self.region_catalog_source,
        }

    @classmethod
    def from_environment(cls) -> 'AccessConfig':
        """Load from environment variables."""
        roles_env = os.environ.get("ACCESS_GRANT_ADMIN_ROLES")
        return cls(
            storage_backend=os.environ.get("ACCESS_STORAGE_BACKEND", AccessDefaults.STORAGE_BACKEND),
            grant_admin_roles=(
                roles_env.split(",") if roles_env
                else list(AccessDefaults.GRANT_ADMIN_ROLES)
            ),
            resolver_cache_ttl_seconds=int(os.environ.get(
                "ACCESS_RESOLVER_CACHE_TTL_SECONDS", str(AccessDefaults.RESOLVER_CACHE_TTL_SECONDS)
            )),
            default_access_level=os.environ.get(
                "ACCESS_DEFAULT_LEVEL", AccessDefaults.DEFAULT_ACCESS_LEVEL
            ),
            region_catalog_source=os.environ.get("REGION_CATALOG_SOURCE") or None,
        )


# ============================================================================
# RECONCILIATION CONFIGURATION
# ============================================================================

class ReconciliationConfig(BaseModel):
    """
    Background reconciliation loop configuration.

    The loop retires mirror rows for expired and revoked grants. Access
    decisions never depend on it running.
    """

    enabled: bool = Field(
        default=ReconciliationDefaults.ENABLED,
        description="Run the periodic purge"
    )

    interval_seconds: int = Field(
        default=ReconciliationDefaults.INTERVAL_SECONDS,
        ge=1,
        description="Fixed schedule between purge ticks"
    )

    shutdown_timeout_seconds: int = Field(
        default=ReconciliationDefaults.SHUTDOWN_TIMEOUT_SECONDS,
        ge=0,
        description="How long stop() waits for an in-flight purge"
    )

    @classmethod
    def from_environment(cls) -> 'ReconciliationConfig':
        """Load from environment variables."""
        return cls(
            enabled=os.environ.get(
                "RECONCILIATION_ENABLED", str(ReconciliationDefaults.ENABLED).lower()
            ).lower() == "true",
            interval_seconds=int(os.environ.get(
                "RECONCILIATION_INTERVAL_SECONDS", str(ReconciliationDefaults.INTERVAL_SECONDS)
            )),
            shutdown_timeout_seconds=int(os.environ.get(
                "RECONCILIATION_SHUTDOWN_TIMEOUT_SECONDS",
                str(ReconciliationDefaults.SHUTDOWN_TIMEOUT_SECONDS)
            )),
        )


# ============================================================================
# POLLER CONFIGURATION
# ============================================================================

class PollerConfig(BaseModel):
    """
    Client region poller configuration.
    """

    interval_seconds: int = Field(
        default=PollerDefaults.INTERVAL_SECONDS,
        ge=1,
        description="Seconds between region checks"
    )

    initial_delay_seconds: int = Field(
        default=PollerDefaults.INITIAL_DELAY_SECONDS,
        ge=0,
        description="Delay before the first check after start()"
    )

    timeout_seconds: float = Field(
        default=PollerDefaults.TIMEOUT_SECONDS,
        gt=0,
        description="HTTP timeout for each check"
    )

    @classmethod
    def from_environment(cls) -> 'PollerConfig':
        """Load from environment variables."""
        return cls(
            interval_seconds=int(os.environ.get(
                "POLLER_INTERVAL_SECONDS", str(PollerDefaults.INTERVAL_SECONDS)
            )),
            initial_delay_seconds=int(os.environ.get(
                "POLLER_INITIAL_DELAY_SECONDS", str(PollerDefaults.INITIAL_DELAY_SECONDS)
            )),
            timeout_seconds=float(os.environ.get(
                "POLLER_TIMEOUT_SECONDS", str(PollerDefaults.TIMEOUT_SECONDS)
            )),
        )
