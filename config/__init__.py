"""
Configuration Package.

Structure:
    config/
    ├── __init__.py              # This file - exports and singleton
    ├── defaults.py              # Default values
    ├── app_config.py            # Main config (composes domain configs)
    ├── database_config.py       # PostgreSQL grant store
    ├── boundary_config.py       # Reference boundary dataset
    └── access_config.py         # Grants, reconciliation, poller

Usage:
    from config import get_config
    config = get_config()
    ttl = config.access.resolver_cache_ttl_seconds

Debug:
    from config import debug_config
    info = debug_config()  # Passwords masked
"""

from typing import Optional

from .app_config import AppConfig
from .database_config import DatabaseConfig, get_postgres_connection_string
from .boundary_config import BoundaryConfig
from .access_config import AccessConfig, ReconciliationConfig, PollerConfig


# ============================================================================
# SINGLETON PATTERN
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get global configuration singleton.

    Returns:
        AppConfig instance loaded from environment
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).

    Returns:
        Dictionary with configuration values, passwords masked
    """
    try:
        config = get_config()
        return {
            'database': config.database.debug_dict() if config.database else None,
            'boundary': config.boundary.debug_dict(),
            'access': config.access.debug_dict(),
            'reconciliation': config.reconciliation.model_dump(),
            'poller': config.poller.model_dump(),

            # Application
            'debug_mode': config.debug_mode,
            'environment': config.environment,
            'log_level': config.log_level,
        }
    except Exception as e:
        return {'error': f'Configuration validation failed: {e}'}


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'AppConfig',
    'get_config',
    'reset_config',
    'debug_config',
    'DatabaseConfig',
    'get_postgres_connection_string',
    'BoundaryConfig',
    'AccessConfig',
    'ReconciliationConfig',
    'PollerConfig',
]
