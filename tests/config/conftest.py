"""
Config test fixtures - clean environment via monkeypatch.
"""

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "POSTGIS_HOST", "POSTGIS_PORT", "POSTGIS_USER", "POSTGIS_PASSWORD",
        "POSTGIS_DATABASE", "APP_SCHEMA", "DB_CONNECTION_TIMEOUT",
        "BOUNDARY_SOURCE", "COUNTRY_BOUNDARY_SOURCE", "BOUNDARY_ID_PROPERTY",
        "BOUNDARY_NAME_PROPERTIES", "BOUNDARY_FAIL_OPEN", "BOUNDARY_FETCH_TIMEOUT_SECONDS",
        "ACCESS_STORAGE_BACKEND", "ACCESS_GRANT_ADMIN_ROLES",
        "ACCESS_RESOLVER_CACHE_TTL_SECONDS", "ACCESS_DEFAULT_LEVEL", "REGION_CATALOG_SOURCE",
        "RECONCILIATION_ENABLED", "RECONCILIATION_INTERVAL_SECONDS",
        "RECONCILIATION_SHUTDOWN_TIMEOUT_SECONDS",
        "POLLER_INTERVAL_SECONDS", "POLLER_INITIAL_DELAY_SECONDS", "POLLER_TIMEOUT_SECONDS",
        "ENVIRONMENT", "DEBUG_MODE", "LOG_LEVEL",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
