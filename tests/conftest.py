"""
Root conftest.py - sys.path, env vars, shared fixtures.

Sets up the test environment so all production code can be imported
without a database or a reachable boundary dataset.
"""

import os
import sys

import pytest

# Add project root to sys.path so 'core', 'services', 'config', etc. are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True, scope="session")
def set_minimal_env_vars():
    """
    Set minimal environment variables so get_config() succeeds.

    The in-memory backend is selected so nothing tries to reach PostgreSQL.
    """
    defaults = {
        "ACCESS_STORAGE_BACKEND": "memory",
        "RECONCILIATION_ENABLED": "false",
        "ENVIRONMENT": "dev",
        "BOUNDARY_SOURCE": os.path.join(PROJECT_ROOT, "data", "india_states.geojson"),
        "REGION_CATALOG_SOURCE": os.path.join(PROJECT_ROOT, "data", "regions.json"),
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from an unloaded config singleton."""
    from config import reset_config

    reset_config()
    yield
    reset_config()


@pytest.fixture
def project_root():
    return PROJECT_ROOT
