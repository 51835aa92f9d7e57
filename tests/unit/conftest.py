"""
Unit test fixtures - clock, in-memory stores, a small catalogue.
"""

import pytest

from config import AccessConfig, BoundaryConfig
from infrastructure.memory_repository import InMemoryGrantRepository, InMemoryRegionRepository
from services import GrantResolver, GrantService
from core.models import CallerIdentity
from tests.factories.model_factories import ManualClock, make_region, make_user_id


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def catalogue():
    """Maharashtra, Gujarat, Kerala plus one inactive region."""
    return [
        make_region("IN-MH", "Maharashtra", "MH"),
        make_region("IN-GJ", "Gujarat", "GJ"),
        make_region("IN-KL", "Kerala", "KL"),
        make_region("IN-LD", "Lakshadweep", "LD", is_active=False),
    ]


@pytest.fixture
def region_repo(catalogue):
    return InMemoryRegionRepository(catalogue)


@pytest.fixture
def grant_repo(clock):
    return InMemoryGrantRepository(clock=clock)


@pytest.fixture
def resolver(grant_repo, region_repo, clock):
    return GrantResolver(grant_repo, region_repo, clock, cache_ttl_seconds=15)


@pytest.fixture
def access_config():
    return AccessConfig(storage_backend="memory")


@pytest.fixture
def grant_service(grant_repo, region_repo, resolver, access_config, clock):
    return GrantService(grant_repo, region_repo, resolver, access_config, clock)


@pytest.fixture
def boundary_config():
    return BoundaryConfig()


@pytest.fixture
def admin():
    return CallerIdentity(user_id=make_user_id("admin"), role="admin")


@pytest.fixture
def engineer():
    return CallerIdentity(user_id=make_user_id("engineer"), role="engineer")
