# ============================================================================
# REPOSITORY FACTORY
# ============================================================================
# STATUS: Infrastructure - Central factory for repository instances
# PURPOSE: Select the grant store backend from configuration
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Repository Factory - Central Creation Point.

Single point of repository instantiation. ACCESS_STORAGE_BACKEND picks
between PostgreSQL and the in-memory store.

Exports:
    RepositoryFactory: Static factory methods
"""

from typing import Dict, Any, Optional

from config import AppConfig, get_config
from core.clock import Clock, SystemClock
from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType
from .interface_repository import IGrantRepository, IRegionRepository
from .memory_repository import (
    InMemoryGrantRepository,
    InMemoryRegionRepository,
    load_region_catalog,
)

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "RepositoryFactory")


class RepositoryFactory:
    """
    Factory for creating repository instances.

    Example:
        repos = RepositoryFactory.create_repositories(config, clock)
        grant_repo = repos['grant_repo']
        region_repo = repos['region_repo']
    """

    @staticmethod
    def create_repositories(
        config: Optional[AppConfig] = None,
        clock: Optional[Clock] = None,
    ) -> Dict[str, Any]:
        """
        Create the grant store and region catalogue for the configured backend.

        Returns:
            Dictionary with grant_repo and region_repo
        """
        config = config or get_config()
        clock = clock or SystemClock()
        backend = config.access.storage_backend

        logger.info(f"🏭 Creating repositories for backend: {backend}")

        if backend == "postgres":
            grant_repo = RepositoryFactory.create_grant_repository(config, clock)
            region_repo = RepositoryFactory.create_region_repository(config)
        elif backend == "memory":
            grant_repo = InMemoryGrantRepository(clock=clock)
            region_repo = InMemoryRegionRepository()
        else:
            raise ConfigurationError(f"Unknown storage backend: {backend}")

        if config.access.region_catalog_source:
            regions = load_region_catalog(config.access.region_catalog_source)
            for region in regions:
                region_repo.upsert_region(region)
            logger.info(f"📦 Seeded {len(regions)} regions from {config.access.region_catalog_source}")

        logger.info("✅ Repositories created successfully")
        return {
            'grant_repo': grant_repo,
            'region_repo': region_repo,
        }

    @staticmethod
    def create_grant_repository(config: AppConfig, clock: Clock) -> IGrantRepository:
        """Create a PostgreSQL grant repository."""
        from .grant_repository import PostgreSQLGrantRepository

        if config.database is None:
            raise ConfigurationError("PostgreSQL backend selected but database is not configured")
        return PostgreSQLGrantRepository(clock=clock, config=config.database)

    @staticmethod
    def create_region_repository(config: AppConfig) -> IRegionRepository:
        """Create a PostgreSQL region repository."""
        from .region_repository import PostgreSQLRegionRepository

        if config.database is None:
            raise ConfigurationError("PostgreSQL backend selected but database is not configured")
        return PostgreSQLRegionRepository(config=config.database)
