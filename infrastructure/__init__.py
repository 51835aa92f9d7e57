"""
Infrastructure Layer.

Repositories for the region catalogue and grant store, the boundary
dataset source and schema deployment.

PostgreSQL repositories import psycopg lazily through the factory, so the
in-memory backend runs without a database driver configured.

Exports:
    RepositoryFactory: Backend selection
    IGrantRepository, IRegionRepository: Repository interfaces
    InMemoryGrantRepository, InMemoryRegionRepository: In-memory backend
    BoundarySource: Boundary dataset fetcher
"""

from .interface_repository import IGrantRepository, IRegionRepository
from .memory_repository import InMemoryGrantRepository, InMemoryRegionRepository
from .boundary_source import BoundarySource
from .factory import RepositoryFactory

__all__ = [
    'RepositoryFactory',
    'IGrantRepository',
    'IRegionRepository',
    'InMemoryGrantRepository',
    'InMemoryRegionRepository',
    'BoundarySource',
]
