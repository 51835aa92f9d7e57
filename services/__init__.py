"""
Service Layer - Access-Control Business Logic.

    boundary_index.py: Point-in-region containment (load/ready lifecycle)
    region_ingestion.py: Boundary feature to catalogue region mapping
    grant_resolver.py: Effective access set with per-user cache
    grant_service.py: Grant and assignment management
    reconciliation_service.py: Expired grant janitor and its worker
    enforcement_gate.py: Allow/deny decisions at a coordinate
    client_poller.py: Client-side region refresh loop

Services receive their repositories and clock explicitly; nothing here
reads global state at import time.
"""

from .boundary_index import BoundaryIndex, BoundaryState
from .grant_resolver import GrantResolver
from .grant_service import GrantService, GrantView
from .reconciliation_service import (
    ReconciliationRunResult,
    ReconciliationService,
    ReconciliationWorker,
)
from .enforcement_gate import DenyReason, EnforcementGate
from .client_poller import RegionAccessPoller

__all__ = [
    'BoundaryIndex',
    'BoundaryState',
    'GrantResolver',
    'GrantService',
    'GrantView',
    'ReconciliationRunResult',
    'ReconciliationService',
    'ReconciliationWorker',
    'DenyReason',
    'EnforcementGate',
    'RegionAccessPoller',
]
