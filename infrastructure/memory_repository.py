"""
In-Memory Repositories.

Thread-safe process-local implementations of the region catalogue and the
grant store, for standalone runs (ACCESS_STORAGE_BACKEND=memory) and tests.
Semantics match the PostgreSQL repositories, including the mirror table.

Exports:
    InMemoryRegionRepository: IRegionRepository backed by a dict
    InMemoryGrantRepository: IGrantRepository backed by dicts under a lock
    load_region_catalog: Read a JSON region list from disk
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from core.clock import Clock, SystemClock, ensure_aware_utc
from core.models import (
    AccessLevel,
    AccessSource,
    CurrentAccessRow,
    GrantStatus,
    PermanentAssignment,
    Region,
    TemporaryGrant,
)
from exceptions import ConfigurationError, NotFoundError, ValidationError
from .base import BaseRepository
from .interface_repository import IGrantRepository, IRegionRepository


def load_region_catalog(path: str) -> List[Region]:
    """
    Load a region catalogue file: a JSON list of region objects.

    Raises:
        ConfigurationError: File missing or malformed
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read region catalogue {path}: {e}") from e

    if not isinstance(payload, list):
        raise ConfigurationError(f"Region catalogue {path} must be a JSON list")
    return [Region(**item) for item in payload]


# ============================================================================
# REGION CATALOGUE
# ============================================================================

class InMemoryRegionRepository(BaseRepository, IRegionRepository):
    """Region catalogue held in a dict keyed by region_id."""

    def __init__(self, regions: Optional[Iterable[Region]] = None):
        super().__init__()
        self._lock = threading.Lock()
        self._regions: Dict[str, Region] = {}
        for region in regions or []:
            self._regions[region.region_id] = region

    def get_region(self, region_id: str) -> Optional[Region]:
        with self._lock:
            return self._regions.get(region_id)

    def list_regions(self, active_only: bool = True) -> List[Region]:
        with self._lock:
            regions = list(self._regions.values())
        if active_only:
            regions = [r for r in regions if r.is_active]
        return sorted(regions, key=lambda r: (r.name, r.region_id))

    def upsert_region(self, region: Region) -> Region:
        with self._lock:
            self._regions[region.region_id] = region
        self._log_operation_result(True, "Region upserted", region.region_id)
        return region


# ============================================================================
# GRANT STORE
# ============================================================================

class InMemoryGrantRepository(BaseRepository, IGrantRepository):
    """
    Grant store held in process memory.

    One re-entrant lock guards every table, so each operation is atomic
    with respect to the others, as a single SQL transaction would be.
    """

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__()
        self.clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._grants: Dict[str, TemporaryGrant] = {}
        self._assignments: Dict[Tuple[str, str], PermanentAssignment] = {}
        self._mirror: List[CurrentAccessRow] = []

    # ========================================================================
    # TEMPORARY GRANTS
    # ========================================================================

    def create_temporary_grant(
        self,
        user_id: str,
        region_id: str,
        access_level: AccessLevel,
        expires_at: datetime,
        reason: str,
        granted_by: str,
    ) -> TemporaryGrant:
        with self._error_context("temporary grant creation", f"{user_id}/{region_id}"):
            with self._lock:
                now = self.clock.now()
                expires_at = ensure_aware_utc(expires_at, "expires_at")
                if expires_at <= now:
                    raise ValidationError("expires_at must be in the future", field="expires_at")

                for existing in self._grants.values():
                    if (existing.user_id == user_id and existing.region_id == region_id
                            and existing.is_valid(now)):
                        raise ValidationError(
                            "User already has an active temporary grant for this region",
                            field="region_id"
                        )

                grant = TemporaryGrant(
                    user_id=user_id,
                    region_id=region_id,
                    access_level=AccessLevel(access_level),
                    granted_by=granted_by,
                    granted_at=now,
                    expires_at=expires_at,
                    reason=reason or "",
                )
                self._grants[grant.grant_id] = grant
                self._mirror.append(CurrentAccessRow(
                    user_id=user_id,
                    region_id=region_id,
                    source=AccessSource.TEMPORARY,
                    grant_id=grant.grant_id,
                    access_level=grant.access_level,
                    added_at=now,
                ))

            self._log_operation_result(True, "Temporary grant created", grant.grant_id, {
                "user_id": user_id, "region_id": region_id,
                "expires_at": grant.expires_at.isoformat(),
            })
            return grant

    def revoke_temporary_grant(self, grant_id: str, revoked_by: str) -> TemporaryGrant:
        with self._error_context("temporary grant revocation", grant_id):
            with self._lock:
                grant = self._grants.get(grant_id)
                if grant is None:
                    raise NotFoundError(f"Grant {grant_id} not found", field="grant_id")
                if grant.revoked_at is not None:
                    self.logger.info(f"Grant {grant_id} already revoked, returning unchanged")
                    return grant

                revoked = grant.model_copy(update={
                    "revoked_at": self.clock.now(),
                    "revoked_by": revoked_by,
                })
                self._grants[grant_id] = revoked
                self._mirror = [
                    row for row in self._mirror
                    if not (row.source == AccessSource.TEMPORARY and row.grant_id == grant_id)
                ]

            self._log_operation_result(True, "Temporary grant revoked", grant_id, {"revoked_by": revoked_by})
            return revoked

    def get_temporary_grant(self, grant_id: str) -> Optional[TemporaryGrant]:
        with self._lock:
            return self._grants.get(grant_id)

    def list_valid_grants(self, user_id: str, as_of: datetime) -> List[TemporaryGrant]:
        as_of = ensure_aware_utc(as_of, "as_of")
        with self._lock:
            grants = [
                g for g in self._grants.values()
                if g.user_id == user_id and g.is_valid(as_of)
            ]
        return sorted(grants, key=lambda g: (g.expires_at, g.grant_id))

    def list_grants(
        self,
        as_of: datetime,
        user_id: Optional[str] = None,
        status: Optional[GrantStatus] = None,
    ) -> List[TemporaryGrant]:
        as_of = ensure_aware_utc(as_of, "as_of")
        with self._lock:
            grants = list(self._grants.values())
        if user_id:
            grants = [g for g in grants if g.user_id == user_id]
        if status is not None:
            grants = [g for g in grants if g.status_at(as_of) == status]
        # Newest first, ties by id
        grants.sort(key=lambda g: g.grant_id)
        grants.sort(key=lambda g: g.granted_at, reverse=True)
        return grants

    # ========================================================================
    # PERMANENT ASSIGNMENTS
    # ========================================================================

    def list_permanent_assignments(self, user_id: str) -> List[PermanentAssignment]:
        with self._lock:
            assignments = [a for (uid, _), a in self._assignments.items() if uid == user_id]
        return sorted(assignments, key=lambda a: a.region_id)

    def assign_region(
        self,
        user_id: str,
        region_id: str,
        access_level: AccessLevel,
        assigned_by: Optional[str],
    ) -> PermanentAssignment:
        with self._lock:
            now = self.clock.now()
            level = AccessLevel(access_level)
            existing = self._assignments.get((user_id, region_id))
            assignment = PermanentAssignment(
                user_id=user_id,
                region_id=region_id,
                access_level=level,
                assigned_by=assigned_by,
                assigned_at=existing.assigned_at if existing else now,
            )
            self._assignments[(user_id, region_id)] = assignment

            self._mirror = [
                row for row in self._mirror
                if not (row.source == AccessSource.PERMANENT
                        and row.user_id == user_id and row.region_id == region_id)
            ]
            self._mirror.append(CurrentAccessRow(
                user_id=user_id,
                region_id=region_id,
                source=AccessSource.PERMANENT,
                access_level=level,
                added_at=now,
            ))

        self._log_operation_result(True, "Region assigned", f"{user_id}/{region_id}")
        return assignment

    def unassign_region(self, user_id: str, region_id: str) -> bool:
        with self._lock:
            removed = self._assignments.pop((user_id, region_id), None) is not None
            self._mirror = [
                row for row in self._mirror
                if not (row.source == AccessSource.PERMANENT
                        and row.user_id == user_id and row.region_id == region_id)
            ]
        self._log_operation_result(removed, "Region unassigned", f"{user_id}/{region_id}")
        return removed

    # ========================================================================
    # CURRENT-ACCESS MIRROR
    # ========================================================================

    def list_current_access(self, user_id: str) -> List[CurrentAccessRow]:
        with self._lock:
            rows = [row for row in self._mirror if row.user_id == user_id]
        return sorted(rows, key=lambda r: (r.region_id, r.source.value))

    def _is_purgeable(self, row: CurrentAccessRow, as_of: datetime) -> bool:
        if row.source != AccessSource.TEMPORARY:
            return False
        grant = self._grants.get(row.grant_id)
        return grant is not None and not grant.is_valid(as_of)

    def list_purgeable_grant_ids(self, as_of: datetime) -> List[str]:
        as_of = ensure_aware_utc(as_of, "as_of")
        with self._lock:
            ids = {row.grant_id for row in self._mirror if self._is_purgeable(row, as_of)}
        return sorted(ids)

    def purge_expired(self, as_of: datetime) -> int:
        as_of = ensure_aware_utc(as_of, "as_of")
        with self._error_context("expired grant purge"):
            with self._lock:
                kept = [row for row in self._mirror if not self._is_purgeable(row, as_of)]
                purged = len(self._mirror) - len(kept)
                self._mirror = kept
            return purged
