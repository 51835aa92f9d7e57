"""
Grant Resolver.

Computes a user's Effective Access Set: the union of permanent assignments
and temporary grants valid at the current instant. Validity is evaluated
from stored timestamps at read time, so correctness never depends on the
reconciliation loop having run.

Caching:
    cached_effective_regions() keeps one entry per user for at most
    cache_ttl_seconds. Temporary entries whose expiry has passed are dropped
    on every read, so a cached entry never outlives its grant.

Exports:
    GrantResolver: Effective access computation with a per-user cache
"""

import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from core.clock import Clock, SystemClock
from core.logic.time_remaining import calculate_time_remaining
from core.models import EffectiveRegion, Region
from infrastructure.interface_repository import IGrantRepository, IRegionRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "GrantResolver")


class GrantResolver:
    """
    Effective region resolution.

    A region held both permanently and temporarily appears once, as the
    permanent entry. Regions unknown to the catalogue or inactive are omitted.
    """

    def __init__(self, grant_repo: IGrantRepository, region_repo: IRegionRepository,
                 clock: Optional[Clock] = None, cache_ttl_seconds: int = 15):
        self.grant_repo = grant_repo
        self.region_repo = region_repo
        self.clock = clock or SystemClock()
        self.cache_ttl = timedelta(seconds=cache_ttl_seconds)

        self._cache_lock = threading.Lock()
        self._cache: Dict[str, Tuple[datetime, List[EffectiveRegion]]] = {}

    def effective_regions(self, user_id: str, at: Optional[datetime] = None) -> List[EffectiveRegion]:
        """
        Effective regions for a user at `at` (default: now), sorted by region name.
        """
        now = at or self.clock.now()
        region_cache: Dict[str, Optional[Region]] = {}

        def lookup(region_id: str) -> Optional[Region]:
            if region_id not in region_cache:
                region = self.region_repo.get_region(region_id)
                region_cache[region_id] = region if region and region.is_active else None
            return region_cache[region_id]

        entries: Dict[str, EffectiveRegion] = {}

        for assignment in self.grant_repo.list_permanent_assignments(user_id):
            region = lookup(assignment.region_id)
            if region is None:
                continue
            entries[region.region_id] = EffectiveRegion(
                region=region,
                access_level=assignment.access_level,
                is_temporary=False,
            )

        for grant in self.grant_repo.list_valid_grants(user_id, now):
            if grant.region_id in entries:
                existing = entries[grant.region_id]
                # Permanent wins; among temporaries keep the later expiry
                if not existing.is_temporary or existing.expires_at >= grant.expires_at:
                    continue
            region = lookup(grant.region_id)
            if region is None:
                continue
            entries[region.region_id] = EffectiveRegion(
                region=region,
                access_level=grant.access_level,
                is_temporary=True,
                expires_at=grant.expires_at,
                time_remaining=calculate_time_remaining(grant.expires_at, now),
                grant_id=grant.grant_id,
            )

        result = sorted(entries.values(), key=lambda e: (e.region.name, e.region.region_id))
        logger.debug(f"Resolved {len(result)} effective regions for {user_id}")
        return result

    def cached_effective_regions(self, user_id: str) -> List[EffectiveRegion]:
        """
        Effective regions served from the per-user cache when fresh.

        Expired temporary entries are filtered against the clock on every
        read and countdowns are recomputed.
        """
        now = self.clock.now()

        if self.cache_ttl.total_seconds() > 0:
            with self._cache_lock:
                cached = self._cache.get(user_id)
            if cached is not None:
                computed_at, entries = cached
                if now - computed_at < self.cache_ttl:
                    return self._refresh_entries(entries, now)

        entries = self.effective_regions(user_id, at=now)
        if self.cache_ttl.total_seconds() > 0:
            with self._cache_lock:
                self._evict_stale(now)
                self._cache[user_id] = (now, entries)
        return entries

    def cache_size(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def _evict_stale(self, now: datetime) -> None:
        """Drop entries past their TTL. Caller holds _cache_lock."""
        stale = [uid for uid, (computed_at, _) in self._cache.items()
                 if now - computed_at >= self.cache_ttl]
        for uid in stale:
            del self._cache[uid]

    def invalidate(self, user_id: Optional[str] = None) -> None:
        """Drop one user's cache entry, or all entries."""
        with self._cache_lock:
            if user_id is None:
                self._cache.clear()
            else:
                self._cache.pop(user_id, None)

    @staticmethod
    def _refresh_entries(entries: List[EffectiveRegion], now: datetime) -> List[EffectiveRegion]:
        fresh = []
        for entry in entries:
            if entry.is_temporary:
                if entry.expires_at <= now:
                    continue
                entry = entry.model_copy(update={
                    "time_remaining": calculate_time_remaining(entry.expires_at, now)
                })
            fresh.append(entry)
        return fresh
