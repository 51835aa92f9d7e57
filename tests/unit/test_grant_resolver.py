"""
Grant resolver tests - effective access set and per-user cache.
"""

from datetime import timedelta

from core.models import AccessLevel
from services import GrantResolver
from tests.factories.model_factories import make_user_id


def _grant(grant_repo, clock, user_id, region_id, lifetime=timedelta(hours=1),
           level=AccessLevel.READ):
    return grant_repo.create_temporary_grant(
        user_id=user_id, region_id=region_id, access_level=level,
        expires_at=clock.now() + lifetime, reason="cover shift", granted_by="admin-1",
    )


class TestEffectiveRegions:

    def test_union_sorted_by_name(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        grant_repo.assign_region(user_id, "IN-MH", AccessLevel.WRITE, assigned_by="admin-1")
        _grant(grant_repo, clock, user_id, "IN-KL")
        _grant(grant_repo, clock, user_id, "IN-GJ")

        entries = resolver.effective_regions(user_id)
        assert [e.region.name for e in entries] == ["Gujarat", "Kerala", "Maharashtra"]
        assert [e.is_temporary for e in entries] == [True, True, False]
        assert entries[2].access_level == AccessLevel.WRITE
        assert entries[2].expires_at is None and entries[2].time_remaining is None

    def test_permanent_wins_over_temporary(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        grant_repo.assign_region(user_id, "IN-GJ", AccessLevel.READ, assigned_by="admin-1")
        _grant(grant_repo, clock, user_id, "IN-GJ", level=AccessLevel.ADMIN)

        entries = resolver.effective_regions(user_id)
        assert len(entries) == 1
        assert entries[0].is_temporary is False
        assert entries[0].grant_id is None

    def test_countdown_uses_clock(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        grant = _grant(grant_repo, clock, user_id, "IN-GJ", lifetime=timedelta(hours=2))
        clock.advance(minutes=30)
        (entry,) = resolver.effective_regions(user_id)
        assert entry.grant_id == grant.grant_id
        assert entry.time_remaining.display == "1h 30m"

    def test_revoked_and_expired_grants_excluded(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        revoked = _grant(grant_repo, clock, user_id, "IN-GJ")
        _grant(grant_repo, clock, user_id, "IN-KL", lifetime=timedelta(minutes=10))
        grant_repo.revoke_temporary_grant(revoked.grant_id, revoked_by="admin-1")
        clock.advance(minutes=10)
        assert resolver.effective_regions(user_id) == []

    def test_unknown_and_inactive_regions_omitted(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        grant_repo.assign_region(user_id, "IN-LD", AccessLevel.READ, assigned_by="admin-1")
        grant_repo.assign_region(user_id, "XX-NOPE", AccessLevel.READ, assigned_by="admin-1")
        _grant(grant_repo, clock, user_id, "IN-KL")
        assert [e.region_id for e in resolver.effective_regions(user_id)] == ["IN-KL"]

    def test_explicit_instant(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        grant = _grant(grant_repo, clock, user_id, "IN-GJ")
        assert resolver.effective_regions(user_id, at=grant.expires_at) == []

    def test_access_set_never_grows_over_time(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        start = clock.now()
        grant_repo.assign_region(user_id, "IN-MH", AccessLevel.WRITE, assigned_by="admin-1")
        _grant(grant_repo, clock, user_id, "IN-GJ", lifetime=timedelta(minutes=2))
        _grant(grant_repo, clock, user_id, "IN-KL", lifetime=timedelta(hours=3))
        _grant(grant_repo, clock, user_id, "IN-MH", lifetime=timedelta(minutes=30))
        revoked = _grant(grant_repo, clock, user_id, "IN-LD", lifetime=timedelta(days=1))
        grant_repo.revoke_temporary_grant(revoked.grant_id, revoked_by="admin-1")

        offsets = [timedelta(0), timedelta(minutes=1), timedelta(minutes=2),
                   timedelta(minutes=45), timedelta(hours=3), timedelta(days=2)]
        sets = [{e.region.region_id for e in resolver.effective_regions(user_id, at=start + o)}
                for o in offsets]

        for earlier, later in zip(sets, sets[1:]):
            assert earlier >= later
        assert sets[0] == {"IN-GJ", "IN-KL", "IN-MH"}
        assert sets[-1] == {"IN-MH"}


class TestCache:

    def test_expired_temporary_dropped_before_ttl(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        _grant(grant_repo, clock, user_id, "IN-GJ", lifetime=timedelta(seconds=10))
        assert len(resolver.cached_effective_regions(user_id)) == 1

        clock.advance(seconds=11)
        assert resolver.cached_effective_regions(user_id) == []

    def test_cache_hit_refreshes_countdown(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        _grant(grant_repo, clock, user_id, "IN-GJ", lifetime=timedelta(minutes=5))
        resolver.cached_effective_regions(user_id)
        clock.advance(seconds=5)
        (entry,) = resolver.cached_effective_regions(user_id)
        assert entry.time_remaining.display == "4m 55s"

    def test_stale_until_ttl_or_invalidate(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        assert resolver.cached_effective_regions(user_id) == []
        _grant(grant_repo, clock, user_id, "IN-GJ")

        clock.advance(seconds=5)
        assert resolver.cached_effective_regions(user_id) == []

        resolver.invalidate(user_id)
        assert len(resolver.cached_effective_regions(user_id)) == 1

    def test_ttl_bounds_staleness(self, resolver, grant_repo, clock):
        user_id = make_user_id()
        resolver.cached_effective_regions(user_id)
        _grant(grant_repo, clock, user_id, "IN-GJ")
        clock.advance(seconds=15)
        assert len(resolver.cached_effective_regions(user_id)) == 1

    def test_invalidate_all(self, resolver, grant_repo, clock):
        users = [make_user_id(), make_user_id()]
        for user_id in users:
            resolver.cached_effective_regions(user_id)
            _grant(grant_repo, clock, user_id, "IN-KL")
        resolver.invalidate()
        assert all(len(resolver.cached_effective_regions(u)) == 1 for u in users)

    def test_zero_ttl_disables_cache(self, grant_repo, region_repo, clock):
        resolver = GrantResolver(grant_repo, region_repo, clock, cache_ttl_seconds=0)
        user_id = make_user_id()
        resolver.cached_effective_regions(user_id)
        _grant(grant_repo, clock, user_id, "IN-GJ")
        assert len(resolver.cached_effective_regions(user_id)) == 1

    def test_stale_entries_evicted_on_write(self, resolver, clock):
        first, second = make_user_id(), make_user_id()
        resolver.cached_effective_regions(first)
        assert resolver.cache_size() == 1

        clock.advance(seconds=20)
        resolver.cached_effective_regions(second)
        assert resolver.cache_size() == 1

        resolver.cached_effective_regions(first)
        assert resolver.cache_size() == 2
