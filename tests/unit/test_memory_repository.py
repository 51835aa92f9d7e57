"""
In-memory grant store tests.

Covers grant creation rules, idempotent revocation, status listing and
the current-access mirror purge.
"""

from datetime import datetime, timedelta

import pytest

from core.models import AccessLevel, AccessSource, GrantStatus
from exceptions import ContractViolationError, NotFoundError, ValidationError
from tests.factories.model_factories import make_user_id


def _create(repo, clock, user_id=None, region_id="IN-GJ", lifetime=timedelta(hours=2)):
    return repo.create_temporary_grant(
        user_id=user_id or make_user_id(),
        region_id=region_id,
        access_level=AccessLevel.READ,
        expires_at=clock.now() + lifetime,
        reason="pipeline inspection",
        granted_by="admin-1",
    )


class TestCreateTemporaryGrant:

    def test_creates_grant_and_mirror_row(self, grant_repo, clock):
        grant = _create(grant_repo, clock)
        assert grant.granted_at == clock.now()
        assert grant_repo.get_temporary_grant(grant.grant_id) == grant

        rows = grant_repo.list_current_access(grant.user_id)
        assert [(r.source, r.grant_id) for r in rows] == [(AccessSource.TEMPORARY, grant.grant_id)]

    @pytest.mark.parametrize("lifetime", [timedelta(0), timedelta(seconds=-1), timedelta(days=-3)])
    def test_expiry_must_be_in_future(self, grant_repo, clock, lifetime):
        with pytest.raises(ValidationError) as exc_info:
            _create(grant_repo, clock, lifetime=lifetime)
        assert exc_info.value.field == "expires_at"

    def test_naive_expiry_is_contract_violation(self, grant_repo):
        with pytest.raises(ContractViolationError):
            grant_repo.create_temporary_grant("u1", "IN-GJ", AccessLevel.READ,
                                              datetime(2099, 1, 1), "r", "admin-1")

    def test_duplicate_active_grant_rejected(self, grant_repo, clock):
        user_id = make_user_id()
        _create(grant_repo, clock, user_id=user_id)
        with pytest.raises(ValidationError) as exc_info:
            _create(grant_repo, clock, user_id=user_id)
        assert exc_info.value.field == "region_id"

    def test_same_user_other_region_allowed(self, grant_repo, clock):
        user_id = make_user_id()
        _create(grant_repo, clock, user_id=user_id, region_id="IN-GJ")
        _create(grant_repo, clock, user_id=user_id, region_id="IN-KL")
        assert len(grant_repo.list_valid_grants(user_id, clock.now())) == 2

    def test_regrant_after_revoke_or_expiry(self, grant_repo, clock):
        user_id = make_user_id()
        first = _create(grant_repo, clock, user_id=user_id, lifetime=timedelta(minutes=10))
        grant_repo.revoke_temporary_grant(first.grant_id, revoked_by="admin-1")
        second = _create(grant_repo, clock, user_id=user_id, lifetime=timedelta(minutes=10))

        clock.advance(minutes=10)
        third = _create(grant_repo, clock, user_id=user_id)
        assert len({first.grant_id, second.grant_id, third.grant_id}) == 3


class TestRevokeTemporaryGrant:

    def test_revoke_sets_fields_and_drops_mirror_row(self, grant_repo, clock):
        grant = _create(grant_repo, clock)
        clock.advance(minutes=5)
        revoked = grant_repo.revoke_temporary_grant(grant.grant_id, revoked_by="admin-2")
        assert revoked.revoked_at == clock.now()
        assert revoked.revoked_by == "admin-2"
        assert grant_repo.list_current_access(grant.user_id) == []
        assert grant_repo.list_valid_grants(grant.user_id, clock.now()) == []

    def test_revoke_is_idempotent(self, grant_repo, clock):
        grant = _create(grant_repo, clock)
        first = grant_repo.revoke_temporary_grant(grant.grant_id, revoked_by="admin-2")
        clock.advance(minutes=5)
        second = grant_repo.revoke_temporary_grant(grant.grant_id, revoked_by="admin-3")
        assert second.revoked_at == first.revoked_at
        assert second.revoked_by == "admin-2"

    def test_unknown_grant(self, grant_repo):
        with pytest.raises(NotFoundError):
            grant_repo.revoke_temporary_grant("does-not-exist", revoked_by="admin-1")


class TestListing:

    def test_valid_grants_exclude_expiry_instant(self, grant_repo, clock):
        grant = _create(grant_repo, clock, lifetime=timedelta(minutes=30))
        assert grant_repo.list_valid_grants(grant.user_id, grant.expires_at - timedelta(seconds=1))
        assert grant_repo.list_valid_grants(grant.user_id, grant.expires_at) == []

    def test_status_filter(self, grant_repo, clock):
        user_id = make_user_id()
        active = _create(grant_repo, clock, user_id=user_id, region_id="IN-MH")
        revoked = _create(grant_repo, clock, user_id=user_id, region_id="IN-GJ")
        expired = _create(grant_repo, clock, user_id=user_id, region_id="IN-KL",
                          lifetime=timedelta(minutes=1))
        grant_repo.revoke_temporary_grant(revoked.grant_id, revoked_by="admin-1")
        clock.advance(minutes=2)
        now = clock.now()

        def ids(status):
            return [g.grant_id for g in grant_repo.list_grants(now, user_id=user_id, status=status)]

        assert ids(GrantStatus.ACTIVE) == [active.grant_id]
        assert ids(GrantStatus.REVOKED) == [revoked.grant_id]
        assert ids(GrantStatus.EXPIRED) == [expired.grant_id]
        assert len(ids(None)) == 3

    def test_listing_newest_first_and_user_filter(self, grant_repo, clock):
        older = _create(grant_repo, clock)
        clock.advance(seconds=30)
        newer = _create(grant_repo, clock)
        listed = [g.grant_id for g in grant_repo.list_grants(clock.now())]
        assert listed == [newer.grant_id, older.grant_id]
        assert [g.grant_id for g in grant_repo.list_grants(clock.now(), user_id=older.user_id)] == [older.grant_id]


class TestPermanentAssignments:

    def test_assign_is_upsert_keeping_original_time(self, grant_repo, clock):
        first = grant_repo.assign_region("u1", "IN-MH", AccessLevel.READ, assigned_by="admin-1")
        clock.advance(hours=1)
        second = grant_repo.assign_region("u1", "IN-MH", AccessLevel.WRITE, assigned_by="admin-2")
        assert second.assigned_at == first.assigned_at
        assert second.access_level == AccessLevel.WRITE
        assert len(grant_repo.list_permanent_assignments("u1")) == 1
        assert len(grant_repo.list_current_access("u1")) == 1

    def test_unassign(self, grant_repo):
        grant_repo.assign_region("u1", "IN-MH", AccessLevel.READ, assigned_by=None)
        assert grant_repo.unassign_region("u1", "IN-MH") is True
        assert grant_repo.unassign_region("u1", "IN-MH") is False
        assert grant_repo.list_current_access("u1") == []


class TestPurge:

    def test_purges_only_expired_temporary_rows(self, grant_repo, clock):
        user_id = make_user_id()
        grant_repo.assign_region(user_id, "IN-MH", AccessLevel.READ, assigned_by="admin-1")
        short = _create(grant_repo, clock, user_id=user_id, region_id="IN-GJ",
                        lifetime=timedelta(minutes=5))
        long = _create(grant_repo, clock, user_id=user_id, region_id="IN-KL",
                       lifetime=timedelta(days=1))

        assert grant_repo.list_purgeable_grant_ids(clock.now()) == []
        clock.advance(minutes=5)
        assert grant_repo.list_purgeable_grant_ids(clock.now()) == [short.grant_id]

        assert grant_repo.purge_expired(clock.now()) == 1
        remaining = {(r.source, r.grant_id) for r in grant_repo.list_current_access(user_id)}
        assert remaining == {(AccessSource.PERMANENT, None), (AccessSource.TEMPORARY, long.grant_id)}

    def test_purge_is_idempotent(self, grant_repo, clock):
        _create(grant_repo, clock, lifetime=timedelta(minutes=1))
        clock.advance(minutes=1)
        assert grant_repo.purge_expired(clock.now()) == 1
        assert grant_repo.purge_expired(clock.now()) == 0
        assert grant_repo.list_purgeable_grant_ids(clock.now()) == []

    def test_purge_keeps_grant_history(self, grant_repo, clock):
        grant = _create(grant_repo, clock, lifetime=timedelta(minutes=1))
        clock.advance(minutes=1)
        grant_repo.purge_expired(clock.now())
        assert grant_repo.get_temporary_grant(grant.grant_id) is not None
