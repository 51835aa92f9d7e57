"""
Repository Interfaces.

Abstract contracts for the region catalogue and the grant store.
Service code depends only on these; backends (PostgreSQL, in-memory)
are chosen by RepositoryFactory.

Exports:
    IRegionRepository: Region catalogue
    IGrantRepository: Permanent assignments, temporary grants, current-access mirror
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from core.models import (
    AccessLevel,
    CurrentAccessRow,
    GrantStatus,
    PermanentAssignment,
    Region,
    TemporaryGrant,
)


class IRegionRepository(ABC):
    """Region catalogue. Records are created by administrators, rarely mutated."""

    @abstractmethod
    def get_region(self, region_id: str) -> Optional[Region]:
        """Region by id, active or not. None when unknown."""
        pass

    @abstractmethod
    def list_regions(self, active_only: bool = True) -> List[Region]:
        """Catalogue in stable order (name, then id)."""
        pass

    @abstractmethod
    def upsert_region(self, region: Region) -> Region:
        pass


class IGrantRepository(ABC):
    """
    Durable store for PermanentAssignment and TemporaryGrant records.

    Every "as of" parameter comes from the authoritative clock. The store
    itself reads the same clock when validating a new grant's expiry.
    """

    # ------------------------------------------------------------------
    # Temporary grants
    # ------------------------------------------------------------------

    @abstractmethod
    def create_temporary_grant(
        self,
        user_id: str,
        region_id: str,
        access_level: AccessLevel,
        expires_at: datetime,
        reason: str,
        granted_by: str,
    ) -> TemporaryGrant:
        """
        Raises:
            ValidationError: expires_at <= now, or an active grant for the
                same user and region already exists
        """
        pass

    @abstractmethod
    def revoke_temporary_grant(self, grant_id: str, revoked_by: str) -> TemporaryGrant:
        """
        Revoke a grant. Revoking an already revoked grant returns it unchanged.

        Raises:
            NotFoundError: grant_id does not exist
        """
        pass

    @abstractmethod
    def get_temporary_grant(self, grant_id: str) -> Optional[TemporaryGrant]:
        pass

    @abstractmethod
    def list_valid_grants(self, user_id: str, as_of: datetime) -> List[TemporaryGrant]:
        """Grants with revoked_at unset and expires_at > as_of."""
        pass

    @abstractmethod
    def list_grants(
        self,
        as_of: datetime,
        user_id: Optional[str] = None,
        status: Optional[GrantStatus] = None,
    ) -> List[TemporaryGrant]:
        """Admin listing, newest first, optionally filtered by derived status."""
        pass

    # ------------------------------------------------------------------
    # Permanent assignments
    # ------------------------------------------------------------------

    @abstractmethod
    def list_permanent_assignments(self, user_id: str) -> List[PermanentAssignment]:
        pass

    @abstractmethod
    def assign_region(
        self,
        user_id: str,
        region_id: str,
        access_level: AccessLevel,
        assigned_by: Optional[str],
    ) -> PermanentAssignment:
        """Create or update the assignment for (user, region)."""
        pass

    @abstractmethod
    def unassign_region(self, user_id: str, region_id: str) -> bool:
        """True when an assignment existed and was removed."""
        pass

    # ------------------------------------------------------------------
    # Current-access mirror
    # ------------------------------------------------------------------

    @abstractmethod
    def list_current_access(self, user_id: str) -> List[CurrentAccessRow]:
        pass

    @abstractmethod
    def list_purgeable_grant_ids(self, as_of: datetime) -> List[str]:
        """Grant ids whose mirror rows purge_expired(as_of) would delete."""
        pass

    @abstractmethod
    def purge_expired(self, as_of: datetime) -> int:
        """
        Delete mirror rows whose backing grant is revoked or expired as of
        as_of. Returns the number of rows deleted; a repeat call returns 0.
        """
        pass
