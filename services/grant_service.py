"""
Grant Service.

Request-level orchestration for grant management: role checks, region
existence checks, delegation to the grant store and resolver cache
invalidation for the affected user.

Exports:
    GrantService: Grant and assignment management
    GrantView: Grant with derived status and countdown for listings
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from config import AccessConfig
from core.clock import Clock, SystemClock
from core.logic.time_remaining import calculate_time_remaining
from core.models import (
    AccessLevel,
    CallerIdentity,
    GrantStatus,
    PermanentAssignment,
    Region,
    TemporaryGrant,
    TimeRemaining,
)
from exceptions import NotFoundError, PermissionDeniedError, ValidationError
from infrastructure.interface_repository import IGrantRepository, IRegionRepository
from util_logger import LoggerFactory, ComponentType
from .grant_resolver import GrantResolver

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "GrantService")


class GrantView(BaseModel):
    """A grant as shown in listings: record plus derived status and countdown."""

    grant: TemporaryGrant
    status: GrantStatus
    time_remaining: TimeRemaining
    region_name: Optional[str] = None


class GrantService:
    """
    Grant and assignment management.

    Args:
        grant_repo: Grant store
        region_repo: Region catalogue
        resolver: Resolver whose cache is invalidated after each change
        access_config: Admin roles and default access level
        clock: Authoritative clock
    """

    def __init__(self, grant_repo: IGrantRepository, region_repo: IRegionRepository,
                 resolver: GrantResolver, access_config: AccessConfig,
                 clock: Optional[Clock] = None):
        self.grant_repo = grant_repo
        self.region_repo = region_repo
        self.resolver = resolver
        self.access_config = access_config
        self.clock = clock or SystemClock()

    # ========================================================================
    # CHECKS
    # ========================================================================

    def require_grant_admin(self, caller: CallerIdentity) -> None:
        """
        Raises:
            PermissionDeniedError: Caller role is not a grant-admin role
        """
        if not self.access_config.is_grant_admin(caller.role):
            logger.warning(f"Grant management denied for {caller.user_id} (role={caller.role!r})")
            raise PermissionDeniedError("Only admins and managers can manage region grants")

    def require_active_region(self, region_id: str) -> Region:
        """
        Raises:
            NotFoundError: Region unknown or inactive
        """
        region = self.region_repo.get_region(region_id)
        if region is None or not region.is_active:
            raise NotFoundError(f"Region {region_id} not found or inactive", field="region_id")
        return region

    def _resolve_level(self, access_level: Optional[str]) -> AccessLevel:
        if access_level is None or access_level == "":
            return AccessLevel(self.access_config.default_access_level)
        try:
            return AccessLevel(str(access_level).lower())
        except ValueError:
            raise ValidationError(
                f"access_level must be one of read, write, admin (got {access_level!r})",
                field="access_level"
            )

    # ========================================================================
    # TEMPORARY GRANTS
    # ========================================================================

    def grant_temporary_access(
        self,
        caller: CallerIdentity,
        user_id: str,
        region_id: str,
        expires_at: datetime,
        reason: str,
        access_level: Optional[str] = None,
    ) -> TemporaryGrant:
        """
        Issue a temporary grant.

        Raises:
            PermissionDeniedError: Caller is not a grant admin
            ValidationError: Missing fields, expiry not in the future, duplicate grant
            NotFoundError: Region unknown or inactive
        """
        self.require_grant_admin(caller)
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required", field="user_id")
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        level = self._resolve_level(access_level)
        self.require_active_region(region_id)

        grant = self.grant_repo.create_temporary_grant(
            user_id=user_id.strip(),
            region_id=region_id,
            access_level=level,
            expires_at=expires_at,
            reason=reason.strip(),
            granted_by=caller.user_id,
        )
        self.resolver.invalidate(grant.user_id)
        logger.info(
            f"Temporary access granted: {grant.user_id} -> {region_id} until "
            f"{grant.expires_at.isoformat()} by {caller.user_id}"
        )
        return grant

    def revoke_temporary_access(self, caller: CallerIdentity, grant_id: str) -> TemporaryGrant:
        """
        Revoke a grant. Already-revoked grants return unchanged.

        Raises:
            PermissionDeniedError: Caller is not a grant admin
            NotFoundError: Grant unknown
        """
        self.require_grant_admin(caller)
        grant = self.grant_repo.revoke_temporary_grant(grant_id, revoked_by=caller.user_id)
        self.resolver.invalidate(grant.user_id)
        logger.info(f"Temporary access revoked: {grant_id} by {caller.user_id}")
        return grant

    def list_grants(
        self,
        caller: CallerIdentity,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[GrantView]:
        """Admin listing with derived status and countdown."""
        self.require_grant_admin(caller)
        status_filter = None
        if status:
            try:
                status_filter = GrantStatus(status.lower())
            except ValueError:
                raise ValidationError(
                    f"status must be one of active, revoked, expired (got {status!r})",
                    field="status"
                )
        now = self.clock.now()
        grants = self.grant_repo.list_grants(as_of=now, user_id=user_id, status=status_filter)
        return [self.view(g, now) for g in grants]

    def my_active_grants(self, caller: CallerIdentity) -> List[GrantView]:
        """The caller's own currently valid grants."""
        now = self.clock.now()
        grants = self.grant_repo.list_valid_grants(caller.user_id, now)
        return [self.view(g, now) for g in grants]

    def view(self, grant: TemporaryGrant, now: Optional[datetime] = None) -> GrantView:
        """Attach derived status, countdown and region name to a grant."""
        now = now or self.clock.now()
        region = self.region_repo.get_region(grant.region_id)
        return GrantView(
            grant=grant,
            status=grant.status_at(now),
            time_remaining=calculate_time_remaining(grant.expires_at, now),
            region_name=region.name if region else None,
        )

    # ========================================================================
    # PERMANENT ASSIGNMENTS
    # ========================================================================

    def list_assignments(self, caller: CallerIdentity, user_id: str) -> List[PermanentAssignment]:
        if caller.user_id != user_id:
            self.require_grant_admin(caller)
        return self.grant_repo.list_permanent_assignments(user_id)

    def assign_region(
        self,
        caller: CallerIdentity,
        user_id: str,
        region_id: str,
        access_level: Optional[str] = None,
    ) -> PermanentAssignment:
        self.require_grant_admin(caller)
        level = self._resolve_level(access_level)
        self.require_active_region(region_id)
        assignment = self.grant_repo.assign_region(user_id, region_id, level, assigned_by=caller.user_id)
        self.resolver.invalidate(user_id)
        return assignment

    def unassign_region(self, caller: CallerIdentity, user_id: str, region_id: str) -> None:
        """
        Raises:
            NotFoundError: No such assignment
        """
        self.require_grant_admin(caller)
        if not self.grant_repo.unassign_region(user_id, region_id):
            raise NotFoundError(f"User {user_id} has no assignment for region {region_id}",
                                field="region_id")
        self.resolver.invalidate(user_id)
