"""
Enforcement Gate.

Synchronous allow/deny decision for region-scoped operations at a
coordinate. Evaluated in order:

    1. Boundary data unavailable: allow (fail-open) or deny, per config
    2. Outside the country outline: deny
    3. No region contains the point: deny
    4. Region not in the caller's effective access set: deny
    5. Otherwise allow

A denial is a normal AuthorizationDecision, never an exception. The gate
has no side effects.

Exports:
    EnforcementGate: The decision point
    DenyReason: Reason strings for denials
"""

import math
from typing import Optional

from core.models import AuthorizationDecision, CallerIdentity
from exceptions import ValidationError
from util_logger import LoggerFactory, ComponentType
from .boundary_index import BoundaryIndex
from .grant_resolver import GrantResolver

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "EnforcementGate")


class DenyReason:
    BOUNDARY_UNAVAILABLE = "boundary data unavailable"
    OUTSIDE_COUNTRY = "outside country boundary"
    NO_MATCHING_REGION = "no matching region"
    NOT_AUTHORIZED = "region not authorized"


def validate_coordinates(lat: float, lng: float) -> None:
    """
    Raises:
        ValidationError: Non-finite or out-of-range coordinate
    """
    for name, value, limit in (("lat", lat, 90.0), ("lng", lng, 180.0)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{name} must be a number", field=name)
        if not math.isfinite(value) or not -limit <= value <= limit:
            raise ValidationError(f"{name} must be between {-limit:g} and {limit:g}", field=name)


class EnforcementGate:
    """
    Args:
        boundary_index: Containment service
        resolver: Effective access resolver (its cache is used)
        fail_open: Allow when boundary data is unavailable
    """

    def __init__(self, boundary_index: BoundaryIndex, resolver: GrantResolver,
                 fail_open: bool = True):
        self.boundary_index = boundary_index
        self.resolver = resolver
        self.fail_open = fail_open

    def authorize(self, user: CallerIdentity, lat: float, lng: float) -> AuthorizationDecision:
        """
        Decide whether `user` may act at (lat, lng).

        Raises:
            ValidationError: Malformed coordinates
        """
        validate_coordinates(lat, lng)

        if not self.boundary_index.ready():
            if self.fail_open:
                logger.debug(
                    f"[GATE] Boundary data unavailable - allowing {user.user_id} at "
                    f"({lat}, {lng}) fail-open"
                )
                return AuthorizationDecision.allow("boundary data unavailable (fail-open)",
                                                   fail_open=True)
            return self._deny(user, DenyReason.BOUNDARY_UNAVAILABLE, lat, lng)

        if not self.boundary_index.is_inside_country(lat, lng):
            return self._deny(user, DenyReason.OUTSIDE_COUNTRY, lat, lng)

        region = self.boundary_index.containing_region(lat, lng)
        if region is None:
            return self._deny(user, DenyReason.NO_MATCHING_REGION, lat, lng)

        effective = self.resolver.cached_effective_regions(user.user_id)
        if not any(entry.region_id == region.region_id for entry in effective):
            return self._deny(user, DenyReason.NOT_AUTHORIZED, lat, lng, region)

        logger.debug(f"[GATE] Allow {user.user_id} in {region.region_id}")
        return AuthorizationDecision.allow(region=region)

    def _deny(self, user: CallerIdentity, reason: str, lat: float, lng: float,
              region=None) -> AuthorizationDecision:
        logger.info(f"[GATE] Deny {user.user_id} at ({lat}, {lng}): {reason}")
        return AuthorizationDecision.deny(reason, region=region)
