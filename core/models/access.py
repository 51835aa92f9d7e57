"""
Access Models.

Derived, never-persisted values produced by the resolver and the
enforcement gate.

Exports:
    TimeRemaining: Countdown to a grant's expiry
    EffectiveRegion: One entry of a user's effective access set
    CallerIdentity: Authenticated caller forwarded by the identity layer
    AuthorizationDecision: Enforcement gate outcome
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .enums import AccessLevel
from .region import Region


class TimeRemaining(BaseModel):
    """
    Time left before a temporary grant expires.

    display examples: "2d 4h 10m", "3h 5m 9s", "Just now", "Expired".
    Seconds are shown only when less than a day remains.
    """

    expired: bool
    display: str
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    total_seconds: int = 0


class EffectiveRegion(BaseModel):
    """
    A region in a user's effective access set at a given instant.

    Permanent entries have no expiry, countdown or grant id.
    """

    region: Region
    access_level: AccessLevel
    is_temporary: bool
    expires_at: Optional[datetime] = None
    time_remaining: Optional[TimeRemaining] = None
    grant_id: Optional[str] = None

    @property
    def region_id(self) -> str:
        return self.region.region_id

    @field_serializer('expires_at')
    @classmethod
    def serialize_datetime(cls, v: Optional[datetime]) -> Optional[str]:
        return v.isoformat() if v else None


class CallerIdentity(BaseModel):
    """Caller as forwarded by the upstream identity gateway."""

    user_id: str = Field(..., min_length=1)
    role: Optional[str] = None


class AuthorizationDecision(BaseModel):
    """
    Enforcement gate outcome.

    A denial is a normal value, not an exception. fail_open marks an
    allow that was granted only because boundary data was unavailable.
    """

    allowed: bool
    reason: str
    region_id: Optional[str] = None
    region_name: Optional[str] = None
    fail_open: bool = False

    @classmethod
    def allow(cls, reason: str = "authorized", region: Optional[Region] = None,
              fail_open: bool = False) -> "AuthorizationDecision":
        return cls(
            allowed=True,
            reason=reason,
            region_id=region.region_id if region else None,
            region_name=region.name if region else None,
            fail_open=fail_open,
        )

    @classmethod
    def deny(cls, reason: str, region: Optional[Region] = None) -> "AuthorizationDecision":
        return cls(
            allowed=False,
            reason=reason,
            region_id=region.region_id if region else None,
            region_name=region.name if region else None,
        )
