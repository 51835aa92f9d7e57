"""
Grant Models.

Pydantic models for the two kinds of region authorization and the
denormalised current-access mirror.

Validity of a temporary grant is always derived from the clock and is
never stored:

    is_valid(t) <=> revoked_at is None and expires_at > t

Exports:
    PermanentAssignment: Standing region authorization
    TemporaryGrant: Time-bounded region authorization
    CurrentAccessRow: Mirror row of "who can see what right now"
"""

from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from ..clock import ensure_aware_utc as _as_utc
from .enums import AccessLevel, AccessSource, GrantStatus


class PermanentAssignment(BaseModel):
    """
    Standing authorization for a user in a region.

    No expiry. Removed only by explicit unassignment.
    """

    user_id: str = Field(..., min_length=1)
    region_id: str = Field(..., min_length=1)
    access_level: AccessLevel = Field(default=AccessLevel.READ)
    assigned_by: Optional[str] = Field(default=None)
    assigned_at: datetime

    @field_validator('assigned_at')
    @classmethod
    def validate_assigned_at(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_serializer('assigned_at')
    @classmethod
    def serialize_datetime(cls, v: datetime) -> Optional[str]:
        return v.isoformat() if v else None


class TemporaryGrant(BaseModel):
    """
    Time-bounded authorization for a user in a region.

    Fields:
    - grant_id: Unique identifier (UUID)
    - user_id / region_id: Who and where
    - access_level: Permission level within the region
    - granted_by / granted_at: Issuer and issue time (authoritative clock)
    - expires_at: Strictly after granted_at
    - revoked_at / revoked_by: Set once on early revocation
    - reason: Free-text justification
    """

    grant_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = Field(..., min_length=1)
    region_id: str = Field(..., min_length=1)
    access_level: AccessLevel = Field(default=AccessLevel.READ)
    granted_by: str = Field(..., min_length=1)
    granted_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = Field(default=None)
    revoked_by: Optional[str] = Field(default=None)
    reason: str = Field(default="")

    @field_validator('granted_at', 'expires_at')
    @classmethod
    def validate_required_datetimes(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator('revoked_at')
    @classmethod
    def validate_revoked_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None

    @model_validator(mode='after')
    def validate_window(self) -> 'TemporaryGrant':
        if self.expires_at <= self.granted_at:
            raise ValueError("expires_at must be after granted_at")
        return self

    @field_serializer('granted_at', 'expires_at', 'revoked_at')
    @classmethod
    def serialize_datetime(cls, v: Optional[datetime]) -> Optional[str]:
        return v.isoformat() if v else None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_valid(self, at: datetime) -> bool:
        """True when not revoked and expiry is strictly after `at`."""
        return self.revoked_at is None and self.expires_at > _as_utc(at)

    def status_at(self, at: datetime) -> GrantStatus:
        """Derived status. Revocation wins over expiry."""
        if self.revoked_at is not None:
            return GrantStatus.REVOKED
        if self.expires_at <= _as_utc(at):
            return GrantStatus.EXPIRED
        return GrantStatus.ACTIVE


class CurrentAccessRow(BaseModel):
    """
    Denormalised mirror of current access.

    Consumers that cannot recompute validity read this. The resolver
    never does; it is only kept tidy by the reconciliation loop.
    """

    user_id: str
    region_id: str
    source: AccessSource
    grant_id: Optional[str] = None
    access_level: AccessLevel = AccessLevel.READ
    added_at: datetime

    @field_validator('added_at')
    @classmethod
    def validate_added_at(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_serializer('added_at')
    @classmethod
    def serialize_datetime(cls, v: datetime) -> Optional[str]:
        return v.isoformat() if v else None
