"""
Pure Enumeration Types for Access Control.

No business logic - pure type definitions only.

Exports:
    AccessLevel: Permission level attached to a region grant
    RegionType: Administrative level of a region
    GrantStatus: Derived status of a temporary grant
    AccessSource: Origin of a current-access mirror row
"""

from enum import Enum


class AccessLevel(str, Enum):
    """Permission level a user holds within a region."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


class RegionType(str, Enum):
    """Administrative level of a region."""

    COUNTRY = "country"
    STATE = "state"
    UNION_TERRITORY = "union_territory"
    DISTRICT = "district"


class GrantStatus(str, Enum):
    """
    Derived status of a temporary grant at a point in time.

    State transitions:
    - ACTIVE -> EXPIRED (time passes expires_at)
    - ACTIVE -> REVOKED (explicit revocation)

    EXPIRED and REVOKED are terminal. Status is never stored.
    """

    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class AccessSource(str, Enum):
    """Where a current-access mirror row came from."""

    PERMANENT = "permanent"
    TEMPORARY = "temporary"
