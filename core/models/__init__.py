"""
Core Data Models - Pure Data Structures.

Pydantic models for regions, grants and derived access values.
No persistence or I/O here.

Exports:
    Enums: AccessLevel, RegionType, GrantStatus, AccessSource
    Region: Administrative region
    PermanentAssignment, TemporaryGrant, CurrentAccessRow: Grant records
    TimeRemaining, EffectiveRegion, CallerIdentity, AuthorizationDecision:
        Derived access values
"""

from .enums import AccessLevel, RegionType, GrantStatus, AccessSource
from .region import Region, Ring
from .grant import PermanentAssignment, TemporaryGrant, CurrentAccessRow
from .access import TimeRemaining, EffectiveRegion, CallerIdentity, AuthorizationDecision

__all__ = [
    'AccessLevel',
    'RegionType',
    'GrantStatus',
    'AccessSource',
    'Region',
    'Ring',
    'PermanentAssignment',
    'TemporaryGrant',
    'CurrentAccessRow',
    'TimeRemaining',
    'EffectiveRegion',
    'CallerIdentity',
    'AuthorizationDecision',
]
