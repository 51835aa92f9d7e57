"""
Authoritative Clock.

Every validity check, expiry validation and time-remaining computation
reads "now" from one injected Clock. Client-supplied timestamps are never
used as the current time.

Exports:
    Clock: Abstract time source
    SystemClock: Wall-clock UTC implementation
    ensure_aware_utc: Normalize datetimes to aware UTC
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from exceptions import ContractViolationError


class Clock(ABC):
    """Source of the current time. Always returns an aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Server wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def ensure_aware_utc(value: datetime, field: str = "datetime") -> datetime:
    """
    Convert an aware datetime to UTC.

    Naive datetimes are a programming error: the caller forgot to attach
    a timezone and comparing them against the clock would be meaningless.

    Raises:
        ContractViolationError: If value is not an aware datetime
    """
    if not isinstance(value, datetime):
        raise ContractViolationError(
            f"{field} must be a datetime, got {type(value).__name__}"
        )
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ContractViolationError(f"{field} must be timezone-aware")
    return value.astimezone(timezone.utc)
