"""
Grant Countdown Calculation.

Pure function turning an expiry and the authoritative "now" into a
TimeRemaining value for display.

Exports:
    calculate_time_remaining: Countdown from now until expires_at
"""

from datetime import datetime

from ..clock import ensure_aware_utc
from ..models.access import TimeRemaining


SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60


def calculate_time_remaining(expires_at: datetime, now: datetime) -> TimeRemaining:
    """
    Calculate the countdown until expiry.

    Args:
        expires_at: Grant expiry (aware)
        now: Current time from the authoritative clock (aware)

    Returns:
        TimeRemaining with day/hour/minute/second components. An expiry at
        or before now yields the "Expired" value with all components zero.
    """
    delta = ensure_aware_utc(expires_at, "expires_at") - ensure_aware_utc(now, "now")
    if delta.total_seconds() <= 0:
        return TimeRemaining(expired=True, display="Expired")

    # Sub-second remainders truncate to zero and display as "Just now"
    total = int(delta.total_seconds())

    days = total // SECONDS_PER_DAY
    hours = (total % SECONDS_PER_DAY) // SECONDS_PER_HOUR
    minutes = (total % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE
    seconds = total % SECONDS_PER_MINUTE

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if days == 0 and seconds > 0:
        parts.append(f"{seconds}s")

    return TimeRemaining(
        expired=False,
        display=" ".join(parts) or "Just now",
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        total_seconds=total,
    )
