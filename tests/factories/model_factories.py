"""
Randomized model factories - anti-overfitting design.

Every factory call generates randomized non-identity fields
(timestamps, user ids, string suffixes) so tests cannot rely on
specific default values.
"""

import random
import string
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Sequence, Tuple

from core.clock import Clock


def _random_suffix(length: int = 6) -> str:
    """Generate random alphanumeric suffix."""
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def _random_timestamp() -> datetime:
    """Generate random whole-second timestamp within the last 30 days."""
    offset = random.randint(0, 30 * 24 * 3600)
    return (datetime.now(timezone.utc) - timedelta(seconds=offset)).replace(microsecond=0)


def make_user_id(prefix: str = "user") -> str:
    return f"{prefix}-{_random_suffix()}"


# ============================================================================
# CLOCK
# ============================================================================

class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or _random_timestamp()

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        """Move forward by timedelta(**kwargs) and return the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value


# ============================================================================
# REGIONS
# ============================================================================

def make_region(region_id: str = None, name: str = None, code: str = None, **overrides):
    """
    Build a Region with randomized non-identity fields.

    Returns:
        Region instance
    """
    from core.models import Region

    suffix = _random_suffix()
    base = {
        "region_id": region_id or f"region-{suffix}",
        "name": name or f"Region {suffix.upper()}",
        "code": code if code is not None else suffix[:2].upper(),
        "aliases": [],
        "is_active": True,
    }
    base.update(overrides)
    return Region(**base)


# ============================================================================
# GEOJSON
# ============================================================================

def square_ring(lat_min: float, lng_min: float, lat_max: float, lng_max: float) -> List[List[float]]:
    """Closed GeoJSON ring ([lng, lat] positions) for an axis-aligned box."""
    return [
        [lng_min, lat_min],
        [lng_max, lat_min],
        [lng_max, lat_max],
        [lng_min, lat_max],
        [lng_min, lat_min],
    ]


def make_feature(rings: Sequence[List[List[float]]], multipolygon: bool = False, **properties):
    """
    GeoJSON Feature from GeoJSON rings.

    A Polygon puts every ring in one polygon (first is the shell). With
    multipolygon=True each ring becomes its own polygon.
    """
    if multipolygon:
        geometry = {"type": "MultiPolygon", "coordinates": [[list(r)] for r in rings]}
    else:
        geometry = {"type": "Polygon", "coordinates": [list(r) for r in rings]}
    return {"type": "Feature", "properties": dict(properties), "geometry": geometry}


def make_feature_collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


def box_feature(bounds: Tuple[float, float, float, float], **properties):
    """Single-box feature. bounds = (lat_min, lng_min, lat_max, lng_max)."""
    return make_feature([square_ring(*bounds)], **properties)
