# ============================================================================
# BOUNDARY INDEX
# ============================================================================
# STATUS: Service - Point-in-region containment
# PURPOSE: Map coordinates to catalogue regions and the country outline
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Boundary Index.

Process-scoped service with an explicit load()/ready() lifecycle. After a
successful load the index is read-only and queries take no lock.

Containment rule:
    A region's rings combine under the even-odd rule: a point is inside
    when it lies inside an odd number of rings. Disjoint rings therefore
    behave as "any ring", and a ring inside another is a hole. Points on
    an edge or vertex count as inside.

    Built as the symmetric difference of one polygon per ring, tested
    with covers() so boundaries are included.

Fail-open:
    Until a load succeeds, is_inside_country() answers True ("unknown")
    and containing_region() answers None. The enforcement gate decides
    what an unavailable index means for an authorization.

Exports:
    BoundaryIndex: The containment service
    BoundaryState: Lifecycle state
"""

import threading
from datetime import datetime, timezone
from enum import Enum
from functools import reduce
from typing import Any, Dict, List, Optional

from shapely import Point, Polygon, STRtree, prepare, unary_union
from shapely.geometry.base import BaseGeometry
from shapely.validation import make_valid

from config import BoundaryConfig
from core.models import Region, Ring
from exceptions import BoundaryLoadError
from infrastructure.boundary_source import BoundarySource
from infrastructure.interface_repository import IRegionRepository
from util_logger import LoggerFactory, ComponentType
from .region_ingestion import extract_rings, ingest_features

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "BoundaryIndex")


class BoundaryState(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADED = "loaded"
    FAILED = "failed"


def rings_to_geometry(rings: List[Ring]) -> BaseGeometry:
    """
    Even-odd composition of (lat, lng) rings as one shapely geometry
    in (x=lng, y=lat) order.
    """
    polygons = []
    for ring in rings:
        polygon = Polygon([(lng, lat) for lat, lng in ring])
        if not polygon.is_valid:
            # Self-intersecting rings split into their lobes
            polygon = make_valid(polygon)
        polygons.append(polygon)
    return reduce(lambda acc, geom: acc.symmetric_difference(geom), polygons)


def _warm_up(geometries: List[BaseGeometry], tree: Optional[STRtree]) -> None:
    """
    Run one point query against every prepared geometry and the tree.

    GEOS builds prepared-geometry locators lazily on first use; doing it
    here leaves nothing to mutate once queries run concurrently.
    """
    for geom in geometries:
        if geom.is_empty:
            continue
        sample = geom.representative_point()
        geom.covers(sample)
        if tree is not None:
            tree.query(sample)


class BoundaryIndex:
    """
    Point containment over catalogue regions.

    Args:
        config: Boundary dataset settings
        region_repo: Catalogue used to map features to regions
        source: Dataset fetcher (defaults to BoundarySource with config timeout)
    """

    def __init__(self, config: BoundaryConfig, region_repo: IRegionRepository,
                 source: Optional[BoundarySource] = None):
        self.config = config
        self.region_repo = region_repo
        self.source = source or BoundarySource(timeout=config.fetch_timeout_seconds)

        self._lock = threading.Lock()
        self._state = BoundaryState.NOT_LOADED
        self._error: Optional[str] = None
        self._loaded_at: Optional[datetime] = None
        self._stats: Dict[str, Any] = {}

        self._regions: List[Region] = []
        self._geometries: List[BaseGeometry] = []
        self._tree: Optional[STRtree] = None
        self._country: Optional[BaseGeometry] = None

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def load(self) -> None:
        """
        Fetch the configured datasets and build the index.

        No-op once loaded. On failure the error is recorded, logged once and
        re-raised; the index stays unavailable (fail-open) and load() may be
        called again.

        Raises:
            BoundaryLoadError: Dataset unreachable, malformed, or unusable
        """
        if self.ready():
            return

        try:
            collection = self.source.fetch(self.config.source)
            country_collection = (
                self.source.fetch(self.config.country_source)
                if self.config.country_source else None
            )
        except BoundaryLoadError as e:
            self._record_failure(e)
            raise

        self.load_collection(collection, country_collection)

    def load_collection(self, collection: Dict[str, Any],
                        country_collection: Optional[Dict[str, Any]] = None) -> None:
        """
        Build the index from already-fetched FeatureCollections.

        Raises:
            BoundaryLoadError: No usable polygons, or geometry construction failed
        """
        if self.ready():
            return

        try:
            catalogue = self.region_repo.list_regions(active_only=False)
            result = ingest_features(
                collection,
                catalogue,
                id_property=self.config.id_property,
                name_properties=self.config.name_properties,
            )
            if not result.all_rings:
                raise BoundaryLoadError("Boundary dataset contains no polygon features",
                                        source=self.config.source)

            geometries = [rings_to_geometry(region.rings) for region in result.regions]
            for geom in geometries:
                prepare(geom)
            tree = STRtree(geometries) if geometries else None

            if country_collection is not None:
                country_parts = [
                    rings_to_geometry(rings)
                    for rings in (
                        extract_rings(f.get("geometry"))
                        for f in country_collection.get("features") or []
                        if isinstance(f, dict)
                    )
                    if rings
                ]
                if not country_parts:
                    raise BoundaryLoadError("Country dataset contains no polygon features",
                                            source=self.config.country_source)
            else:
                country_parts = [rings_to_geometry(rings) for rings in result.all_rings]
            country = unary_union(country_parts)
            prepare(country)
            _warm_up(geometries + [country], tree)

        except BoundaryLoadError as e:
            self._record_failure(e)
            raise
        except Exception as e:
            error = BoundaryLoadError(f"Boundary geometry construction failed: {e}",
                                      source=self.config.source)
            self._record_failure(error)
            raise error from e

        with self._lock:
            self._regions = result.regions
            self._geometries = geometries
            self._tree = tree
            self._country = country
            self._state = BoundaryState.LOADED
            self._error = None
            self._loaded_at = datetime.now(timezone.utc)
            self._stats = result.to_dict()

        logger.info(
            f"[BOUNDARY] ✅ Index loaded: {len(result.regions)} regions, "
            f"{len(result.unmapped)} unmapped features"
        )

    def _record_failure(self, error: BoundaryLoadError) -> None:
        with self._lock:
            self._state = BoundaryState.FAILED
            self._error = str(error)
        logger.error(
            f"[BOUNDARY] ❌ Boundary load failed ({error.source or self.config.source}): {error}. "
            f"Containment checks run fail-open until a load succeeds."
        )

    def ready(self) -> bool:
        return self._state == BoundaryState.LOADED

    def status(self) -> Dict[str, Any]:
        """Lifecycle state for health endpoints."""
        with self._lock:
            return {
                "state": self._state.value,
                "ready": self._state == BoundaryState.LOADED,
                "error": self._error,
                "loaded_at": self._loaded_at.isoformat() if self._loaded_at else None,
                "region_count": len(self._regions),
                "source": self.config.source,
                "country_source": self.config.country_source,
                "fail_open": self.config.fail_open,
                **self._stats,
            }

    @property
    def regions(self) -> List[Region]:
        return list(self._regions)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def containing_region(self, lat: float, lng: float) -> Optional[Region]:
        """
        First region, in dataset order, whose geometry covers the point.

        None when no region covers it or the index is not loaded.
        """
        if not self.ready():
            return None
        tree, geometries, regions = self._tree, self._geometries, self._regions
        if tree is None:
            return None

        point = Point(lng, lat)
        for index in sorted(int(i) for i in tree.query(point)):
            if geometries[index].covers(point):
                return regions[index]
        return None

    def is_inside_country(self, lat: float, lng: float) -> bool:
        """True when inside the country outline, or when the index is unavailable."""
        if not self.ready():
            return True
        country = self._country
        if country is None:
            return True
        return bool(country.covers(Point(lng, lat)))
