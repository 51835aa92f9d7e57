"""
Boundary Feature Ingestion.

Maps raw GeoJSON features onto canonical catalogue regions once, at load
time. Query-time code never compares names.

Matching order for each feature:
    1. The id property (default "region_id") equal to a catalogue region_id
    2. Each configured name property, normalized (case-folded, whitespace
       collapsed) and compared for equality against every region's name,
       code and aliases

There is no substring matching: "Delhi" never matches "New Delhi" unless
one is listed as an alias of the other. A normalized key shared by two
regions is ambiguous and dropped from the lookup.

Exports:
    IngestionResult: Mapped regions, unmapped features, country rings
    ingest_features: Run the mapping over a FeatureCollection
    normalize_name: Key normalization used for name matching
    extract_rings: GeoJSON Polygon/MultiPolygon to (lat, lng) rings
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from core.models import Region, Ring
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.VALIDATOR, "RegionIngestion")


def normalize_name(value: Any) -> str:
    """Case-fold and collapse whitespace. Non-strings normalize to ''."""
    if not isinstance(value, str):
        return ""
    return " ".join(value.split()).casefold()


def extract_rings(geometry: Optional[Dict[str, Any]]) -> List[Ring]:
    """
    Flatten a GeoJSON Polygon or MultiPolygon into (lat, lng) rings.

    Holes are kept as ordinary rings; the even-odd rule makes them holes
    again at containment time. Other geometry types yield no rings.
    """
    if not isinstance(geometry, dict):
        return []

    geom_type = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if geom_type == "Polygon":
        polygons = [coords]
    elif geom_type == "MultiPolygon":
        polygons = coords
    else:
        return []

    rings: List[Ring] = []
    for polygon in polygons:
        for ring in polygon or []:
            # GeoJSON positions are [lng, lat, (alt)]
            vertices = [(float(pos[1]), float(pos[0])) for pos in ring if len(pos) >= 2]
            if len(set(vertices)) >= 3:
                rings.append(vertices)
    return rings


@dataclass
class IngestionResult:
    """Outcome of mapping a boundary dataset onto the catalogue."""

    regions: List[Region] = field(default_factory=list)
    unmapped: List[Dict[str, Any]] = field(default_factory=list)
    skipped_inactive: List[str] = field(default_factory=list)
    all_rings: List[List[Ring]] = field(default_factory=list)
    feature_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_count": self.feature_count,
            "mapped_regions": len(self.regions),
            "unmapped_features": len(self.unmapped),
            "skipped_inactive": list(self.skipped_inactive),
        }


def _build_name_lookup(catalogue: Sequence[Region]) -> Dict[str, str]:
    """Normalized name/code/alias -> region_id, with ambiguous keys removed."""
    lookup: Dict[str, str] = {}
    ambiguous = set()
    for region in catalogue:
        keys = {normalize_name(region.name), normalize_name(region.code)}
        keys.update(normalize_name(a) for a in region.aliases)
        keys.discard("")
        for key in keys:
            owner = lookup.get(key)
            if owner is not None and owner != region.region_id:
                ambiguous.add(key)
            else:
                lookup[key] = region.region_id

    for key in ambiguous:
        logger.warning(f"[BOUNDARY] Name '{key}' is shared by several regions and will not be matched")
        lookup.pop(key, None)
    return lookup


def ingest_features(
    collection: Dict[str, Any],
    catalogue: Sequence[Region],
    id_property: str = "region_id",
    name_properties: Sequence[str] = ("NAME_1", "ST_NM", "st_nm", "name"),
) -> IngestionResult:
    """
    Map every feature of a FeatureCollection to a catalogue region.

    Args:
        collection: GeoJSON FeatureCollection
        catalogue: All catalogue regions, active and inactive
        id_property: Feature property carrying a canonical region id
        name_properties: Feature properties checked for a region name

    Returns:
        IngestionResult. Mapped regions keep dataset order (first feature
        wins the position); several features for one region merge their rings.
    """
    by_id = {r.region_id: r for r in catalogue}
    name_lookup = _build_name_lookup(catalogue)

    result = IngestionResult()
    rings_by_region: Dict[str, List[Ring]] = {}
    order: List[str] = []

    for index, feature in enumerate(collection.get("features") or []):
        result.feature_count += 1
        if not isinstance(feature, dict):
            continue

        rings = extract_rings(feature.get("geometry"))
        if not rings:
            logger.warning(f"[BOUNDARY] Feature {index} has no polygon geometry, ignored")
            continue
        result.all_rings.append(rings)

        properties = feature.get("properties") or {}
        region_id = _match_feature(properties, by_id, name_lookup, id_property, name_properties)

        if region_id is None:
            label = next(
                (properties.get(p) for p in name_properties if properties.get(p)),
                None,
            )
            result.unmapped.append({"index": index, "name": label})
            logger.warning(
                f"[BOUNDARY] Feature {index} ({label!r}) matches no catalogue region; "
                f"used for the country boundary only"
            )
            continue

        region = by_id[region_id]
        if not region.is_active:
            if region_id not in result.skipped_inactive:
                result.skipped_inactive.append(region_id)
            logger.info(f"[BOUNDARY] Feature {index} maps to inactive region {region_id}, skipped")
            continue

        if region_id not in rings_by_region:
            rings_by_region[region_id] = []
            order.append(region_id)
        rings_by_region[region_id].extend(rings)

    for region_id in order:
        result.regions.append(by_id[region_id].with_rings(rings_by_region[region_id]))

    logger.info(
        f"[BOUNDARY] Ingested {result.feature_count} features: "
        f"{len(result.regions)} regions mapped, {len(result.unmapped)} unmapped"
    )
    return result


def _match_feature(
    properties: Dict[str, Any],
    by_id: Dict[str, Region],
    name_lookup: Dict[str, str],
    id_property: str,
    name_properties: Sequence[str],
) -> Optional[str]:
    explicit_id = properties.get(id_property)
    if explicit_id is not None and str(explicit_id) in by_id:
        return str(explicit_id)

    for prop in name_properties:
        key = normalize_name(properties.get(prop))
        if key and key in name_lookup:
            return name_lookup[key]
    return None
