"""
Boundary feature ingestion tests.

Features map to catalogue regions by id, then by exact normalized name.
"""

from services.region_ingestion import extract_rings, ingest_features, normalize_name
from tests.factories.model_factories import (
    box_feature,
    make_feature,
    make_feature_collection,
    make_region,
    square_ring,
)


class TestNormalizeName:

    def test_case_and_whitespace(self):
        assert normalize_name("  New   DELHI ") == "new delhi"

    def test_non_string(self):
        assert normalize_name(None) == ""
        assert normalize_name(42) == ""


class TestExtractRings:

    def test_polygon_swaps_to_lat_lng(self):
        rings = extract_rings({"type": "Polygon", "coordinates": [square_ring(10, 70, 11, 71)]})
        assert rings == [[(10, 70), (10, 71), (11, 71), (11, 70), (10, 70)]]

    def test_multipolygon_flattens_every_ring(self):
        feature = make_feature(
            [square_ring(10, 70, 11, 71), square_ring(20, 75, 21, 76)], multipolygon=True
        )
        assert len(extract_rings(feature["geometry"])) == 2

    def test_degenerate_ring_dropped(self):
        ring = [[70, 10], [71, 10], [70, 10], [71, 10]]
        assert extract_rings({"type": "Polygon", "coordinates": [ring]}) == []

    def test_other_geometry_types_ignored(self):
        assert extract_rings({"type": "Point", "coordinates": [70, 10]}) == []
        assert extract_rings(None) == []


class TestIngestFeatures:

    def test_id_property_takes_precedence(self):
        catalogue = [make_region("IN-MH", "Maharashtra"), make_region("IN-GJ", "Gujarat")]
        collection = make_feature_collection(
            box_feature((10, 70, 11, 71), region_id="IN-GJ", NAME_1="Maharashtra"),
        )
        result = ingest_features(collection, catalogue)
        assert [r.region_id for r in result.regions] == ["IN-GJ"]

    def test_substring_names_never_collide(self):
        catalogue = [make_region("DL", "Delhi"), make_region("NDL", "New Delhi")]
        collection = make_feature_collection(
            box_feature((10, 70, 11, 71), NAME_1="New Delhi"),
            box_feature((12, 70, 13, 71), NAME_1="delhi"),
        )
        result = ingest_features(collection, catalogue)
        assert [r.region_id for r in result.regions] == ["NDL", "DL"]

    def test_alias_and_code_match(self):
        catalogue = [
            make_region("IN-OR", "Odisha", "OD", aliases=["Orissa"]),
            make_region("IN-TN", "Tamil Nadu", "TN"),
        ]
        collection = make_feature_collection(
            box_feature((10, 70, 11, 71), ST_NM="ORISSA"),
            box_feature((12, 70, 13, 71), name="tn"),
        )
        result = ingest_features(collection, catalogue)
        assert [r.region_id for r in result.regions] == ["IN-OR", "IN-TN"]

    def test_ambiguous_key_is_not_matched(self):
        catalogue = [
            make_region("A", "Alpha", aliases=["Shared"]),
            make_region("B", "Beta", aliases=["Shared"]),
        ]
        result = ingest_features(
            make_feature_collection(box_feature((10, 70, 11, 71), NAME_1="Shared")), catalogue
        )
        assert result.regions == []
        assert len(result.unmapped) == 1

    def test_unmapped_features_still_feed_country_rings(self):
        catalogue = [make_region("IN-KL", "Kerala")]
        collection = make_feature_collection(
            box_feature((10, 70, 11, 71), NAME_1="Kerala"),
            box_feature((12, 70, 13, 71), NAME_1="Atlantis"),
        )
        result = ingest_features(collection, catalogue)
        assert [r.region_id for r in result.regions] == ["IN-KL"]
        assert result.unmapped == [{"index": 1, "name": "Atlantis"}]
        assert len(result.all_rings) == 2
        assert result.to_dict()["unmapped_features"] == 1

    def test_inactive_region_skipped(self):
        catalogue = [make_region("IN-LD", "Lakshadweep", is_active=False)]
        result = ingest_features(
            make_feature_collection(box_feature((10, 70, 11, 71), region_id="IN-LD")), catalogue
        )
        assert result.regions == []
        assert result.skipped_inactive == ["IN-LD"]

    def test_features_for_one_region_merge_in_dataset_order(self):
        catalogue = [make_region("A", "Alpha"), make_region("B", "Beta")]
        collection = make_feature_collection(
            box_feature((10, 70, 11, 71), region_id="B"),
            box_feature((12, 70, 13, 71), region_id="A"),
            box_feature((14, 70, 15, 71), region_id="B"),
        )
        result = ingest_features(collection, catalogue)
        assert [r.region_id for r in result.regions] == ["B", "A"]
        assert len(result.regions[0].rings) == 2
        assert result.feature_count == 3
