"""
Boundary dataset fetch tests - files and URLs (httpx.MockTransport).
"""

import json

import httpx
import pytest

from exceptions import BoundaryLoadError
from infrastructure.boundary_source import BoundarySource
from tests.factories.model_factories import box_feature, make_feature_collection

URL = "https://boundaries.example.org/india_states.geojson"


def _collection():
    return make_feature_collection(box_feature((10, 70, 20, 80), region_id="A"))


class TestFileSource:

    def test_reads_feature_collection(self, tmp_path):
        path = tmp_path / "b.geojson"
        path.write_text(json.dumps(_collection()))
        assert len(BoundarySource().fetch(str(path))["features"]) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(BoundaryLoadError) as exc_info:
            BoundarySource().fetch(str(tmp_path / "nope.geojson"))
        assert exc_info.value.source.endswith("nope.geojson")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "b.geojson"
        path.write_text("{not json")
        with pytest.raises(BoundaryLoadError, match="not valid JSON"):
            BoundarySource().fetch(str(path))

    def test_not_a_feature_collection(self, tmp_path):
        path = tmp_path / "b.geojson"
        path.write_text(json.dumps({"type": "Feature"}))
        with pytest.raises(BoundaryLoadError, match="FeatureCollection"):
            BoundarySource().fetch(str(path))

    def test_no_source_configured(self):
        with pytest.raises(BoundaryLoadError):
            BoundarySource().fetch("")


class TestUrlSource:

    def test_fetches_over_http(self):
        def handler(request):
            assert str(request.url) == URL
            return httpx.Response(200, json=_collection())

        source = BoundarySource(transport=httpx.MockTransport(handler))
        assert source.fetch(URL)["type"] == "FeatureCollection"

    def test_http_error_status(self):
        source = BoundarySource(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
        with pytest.raises(BoundaryLoadError, match="HTTP 404"):
            source.fetch(URL)

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        source = BoundarySource(transport=httpx.MockTransport(handler))
        with pytest.raises(BoundaryLoadError, match="timed out"):
            source.fetch(URL)

    def test_non_json_body(self):
        source = BoundarySource(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>"))
        )
        with pytest.raises(BoundaryLoadError, match="not valid JSON"):
            source.fetch(URL)
