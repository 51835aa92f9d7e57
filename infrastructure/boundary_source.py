"""
Boundary Dataset Source.

Reads a GeoJSON FeatureCollection from a filesystem path or an http(s)
URL. Structural checks only; mapping features to regions happens in
services.region_ingestion.

Exports:
    BoundarySource: Fetch and minimally validate a boundary dataset
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from exceptions import BoundaryLoadError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "BoundarySource")


class BoundarySource:
    """
    Fetch a boundary FeatureCollection.

    Args:
        timeout: HTTP timeout in seconds for URL sources
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(self, timeout: float = 30.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def fetch(self, source: Optional[str]) -> Dict[str, Any]:
        """
        Load and check a FeatureCollection.

        Raises:
            BoundaryLoadError: Unreachable, not JSON, or not a FeatureCollection
        """
        if not source:
            raise BoundaryLoadError("No boundary source configured")

        if source.startswith(("http://", "https://")):
            payload = self._fetch_url(source)
        else:
            payload = self._read_file(source)

        if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
            raise BoundaryLoadError("Boundary data is not a GeoJSON FeatureCollection", source=source)
        if not isinstance(payload.get("features"), list):
            raise BoundaryLoadError("FeatureCollection has no features list", source=source)

        logger.info(f"[BOUNDARY] Fetched {len(payload['features'])} features from {source}")
        return payload

    def _read_file(self, source: str) -> Any:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise BoundaryLoadError(f"Cannot read boundary file: {e}", source=source) from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise BoundaryLoadError(f"Boundary file is not valid JSON: {e}", source=source) from e

    def _fetch_url(self, source: str) -> Any:
        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True,
                              transport=self.transport) as client:
                response = client.get(source)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise BoundaryLoadError("Boundary fetch timed out", source=source) from e
        except httpx.HTTPStatusError as e:
            raise BoundaryLoadError(
                f"Boundary fetch returned HTTP {e.response.status_code}", source=source
            ) from e
        except httpx.RequestError as e:
            raise BoundaryLoadError(f"Boundary fetch failed: {e}", source=source) from e
        except ValueError as e:
            raise BoundaryLoadError(f"Boundary response is not valid JSON: {e}", source=source) from e
