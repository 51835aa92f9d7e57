"""
Reference Boundary Configuration.

Controls where the Boundary Index loads its region and country
geometry from and how features are mapped onto catalogue regions.

Exports:
    BoundaryConfig: Boundary dataset configuration
"""

import os
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from .defaults import BoundaryDefaults


class BoundaryConfig(BaseModel):
    """
    Boundary dataset settings.

    Sources are either a filesystem path or an http(s) URL serving a
    GeoJSON FeatureCollection.
    """

    source: Optional[str] = Field(
        default=BoundaryDefaults.SOURCE,
        description="Region boundary dataset (path or URL)"
    )

    country_source: Optional[str] = Field(
        default=None,
        description="Optional country outline dataset. When unset the country "
                    "boundary is the union of every feature in the region dataset."
    )

    id_property: str = Field(
        default=BoundaryDefaults.ID_PROPERTY,
        description="Feature property holding a canonical region id"
    )

    name_properties: List[str] = Field(
        default_factory=lambda: list(BoundaryDefaults.NAME_PROPERTIES),
        description="Feature properties checked in order for a region name"
    )

    fail_open: bool = Field(
        default=BoundaryDefaults.FAIL_OPEN,
        description="Allow location checks while boundary data is unavailable"
    )

    fetch_timeout_seconds: float = Field(
        default=BoundaryDefaults.FETCH_TIMEOUT_SECONDS,
        gt=0,
        description="HTTP timeout when the dataset is a URL"
    )

    @field_validator('name_properties')
    @classmethod
    def validate_name_properties(cls, v: List[str]) -> List[str]:
        """Drop blanks, require at least one property."""
        cleaned = [p.strip() for p in v if p and p.strip()]
        if not cleaned:
            raise ValueError("At least one boundary name property is required")
        return cleaned

    def debug_dict(self) -> dict:
        """Debug output for logging."""
        return {
            "source": self.source,
            "country_source": self.country_source,
            "id_property": self.id_property,
            "name_properties": self.name_properties,
            "fail_open": self.fail_open,
            "fetch_timeout_seconds": self.fetch_timeout_seconds,
        }

    @classmethod
    def from_environment(cls) -> 'BoundaryConfig':
        """Load from environment variables."""
        names_env = os.environ.get("BOUNDARY_NAME_PROPERTIES")
        name_properties = (
            names_env.split(",") if names_env
            else list(BoundaryDefaults.NAME_PROPERTIES)
        )
        return cls(
            source=os.environ.get("BOUNDARY_SOURCE") or BoundaryDefaults.SOURCE,
            country_source=os.environ.get("COUNTRY_BOUNDARY_SOURCE") or None,
            id_property=os.environ.get("BOUNDARY_ID_PROPERTY", BoundaryDefaults.ID_PROPERTY),
            name_properties=name_properties,
            fail_open=os.environ.get(
                "BOUNDARY_FAIL_OPEN", str(BoundaryDefaults.FAIL_OPEN).lower()
            ).lower() == "true",
            fetch_timeout_seconds=float(os.environ.get(
                "BOUNDARY_FETCH_TIMEOUT_SECONDS", str(BoundaryDefaults.FETCH_TIMEOUT_SECONDS)
            )),
        )
