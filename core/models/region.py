"""
Region Models.

A Region is an administrative area users can be authorized for. Catalogue
records are created by administrators; ring geometry is attached at load
time by the boundary ingestion step and is immutable afterwards.

Exports:
    Region: Administrative region with optional polygon rings
    Ring: Type alias for one closed ring of (lat, lng) vertices
"""

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import RegionType


Vertex = Tuple[float, float]
Ring = List[Vertex]


class Region(BaseModel):
    """
    Administrative region.

    Fields:
    - region_id: Stable, immutable identifier
    - name: Display name
    - code: Short code (e.g. "MH")
    - region_type: Administrative level
    - aliases: Extra exact names boundary datasets use for this region
    - rings: Closed polygon rings of (lat, lng) vertices, first == last
    - is_active: Inactive regions are never authorized or indexed
    """

    model_config = ConfigDict(frozen=True)

    region_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    code: str = Field(default="")
    region_type: RegionType = Field(default=RegionType.STATE)
    aliases: List[str] = Field(default_factory=list)
    rings: List[Ring] = Field(default_factory=list)
    is_active: bool = Field(default=True)

    @field_validator('rings')
    @classmethod
    def validate_rings(cls, rings: List[Ring]) -> List[Ring]:
        """
        Close open rings and check coordinate ranges.

        A ring needs at least three distinct vertices, so four once closed.
        """
        closed: List[Ring] = []
        for index, ring in enumerate(rings):
            vertices = [(float(lat), float(lng)) for lat, lng in ring]
            if vertices and vertices[0] != vertices[-1]:
                vertices.append(vertices[0])
            if len(vertices) < 4:
                raise ValueError(f"ring {index} needs at least 3 distinct vertices")
            for lat, lng in vertices:
                if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
                    raise ValueError(
                        f"ring {index} has out-of-range vertex ({lat}, {lng})"
                    )
            closed.append(vertices)
        return closed

    @property
    def has_geometry(self) -> bool:
        return bool(self.rings)

    def with_rings(self, rings: List[Ring]) -> "Region":
        """Copy of this catalogue record with boundary geometry attached."""
        return Region(**{**self.model_dump(), "rings": rings})
