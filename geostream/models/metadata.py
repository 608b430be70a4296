"""Pydantic summary model for datasets.

``DatasetInfo`` is the serialisable description of a dataset: what it
is called, which spatial reference its geometries use, how far they
extend and how many features it holds. It is what callers log or hand
to a UI before deciding how to render the dataset itself.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class DatasetInfo(BaseModel):
    """Dataset-level metadata.

    Attributes:
        name: Dataset name, if any.
        srid: Spatial reference identifier, carried through unchanged.
        bbox: ``[minx, miny, maxx, maxy]``, or empty when the dataset has
            no coordinates.
        feature_count: Number of features.
    """

    name: str | None = None
    srid: int | None = None
    bbox: list[float] = Field(default_factory=list)
    feature_count: int = Field(default=0, ge=0)

    @field_validator("bbox")
    @classmethod
    def _check_bbox(cls, value: list[float]) -> list[float]:
        if not value:
            return value
        if len(value) != 4:
            msg = f"bbox must have 4 values, got {len(value)}"
            raise ValueError(msg)
        minx, miny, maxx, maxy = value
        if minx > maxx or miny > maxy:
            msg = f"bbox minimum exceeds maximum: {value}"
            raise ValueError(msg)
        return value

    @property
    def extent(self) -> tuple[float, float, float, float] | None:
        if not self.bbox:
            return None
        minx, miny, maxx, maxy = self.bbox
        return (minx, miny, maxx, maxy)
