"""Features and datasets.

A Feature pairs one geometry with an ordered mapping of scalar
properties. A Dataset is an ordered sequence of features plus optional
dataset-level metadata (name, SRID, bounding box); it is a datasource,
so it can be walked straight into any processor.

Features are identified by their zero-based position in the dataset,
not by a persistent key.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from geostream.core.exceptions import GeometryError
from geostream.models.metadata import DatasetInfo

if TYPE_CHECKING:
    from geostream.models.geometry import Geometry
    from geostream.protocol.processor import FeatureProcessor

PropertyValue: TypeAlias = str | int | float | bool | None

SCALAR_TYPES = (str, int, float, bool, type(None))


@dataclass(frozen=True, slots=True)
class Feature:
    """One geometry with its attribute properties.

    Attributes:
        geometry: The feature geometry, or ``None`` for attribute-only rows.
        properties: Property name to scalar value, in emission order.
    """

    geometry: Geometry | None = None
    properties: dict[str, PropertyValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, value in self.properties.items():
            if not isinstance(value, SCALAR_TYPES):
                msg = f"Property {name!r} must be a scalar, got {type(value).__name__}"
                raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class Dataset:
    """An ordered collection of features.

    Attributes:
        features: Features in dataset order.
        name: Dataset name passed to ``dataset_begin``.
        srid: Spatial reference applied to feature geometries that carry none.
        bbox: Declared ``(minx, miny, maxx, maxy)``; computed when absent.

    Raises:
        GeometryError: If a declared ``bbox`` does not have four values or
            its minimum exceeds its maximum.
    """

    features: tuple[Feature, ...] = ()
    name: str | None = None
    srid: int | None = None
    bbox: tuple[float, float, float, float] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", tuple(self.features))
        if self.bbox is not None:
            object.__setattr__(self, "bbox", _checked_bbox(self.bbox))

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def process(self, processor: FeatureProcessor) -> None:
        """Walk every feature, wrapped in ``dataset_begin``/``dataset_end``."""
        from geostream.walkers.dataset import walk_dataset

        walk_dataset(self.features, processor, name=self.name, srid=self.srid)

    def describe(self) -> DatasetInfo:
        """Summarise the dataset, computing the bbox if none was declared."""
        bbox = self.bbox if self.bbox is not None else self._computed_bbox()
        return DatasetInfo(
            name=self.name,
            srid=self.srid,
            bbox=list(bbox) if bbox is not None else [],
            feature_count=len(self.features),
        )

    def _computed_bbox(self) -> tuple[float, float, float, float] | None:
        from geostream.protocol.bounds import BoundsProcessor
        from geostream.walkers.geometry import walk_geometry

        bounds = BoundsProcessor()
        for feature in self.features:
            if feature.geometry is not None:
                walk_geometry(feature.geometry, bounds)
        return bounds.bounds


def _checked_bbox(bbox: tuple[float, ...]) -> tuple[float, float, float, float]:
    values = tuple(float(v) for v in bbox)
    if len(values) != 4:
        msg = f"Dataset bbox must have 4 values, got {len(values)}"
        raise GeometryError(msg, code="INVALID_BBOX")
    minx, miny, maxx, maxy = values
    if minx > maxx or miny > maxy:
        msg = f"Dataset bbox minimum exceeds maximum: {values}"
        raise GeometryError(msg, code="INVALID_BBOX")
    return (minx, miny, maxx, maxy)
