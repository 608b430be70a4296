"""Sinks that rebuild ``geostream.models`` values from processor calls.

``GeometryBuilder`` is the inverse of the geometry walker: walking a
model geometry into it yields an equal geometry. ``DatasetBuilder``
does the same for whole datasets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from geostream.core.exceptions import SinkError
from geostream.models.feature import Dataset, Feature
from geostream.models.geometry import (
    Dimension,
    GeometryCollection,
    GeometryKind,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geostream.models.feature import PropertyValue
    from geostream.models.geometry import Coordinate, Geometry


@dataclass(slots=True)
class _Node:
    kind: GeometryKind
    dimension: Dimension
    srid: int | None
    coordinates: list[Coordinate] = field(default_factory=list)
    rings: list[list[Coordinate]] = field(default_factory=list)
    members: list[Geometry] = field(default_factory=list)


class GeometryBuilder(FeatureProcessor):
    """Collect every root geometry as a model value.

    ``geometries`` holds the roots in emission order; ``geometry`` is the
    most recent one.
    """

    wants_properties = False

    def __init__(self) -> None:
        self.geometries: list[Geometry] = []
        self._nodes: list[_Node] = []
        self._ring: list[Coordinate] | None = None

    @property
    def geometry(self) -> Geometry | None:
        return self.geometries[-1] if self.geometries else None

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        # Members inherit the root's SRID through the root; only it keeps one.
        node_srid = srid if not self._nodes else None
        self._nodes.append(_Node(GeometryKind(kind), Dimension(dimension), node_srid))

    def ring_begin(self) -> None:
        if not self._nodes:
            msg = "ring_begin outside a geometry"
            raise SinkError(msg)
        self._ring = []

    def ring_end(self) -> None:
        if self._ring is None:
            msg = "ring_end without ring_begin"
            raise SinkError(msg)
        self._nodes[-1].rings.append(self._ring)
        self._ring = None

    def coordinate(self, values: Sequence[float]) -> None:
        position = tuple(float(v) for v in values)
        if self._ring is not None:
            self._ring.append(position)
        elif self._nodes:
            self._nodes[-1].coordinates.append(position)
        else:
            msg = "coordinate outside a geometry"
            raise SinkError(msg)

    def geometry_end(self) -> None:
        if not self._nodes:
            msg = "geometry_end without geometry_begin"
            raise SinkError(msg)
        node = self._nodes.pop()
        geometry = _build(node)
        if self._nodes:
            self._nodes[-1].members.append(geometry)
        else:
            self.geometries.append(geometry)


def _build(node: _Node) -> Geometry:
    dimension, srid = node.dimension, node.srid
    if node.kind is GeometryKind.POINT:
        if len(node.coordinates) > 1:
            msg = f"Point received {len(node.coordinates)} coordinates"
            raise SinkError(msg)
        coordinate = node.coordinates[0] if node.coordinates else None
        return Point(coordinate, dimension, srid)
    if node.kind is GeometryKind.LINESTRING:
        return LineString(tuple(node.coordinates), dimension, srid)
    if node.kind is GeometryKind.POLYGON:
        return Polygon(tuple(tuple(r) for r in node.rings), dimension, srid)
    if node.kind is GeometryKind.MULTIPOINT:
        return MultiPoint(tuple(node.members), dimension, srid)  # type: ignore[arg-type]
    if node.kind is GeometryKind.MULTILINESTRING:
        return MultiLineString(tuple(node.members), dimension, srid)  # type: ignore[arg-type]
    if node.kind is GeometryKind.MULTIPOLYGON:
        return MultiPolygon(tuple(node.members), dimension, srid)  # type: ignore[arg-type]
    return GeometryCollection(tuple(node.members), dimension, srid)


class DatasetBuilder(GeometryBuilder):
    """Collect features and dataset metadata into a ``Dataset``.

    Args:
        srid: SRID recorded on the resulting dataset.
    """

    wants_properties = True

    def __init__(self, *, srid: int | None = None) -> None:
        super().__init__()
        self.features: list[Feature] = []
        self.name: str | None = None
        self._srid = srid
        self._properties: dict[str, PropertyValue] | None = None
        self._roots_at_begin = 0

    @property
    def dataset(self) -> Dataset:
        return Dataset(tuple(self.features), name=self.name, srid=self._srid)

    def dataset_begin(self, name: str | None) -> None:
        self.name = name

    def feature_begin(self, index: int) -> None:
        self._properties = {}
        self._roots_at_begin = len(self.geometries)

    def property(self, name: str, value: PropertyValue) -> None:
        if self._properties is None:
            msg = f"property {name!r} outside a feature"
            raise SinkError(msg)
        self._properties[name] = value

    def feature_end(self, index: int) -> None:
        if self._properties is None:
            msg = f"feature_end({index}) without feature_begin"
            raise SinkError(msg)
        geometry = self.geometry if len(self.geometries) > self._roots_at_begin else None
        self.features.append(Feature(geometry, dict(self._properties)))
        self._properties = None
