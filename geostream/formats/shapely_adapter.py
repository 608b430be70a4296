"""Shapely geometries as a source and as a sink.

``ShapelyWriter`` builds shapely geometries from processor calls and
``walk_shapely`` replays a shapely geometry as processor calls. SRIDs
travel through ``shapely.set_srid`` / ``shapely.get_srid``; shapely
uses 0 for "no SRID", which maps to ``None`` here.

Shapely has no measure ordinate, so XYM and XYZM are rejected both ways.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)

from geostream.core.exceptions import DimensionMismatchError, GeometryError, SinkError
from geostream.models.geometry import Dimension, GeometryKind
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

_KINDS_BY_GEOM_TYPE = {
    "Point": GeometryKind.POINT,
    "LineString": GeometryKind.LINESTRING,
    "LinearRing": GeometryKind.LINESTRING,
    "Polygon": GeometryKind.POLYGON,
    "MultiPoint": GeometryKind.MULTIPOINT,
    "MultiLineString": GeometryKind.MULTILINESTRING,
    "MultiPolygon": GeometryKind.MULTIPOLYGON,
    "GeometryCollection": GeometryKind.GEOMETRYCOLLECTION,
}

_COMPOSITE_CLASSES: dict[GeometryKind, Any] = {
    GeometryKind.MULTIPOINT: MultiPoint,
    GeometryKind.MULTILINESTRING: MultiLineString,
    GeometryKind.MULTIPOLYGON: MultiPolygon,
    GeometryKind.GEOMETRYCOLLECTION: GeometryCollection,
}


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _Node:
    kind: GeometryKind
    srid: int | None
    coordinates: list[tuple[float, ...]] = field(default_factory=list)
    rings: list[list[tuple[float, ...]]] = field(default_factory=list)
    members: list[BaseGeometry] = field(default_factory=list)


class ShapelyWriter(FeatureProcessor):
    """Build shapely geometries.

    Each root geometry is appended to ``geometries`` when it closes;
    ``geometry`` is the most recent one.
    """

    wants_properties = False

    def __init__(self) -> None:
        self.geometries: list[BaseGeometry] = []
        self._nodes: list[_Node] = []
        self._ring: list[tuple[float, ...]] | None = None

    @property
    def geometry(self) -> BaseGeometry | None:
        return self.geometries[-1] if self.geometries else None

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        dimension = Dimension(dimension)
        if dimension.has_m:
            msg = f"Shapely geometries cannot carry M values ({dimension.value})"
            raise SinkError(msg)
        self._nodes.append(_Node(GeometryKind(kind), srid))

    def ring_begin(self) -> None:
        self._ring = []

    def ring_end(self) -> None:
        if self._ring is None or not self._nodes:
            msg = "ring_end without ring_begin"
            raise SinkError(msg)
        self._nodes[-1].rings.append(self._ring)
        self._ring = None

    def coordinate(self, values: Sequence[float]) -> None:
        position = tuple(values)
        if self._ring is not None:
            self._ring.append(position)
        elif self._nodes:
            self._nodes[-1].coordinates.append(position)
        else:
            msg = "coordinate outside a geometry"
            raise SinkError(msg)

    def geometry_end(self) -> None:
        node = self._nodes.pop()
        try:
            geom = _build(node)
        except (ShapelyError, ValueError, TypeError) as exc:
            msg = f"Shapely rejected {node.kind.value}: {exc}"
            raise SinkError(msg) from exc
        if node.srid is not None:
            geom = shapely.set_srid(geom, node.srid)
        if self._nodes:
            self._nodes[-1].members.append(geom)
        else:
            self.geometries.append(geom)


def _build(node: _Node) -> BaseGeometry:
    if node.kind is GeometryKind.POINT:
        return Point(node.coordinates[0]) if node.coordinates else Point()
    if node.kind is GeometryKind.LINESTRING:
        return LineString(node.coordinates) if node.coordinates else LineString()
    if node.kind is GeometryKind.POLYGON:
        if not node.rings:
            return Polygon()
        return Polygon(node.rings[0], node.rings[1:])
    cls = _COMPOSITE_CLASSES[node.kind]
    return cls(node.members) if node.members else cls()


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


def walk_shapely(
    geom: BaseGeometry,
    processor: FeatureProcessor,
    *,
    dimension: Dimension | None = None,
    srid: int | None = None,
) -> None:
    """Replay a shapely geometry as processor calls.

    Args:
        geom: The shapely geometry.
        processor: The sink.
        dimension: Expected dimensionality (XY or XYZ).
        srid: SRID to emit when the geometry has none set.

    Raises:
        GeometryError: If the geometry type is unknown or carries M values.
        DimensionMismatchError: If members mix 2D and 3D coordinates, or the
            geometry does not have the expected ``dimension``.
    """
    if getattr(geom, "has_m", False):
        msg = f"{geom.geom_type} with M values cannot be walked from shapely"
        raise GeometryError(msg)

    root_dimension = Dimension.XYZ if geom.has_z else Dimension.XY
    if dimension is not None and root_dimension is not dimension:
        msg = f"{geom.geom_type} has dimension {root_dimension.value}, expected {dimension.value}"
        raise DimensionMismatchError(msg)
    _check(geom, root_dimension, geom.geom_type)

    own_srid = shapely.get_srid(geom)
    root_srid = int(own_srid) if own_srid else srid
    _emit(geom, processor, root_dimension, root_srid)


def _kind_of(geom: BaseGeometry) -> GeometryKind:
    kind = _KINDS_BY_GEOM_TYPE.get(geom.geom_type)
    if kind is None:
        msg = f"Unsupported shapely geometry type: {geom.geom_type}"
        raise GeometryError(msg)
    return kind


def _check(geom: BaseGeometry, dimension: Dimension, path: str) -> None:
    kind = _kind_of(geom)
    if not geom.is_empty and geom.has_z != dimension.has_z:
        msg = f"{path}: mixes 2D and 3D coordinates with a {dimension.value} root"
        raise DimensionMismatchError(msg)
    if kind.is_composite:
        for index, member in enumerate(geom.geoms):
            _check(member, dimension, f"{path}/{index}")


def _positions(coords: Any, dimension: Dimension) -> list[tuple[float, ...]]:
    return [tuple(c)[: dimension.size] for c in coords]


def _emit(
    geom: BaseGeometry,
    processor: FeatureProcessor,
    dimension: Dimension,
    srid: int | None,
) -> None:
    kind = _kind_of(geom)
    processor.geometry_begin(kind, dimension, srid)
    if kind.is_composite:
        for member in geom.geoms:
            _emit(member, processor, dimension, None)
    elif not geom.is_empty:
        if kind is GeometryKind.POLYGON:
            for ring in (geom.exterior, *geom.interiors):
                processor.ring_begin()
                for position in _positions(ring.coords, dimension):
                    processor.coordinate(position)
                processor.ring_end()
        else:
            for position in _positions(geom.coords, dimension):
                processor.coordinate(position)
    processor.geometry_end()
