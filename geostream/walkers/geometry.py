"""Geometry walker — replays one geometry as processor calls.

The walker is written once against ``FeatureProcessor`` and never
specialised per format. It accepts:

- ``geostream.models`` geometry values,
- shapely geometries (dispatched to ``geostream.formats.shapely_adapter``),
- anything else with a ``process_geom(processor)`` method.

Dimensionality is decided at the root and must hold for every member
and coordinate. Model values are checked in full before the first call,
so a mixed-dimension geometry fails with zero calls issued.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from geostream.core.exceptions import DimensionMismatchError, GeometryError
from geostream.models.geometry import (
    COMPOSITE_TYPES,
    GEOMETRY_TYPES,
    Dimension,
    GeometryKind,
    LineString,
    Point,
    Polygon,
    members_of,
)
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from geostream.models.feature import PropertyValue
    from geostream.models.geometry import Coordinate, Geometry

logger = logging.getLogger(__name__)


def walk_geometry(
    geometry: object,
    processor: FeatureProcessor,
    *,
    dimension: Dimension | None = None,
    srid: int | None = None,
) -> None:
    """Emit ``geometry`` into ``processor``.

    Args:
        geometry: A model geometry, a shapely geometry, or a
            ``GeometrySource``.
        processor: The sink.
        dimension: Expected dimensionality; a mismatch fails before any call.
        srid: SRID to emit when the geometry carries none.

    Raises:
        GeometryError: If the geometry cannot be walked.
        DimensionMismatchError: If members disagree on dimensionality, or
            the geometry does not have the expected ``dimension``.
        GeoStreamError: Whatever the processor raises, unchanged.
    """
    if isinstance(geometry, GEOMETRY_TYPES):
        _walk_model(geometry, processor, dimension=dimension, srid=srid)
        return

    if _is_shapely(geometry):
        from geostream.formats.shapely_adapter import walk_shapely

        walk_shapely(geometry, processor, dimension=dimension, srid=srid)
        return

    process_geom = getattr(geometry, "process_geom", None)
    if callable(process_geom):
        if dimension is not None:
            processor = _DimensionGuard(processor, dimension)
        process_geom(processor)
        return

    msg = f"Cannot walk {type(geometry).__name__}: not a geometry or geometry source"
    raise GeometryError(msg)


def _is_shapely(obj: object) -> bool:
    module = type(obj).__module__
    if not module.startswith("shapely"):
        return False
    from shapely.geometry.base import BaseGeometry

    return isinstance(obj, BaseGeometry)


class _DimensionGuard(FeatureProcessor):
    """Forward every call, rejecting a root geometry of the wrong dimension.

    Used for ``process_geom`` sources, whose dimensionality is only known
    once they emit their root ``geometry_begin``.
    """

    def __init__(self, inner: FeatureProcessor, dimension: Dimension) -> None:
        self.inner = inner
        self.dimension = dimension
        self.wants_properties = inner.wants_properties
        self._depth = 0

    def dataset_begin(self, name: str | None) -> None:
        self.inner.dataset_begin(name)

    def dataset_end(self) -> None:
        self.inner.dataset_end()

    def feature_begin(self, index: int) -> None:
        self.inner.feature_begin(index)

    def feature_end(self, index: int) -> None:
        self.inner.feature_end(index)

    def properties_begin(self) -> None:
        self.inner.properties_begin()

    def property(self, name: str, value: PropertyValue) -> None:
        self.inner.property(name, value)

    def properties_end(self) -> None:
        self.inner.properties_end()

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        if self._depth == 0 and Dimension(dimension) is not self.dimension:
            msg = (
                f"{GeometryKind(kind).value} has dimension {Dimension(dimension).value}, "
                f"expected {self.dimension.value}"
            )
            raise DimensionMismatchError(msg)
        self._depth += 1
        self.inner.geometry_begin(kind, dimension, srid)

    def geometry_end(self) -> None:
        self._depth -= 1
        self.inner.geometry_end()

    def ring_begin(self) -> None:
        self.inner.ring_begin()

    def ring_end(self) -> None:
        self.inner.ring_end()

    def coordinate(self, values: Sequence[float]) -> None:
        self.inner.coordinate(values)


# ---------------------------------------------------------------------------
# Model geometries
# ---------------------------------------------------------------------------


def _walk_model(
    geometry: Geometry,
    processor: FeatureProcessor,
    *,
    dimension: Dimension | None,
    srid: int | None,
) -> None:
    root_dimension = Dimension(geometry.dimension)
    if dimension is not None and root_dimension is not dimension:
        msg = (
            f"{geometry.kind.value} has dimension {root_dimension.value}, "
            f"expected {dimension.value}"
        )
        raise DimensionMismatchError(msg)

    check_geometry(geometry)

    root_srid = geometry.srid if geometry.srid is not None else srid
    logger.debug(
        "Walking %s (%s, srid=%s)", geometry.kind.value, root_dimension.value, root_srid
    )
    _emit(geometry, processor, root_dimension, root_srid)


def check_geometry(geometry: Geometry) -> None:
    """Validate a model geometry without emitting anything.

    Raises:
        DimensionMismatchError: If any member or coordinate disagrees with
            the root dimensionality.
        GeometryError: If a member has the wrong kind for its parent.
    """
    _check(geometry, Dimension(geometry.dimension), path=geometry.kind.value)


def _check(geometry: Geometry, dimension: Dimension, *, path: str) -> None:
    if not isinstance(geometry, GEOMETRY_TYPES):
        msg = f"{path}: {type(geometry).__name__} is not a geometry"
        raise GeometryError(msg)
    own = Dimension(geometry.dimension)
    if own is not dimension:
        msg = f"{path}: dimension {own.value} differs from root {dimension.value}"
        raise DimensionMismatchError(msg)

    if isinstance(geometry, Point):
        if geometry.coordinate is not None:
            _check_coordinates((geometry.coordinate,), dimension, path)
    elif isinstance(geometry, LineString):
        _check_coordinates(geometry.coordinates, dimension, path)
    elif isinstance(geometry, Polygon):
        for ring_index, ring in enumerate(geometry.rings):
            _check_coordinates(ring, dimension, f"{path}/ring[{ring_index}]")
    else:
        expected = geometry.kind.member_kind
        for index, member in enumerate(members_of(geometry)):
            member_path = f"{path}/{index}"
            if expected is not None and getattr(member, "kind", None) is not expected:
                msg = f"{member_path}: {geometry.kind.value} member must be {expected.value}"
                raise GeometryError(msg)
            _check(member, dimension, path=member_path)


def _check_coordinates(
    coordinates: Iterable[Coordinate], dimension: Dimension, path: str
) -> None:
    for index, coordinate in enumerate(coordinates):
        if len(coordinate) != dimension.size:
            msg = (
                f"{path}: coordinate {index} has {len(coordinate)} components, "
                f"dimension {dimension.value} needs {dimension.size}"
            )
            raise DimensionMismatchError(msg)


def _emit(
    geometry: Geometry,
    processor: FeatureProcessor,
    dimension: Dimension,
    srid: int | None,
) -> None:
    processor.geometry_begin(geometry.kind, dimension, srid)

    if isinstance(geometry, Point):
        if geometry.coordinate is not None:
            processor.coordinate(geometry.coordinate)
    elif isinstance(geometry, LineString):
        for coordinate in geometry.coordinates:
            processor.coordinate(coordinate)
    elif isinstance(geometry, Polygon):
        for ring in geometry.rings:
            processor.ring_begin()
            for coordinate in ring:
                processor.coordinate(coordinate)
            processor.ring_end()
    elif isinstance(geometry, COMPOSITE_TYPES):
        for member in members_of(geometry):
            _emit(member, processor, dimension, None)

    processor.geometry_end()
