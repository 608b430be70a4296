"""In-memory geometry values.

A geometry is one of seven kinds. Leaf kinds own coordinate tuples;
composite kinds own member geometries. Dimensionality is fixed per
geometry and shared by all its members; the walker checks that before
it emits anything.

Values are frozen dataclasses with structural equality, so a geometry
rebuilt from processor calls compares equal to the one that was walked.
Inputs are normalised to tuples of floats on construction.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, TypeAlias

if TYPE_CHECKING:
    from geostream.protocol.processor import FeatureProcessor

Coordinate: TypeAlias = tuple[float, ...]


class GeometryKind(str, Enum):
    """Geometry kinds, valued by their OGC names."""

    POINT = "Point"
    LINESTRING = "LineString"
    POLYGON = "Polygon"
    MULTIPOINT = "MultiPoint"
    MULTILINESTRING = "MultiLineString"
    MULTIPOLYGON = "MultiPolygon"
    GEOMETRYCOLLECTION = "GeometryCollection"

    @property
    def wkb_code(self) -> int:
        return _WKB_CODES[self]

    @property
    def is_composite(self) -> bool:
        return self in _MEMBER_KINDS or self is GeometryKind.GEOMETRYCOLLECTION

    @property
    def member_kind(self) -> GeometryKind | None:
        """Kind every member must have; ``None`` for leaves and collections."""
        return _MEMBER_KINDS.get(self)

    @classmethod
    def from_wkb_code(cls, code: int) -> GeometryKind | None:
        return _KINDS_BY_CODE.get(code)


_WKB_CODES = {
    GeometryKind.POINT: 1,
    GeometryKind.LINESTRING: 2,
    GeometryKind.POLYGON: 3,
    GeometryKind.MULTIPOINT: 4,
    GeometryKind.MULTILINESTRING: 5,
    GeometryKind.MULTIPOLYGON: 6,
    GeometryKind.GEOMETRYCOLLECTION: 7,
}
_KINDS_BY_CODE = {code: kind for kind, code in _WKB_CODES.items()}
_MEMBER_KINDS = {
    GeometryKind.MULTIPOINT: GeometryKind.POINT,
    GeometryKind.MULTILINESTRING: GeometryKind.LINESTRING,
    GeometryKind.MULTIPOLYGON: GeometryKind.POLYGON,
}


class Dimension(str, Enum):
    """Number and meaning of coordinate components."""

    XY = "XY"
    XYZ = "XYZ"
    XYM = "XYM"
    XYZM = "XYZM"

    @property
    def size(self) -> int:
        return len(self.value)

    @property
    def has_z(self) -> bool:
        return "Z" in self.value

    @property
    def has_m(self) -> bool:
        return "M" in self.value

    @classmethod
    def from_flags(cls, has_z: bool, has_m: bool) -> Dimension:
        if has_z and has_m:
            return cls.XYZM
        if has_z:
            return cls.XYZ
        if has_m:
            return cls.XYM
        return cls.XY

    @classmethod
    def from_size(cls, size: int) -> Dimension:
        """Infer a dimension from a component count; 3 means XYZ.

        Raises:
            ValueError: If ``size`` is not 2, 3 or 4.
        """
        try:
            return {2: cls.XY, 3: cls.XYZ, 4: cls.XYZM}[size]
        except KeyError:
            msg = f"Coordinates must have 2, 3 or 4 components, got {size}"
            raise ValueError(msg) from None


def _coordinate(values: Iterable[float]) -> Coordinate:
    return tuple(float(v) for v in values)


def _coordinates(values: Iterable[Iterable[float]]) -> tuple[Coordinate, ...]:
    return tuple(_coordinate(c) for c in values)


class _GeometryBase:
    """Behaviour shared by every geometry value."""

    __slots__ = ()

    kind: ClassVar[GeometryKind]

    def process_geom(self, processor: FeatureProcessor) -> None:
        """Replay this geometry as processor calls."""
        from geostream.walkers.geometry import walk_geometry

        walk_geometry(self, processor)


# ---------------------------------------------------------------------------
# Leaf kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Point(_GeometryBase):
    """A single position; ``coordinate=None`` is the empty point."""

    coordinate: Coordinate | None = None
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.POINT

    def __post_init__(self) -> None:
        if self.coordinate is not None:
            object.__setattr__(self, "coordinate", _coordinate(self.coordinate))

    @property
    def is_empty(self) -> bool:
        return self.coordinate is None


@dataclass(frozen=True, slots=True)
class LineString(_GeometryBase):
    coordinates: tuple[Coordinate, ...] = ()
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.LINESTRING

    def __post_init__(self) -> None:
        object.__setattr__(self, "coordinates", _coordinates(self.coordinates))


@dataclass(frozen=True, slots=True)
class Polygon(_GeometryBase):
    """Rings in order: the first ring is the exterior, the rest are holes.

    Closure (first coordinate == last) is expected but not enforced.
    """

    rings: tuple[tuple[Coordinate, ...], ...] = ()
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.POLYGON

    def __post_init__(self) -> None:
        object.__setattr__(self, "rings", tuple(_coordinates(r) for r in self.rings))

    @property
    def exterior(self) -> tuple[Coordinate, ...]:
        return self.rings[0] if self.rings else ()

    @property
    def interiors(self) -> tuple[tuple[Coordinate, ...], ...]:
        return self.rings[1:]


# ---------------------------------------------------------------------------
# Composite kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MultiPoint(_GeometryBase):
    points: tuple[Point, ...] = ()
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.MULTIPOINT

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))

    @property
    def members(self) -> tuple[Point, ...]:
        return self.points


@dataclass(frozen=True, slots=True)
class MultiLineString(_GeometryBase):
    lines: tuple[LineString, ...] = ()
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.MULTILINESTRING

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def members(self) -> tuple[LineString, ...]:
        return self.lines


@dataclass(frozen=True, slots=True)
class MultiPolygon(_GeometryBase):
    polygons: tuple[Polygon, ...] = ()
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.MULTIPOLYGON

    def __post_init__(self) -> None:
        object.__setattr__(self, "polygons", tuple(self.polygons))

    @property
    def members(self) -> tuple[Polygon, ...]:
        return self.polygons


@dataclass(frozen=True, slots=True)
class GeometryCollection(_GeometryBase):
    geometries: tuple[Geometry, ...] = field(default=())
    dimension: Dimension = Dimension.XY
    srid: int | None = None

    kind: ClassVar[GeometryKind] = GeometryKind.GEOMETRYCOLLECTION

    def __post_init__(self) -> None:
        object.__setattr__(self, "geometries", tuple(self.geometries))

    @property
    def members(self) -> tuple[Geometry, ...]:
        return self.geometries


Geometry: TypeAlias = (
    Point
    | LineString
    | Polygon
    | MultiPoint
    | MultiLineString
    | MultiPolygon
    | GeometryCollection
)

GEOMETRY_TYPES = (
    Point,
    LineString,
    Polygon,
    MultiPoint,
    MultiLineString,
    MultiPolygon,
    GeometryCollection,
)

COMPOSITE_TYPES = (MultiPoint, MultiLineString, MultiPolygon, GeometryCollection)


def point(*values: float, srid: int | None = None) -> Point:
    """Build a point from 2, 3 (XYZ) or 4 components."""
    return Point(values, dimension=Dimension.from_size(len(values)), srid=srid)


def members_of(geometry: Geometry) -> Sequence[Geometry]:
    """Members of a composite geometry; empty for leaves."""
    if isinstance(geometry, COMPOSITE_TYPES):
        return geometry.members
    return ()
