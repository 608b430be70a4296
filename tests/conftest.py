"""Shared pytest fixtures for the geostream test suite.

WKB vectors are packed by hand with ``struct`` so that decoder tests do
not depend on the encoder under test.
"""

from __future__ import annotations

import struct
from pathlib import Path

import pytest

from geostream.models import (
    Dimension,
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    point,
)

# ---------------------------------------------------------------------------
# Path fixtures
# ---------------------------------------------------------------------------

TESTS_DIR = Path(__file__).parent
DATA_DIR = TESTS_DIR / "data"


@pytest.fixture()
def data_dir() -> Path:
    """Return the path to the test data directory."""
    return DATA_DIR


@pytest.fixture()
def orchard_kml(data_dir: Path) -> Path:
    """KML document with five placemarks covering every geometry type."""
    return data_dir / "orchard_blocks.kml"


# ---------------------------------------------------------------------------
# Model geometries
# ---------------------------------------------------------------------------

SQUARE = ((0, 0), (4, 0), (4, 4), (0, 4), (0, 0))
HOLE = ((1, 1), (2, 1), (2, 2), (1, 1))


@pytest.fixture()
def square() -> Polygon:
    """4 x 4 square with a triangular hole."""
    return Polygon((SQUARE, HOLE))


@pytest.fixture()
def sample_geometries() -> list:
    """One geometry of every kind, including nesting and 3D."""
    line = LineString(((0, 0), (1, 1), (2, 0)))
    return [
        point(220, 10),
        Point(),
        line,
        Polygon((SQUARE, HOLE)),
        MultiPoint((point(1, 2), point(3, 4))),
        MultiLineString((line, LineString(((5, 5), (6, 6))))),
        MultiPolygon((Polygon((SQUARE,)), Polygon((HOLE,)))),
        GeometryCollection(
            (point(0, 0), line, MultiPolygon((Polygon((SQUARE, HOLE)),)))
        ),
        LineString(((0, 0, 1), (1, 1, 2)), Dimension.XYZ),
        point(1, 2, 3, 4),
    ]


# ---------------------------------------------------------------------------
# Hand-packed WKB
# ---------------------------------------------------------------------------


@pytest.fixture()
def wkb_point() -> bytes:
    """Little-endian ISO WKB POINT (220 10)."""
    return struct.pack("<BIdd", 1, 1, 220.0, 10.0)


@pytest.fixture()
def wkb_point_big_endian() -> bytes:
    """Big-endian ISO WKB POINT (220 10)."""
    return struct.pack(">BIdd", 0, 1, 220.0, 10.0)


@pytest.fixture()
def wkb_linestring() -> bytes:
    """LINESTRING (0 0, 1 1, 2 0, 3 1, 4 0)."""
    coords = (0.0, 0.0, 1.0, 1.0, 2.0, 0.0, 3.0, 1.0, 4.0, 0.0)
    return struct.pack("<BII", 1, 2, 5) + struct.pack("<10d", *coords)


@pytest.fixture()
def wkb_polygon_with_hole() -> bytes:
    """POLYGON with a 5-point exterior ring and a 4-point hole."""
    exterior = [c for xy in SQUARE for c in xy]
    hole = [c for xy in HOLE for c in xy]
    return (
        struct.pack("<BII", 1, 3, 2)
        + struct.pack("<I", 5)
        + struct.pack("<10d", *exterior)
        + struct.pack("<I", 4)
        + struct.pack("<8d", *hole)
    )


@pytest.fixture()
def wkb_multipoint_z() -> bytes:
    """ISO MULTIPOINT Z ((1 2 3), (4 5 6))."""
    return (
        struct.pack("<BII", 1, 1004, 2)
        + struct.pack("<BI3d", 1, 1001, 1.0, 2.0, 3.0)
        + struct.pack("<BI3d", 1, 1001, 4.0, 5.0, 6.0)
    )


@pytest.fixture()
def ewkb_point_srid() -> bytes:
    """PostGIS EWKB SRID=4326;POINT (1 2)."""
    return struct.pack("<BIidd", 1, 1 | 0x20000000, 4326, 1.0, 2.0)


@pytest.fixture()
def gpkg_point(wkb_point: bytes) -> bytes:
    """GeoPackage blob: SRID 4326, XY envelope, POINT (220 10)."""
    flags = 0x01 | (1 << 1)
    header = b"GP" + bytes((0, flags)) + struct.pack("<i", 4326)
    envelope = struct.pack("<4d", 220.0, 220.0, 10.0, 10.0)
    return header + envelope + wkb_point
