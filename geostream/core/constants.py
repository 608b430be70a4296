"""Shared binary-format constants — single source of truth.

Type codes and flag bits for WKB (ISO and PostGIS EWKB flavours) and
the GeoPackage binary header, plus the SQL type names GeoPackage uses
for geometry columns.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# WKB
# ---------------------------------------------------------------------------

WKB_BIG_ENDIAN = 0
WKB_LITTLE_ENDIAN = 1

# ISO WKB adds 1000 (Z), 2000 (M) or 3000 (ZM) to the base type code.
ISO_Z_OFFSET = 1000
ISO_M_OFFSET = 2000
ISO_ZM_OFFSET = 3000

# EWKB sets high bits on the type code instead.
EWKB_Z_FLAG = 0x80000000
EWKB_M_FLAG = 0x40000000
EWKB_SRID_FLAG = 0x20000000
EWKB_TYPE_MASK = 0x0FFFFFFF

# ---------------------------------------------------------------------------
# GeoPackage binary header
# ---------------------------------------------------------------------------

GPKG_MAGIC = b"GP"
GPKG_VERSION = 0
GPKG_HEADER_SIZE = 8

GPKG_FLAG_LITTLE_ENDIAN = 0x01
GPKG_FLAG_EMPTY = 0x10
GPKG_FLAG_EXTENDED = 0x20
GPKG_ENVELOPE_SHIFT = 1
GPKG_ENVELOPE_MASK = 0x07

# Envelope indicator -> number of doubles in the envelope.
GPKG_ENVELOPE_DOUBLES: dict[int, int] = {0: 0, 1: 4, 2: 6, 3: 6, 4: 8}

# SQL type names GeoPackage declares for geometry columns.
GPKG_GEOMETRY_TYPE_NAMES = (
    "GEOMETRY",
    "POINT",
    "LINESTRING",
    "POLYGON",
    "MULTIPOINT",
    "MULTILINESTRING",
    "MULTIPOLYGON",
    "GEOMCOLLECTION",
)

# ---------------------------------------------------------------------------
# KML
# ---------------------------------------------------------------------------

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"

# KML coordinates are always WGS 84 longitude/latitude.
KML_SRID = 4326

# ---------------------------------------------------------------------------
# SVG
# ---------------------------------------------------------------------------

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
