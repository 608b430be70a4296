"""Format adapters.

Sources and sinks for concrete encodings, all speaking the processor
protocol:
- wkb: ISO WKB / EWKB and GeoPackage binary (source and sink)
- svg: SVG paths (sink)
- geojson: RFC 7946 GeoJSON (sink)
- kml: KML 2.2 documents (source)
- shapely_adapter: shapely geometries (source and sink)
- builder: geostream model values (sink)

The writer factory selects a sink by format name.
"""

from geostream.formats.builder import DatasetBuilder, GeometryBuilder
from geostream.formats.factory import (
    GEOJSON,
    GPKG,
    SVG,
    WKB,
    get_writer,
    list_writers,
    register_writer,
)
from geostream.formats.geojson import GeoJsonWriter
from geostream.formats.kml import KmlReader
from geostream.formats.shapely_adapter import ShapelyWriter, walk_shapely
from geostream.formats.svg import SvgWriter
from geostream.formats.wkb import (
    ByteCursor,
    GpkgReader,
    WkbReader,
    WkbWriter,
    process_gpkg_geom,
    process_wkb,
)

__all__ = [
    "GEOJSON",
    "GPKG",
    "SVG",
    "WKB",
    "ByteCursor",
    "DatasetBuilder",
    "GeoJsonWriter",
    "GeometryBuilder",
    "GpkgReader",
    "KmlReader",
    "ShapelyWriter",
    "SvgWriter",
    "WkbReader",
    "WkbWriter",
    "get_writer",
    "list_writers",
    "process_gpkg_geom",
    "process_wkb",
    "register_writer",
    "walk_shapely",
]
