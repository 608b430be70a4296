"""GeoPackage geometry columns in SQLite.

Two levels of integration with ``sqlite3``:

- Column values: ``decode_geometry_column`` turns a GeoPackage geometry
  blob into a shapely geometry and ``encode_geometry_column`` does the
  reverse. ``register_sqlite_types`` installs both as sqlite3 converters
  and adapters, so a connection opened with
  ``detect_types=sqlite3.PARSE_DECLTYPES`` returns shapely geometries
  for columns declared ``POINT``, ``POLYGON``, ``GEOMETRY``, etc.
- Tables: ``GeoPackageDatasource`` replays one feature table as a
  dataset, streaming each blob straight into the processor without
  building an intermediate geometry.

Any failure while decoding a column value surfaces as
``ColumnDecodeError`` carrying the underlying error as ``cause``.
"""

from __future__ import annotations

import io
import logging
import sqlite3
from typing import TYPE_CHECKING

from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)

from geostream.core.constants import GPKG_GEOMETRY_TYPE_NAMES
from geostream.core.exceptions import ColumnDecodeError, DecodeError, GeoStreamError
from geostream.formats.shapely_adapter import ShapelyWriter
from geostream.formats.wkb import ByteCursor, WkbWriter, process_gpkg_geom
from geostream.models.feature import SCALAR_TYPES
from geostream.models.metadata import DatasetInfo
from geostream.walkers.geometry import walk_geometry

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry

    from geostream.protocol.processor import FeatureProcessor

logger = logging.getLogger(__name__)

_SHAPELY_CLASSES = (
    Point,
    LineString,
    Polygon,
    MultiPoint,
    MultiLineString,
    MultiPolygon,
    GeometryCollection,
)


# ---------------------------------------------------------------------------
# Column values
# ---------------------------------------------------------------------------


def decode_geometry_column(value: bytes | bytearray | memoryview | None) -> BaseGeometry | None:
    """Decode a GeoPackage geometry blob; SQL ``NULL`` decodes to ``None``.

    Raises:
        ColumnDecodeError: If the value is not a blob or cannot be decoded.
    """
    if value is None:
        return None
    if not isinstance(value, bytes | bytearray | memoryview):
        cause = DecodeError(
            "Geometry column value is not a blob", expected="bytes", actual=type(value).__name__
        )
        raise ColumnDecodeError(cause)

    writer = ShapelyWriter()
    try:
        process_gpkg_geom(ByteCursor(value), writer)
    except GeoStreamError as exc:
        raise ColumnDecodeError(exc) from exc
    return writer.geometry


def encode_geometry_column(geometry: object, *, srid: int | None = None) -> bytes:
    """Encode a geometry as a GeoPackage blob.

    Args:
        geometry: Any walkable geometry (shapely or model).
        srid: ``srs_id`` written to the header when the geometry has none.
    """
    out = io.BytesIO()
    walk_geometry(geometry, WkbWriter(out, gpkg=True), srid=srid)
    return out.getvalue()


def register_sqlite_types() -> None:
    """Register sqlite3 converters and adapters for GeoPackage geometries.

    Converters apply to connections opened with
    ``detect_types=sqlite3.PARSE_DECLTYPES``.
    """
    for type_name in GPKG_GEOMETRY_TYPE_NAMES:
        sqlite3.register_converter(type_name, decode_geometry_column)
    for cls in _SHAPELY_CLASSES:
        sqlite3.register_adapter(cls, encode_geometry_column)
    logger.debug("Registered sqlite3 GeoPackage types: %s", ", ".join(GPKG_GEOMETRY_TYPE_NAMES))


# ---------------------------------------------------------------------------
# Feature tables
# ---------------------------------------------------------------------------


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class GeoPackageDatasource:
    """One GeoPackage feature table as a datasource.

    Rows are read lazily from a cursor, so a table is never held in
    memory. Non-geometry columns holding scalars become properties;
    blob columns other than the geometry are skipped.

    Args:
        connection: An open ``sqlite3`` connection to the GeoPackage.
        table: Feature table name.
        geometry_column: Geometry column; looked up in
            ``gpkg_geometry_columns`` when omitted.

    Raises:
        DecodeError: If the table does not exist or its geometry column
            cannot be determined.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        table: str,
        *,
        geometry_column: str | None = None,
    ) -> None:
        self._connection = connection
        self.table = table

        exists = connection.execute(
            "SELECT 1 FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
            (table,),
        ).fetchone()
        if exists is None:
            msg = f"No table {table!r} in GeoPackage"
            raise DecodeError(msg, code="TABLE_NOT_FOUND")

        self.srid: int | None = None
        registered = self._geometry_column_entry()
        if geometry_column is None:
            if registered is None:
                msg = f"Table {table!r} is not registered in gpkg_geometry_columns"
                raise DecodeError(msg, code="GEOMETRY_COLUMN_NOT_FOUND")
            geometry_column = registered[0]
        if registered is not None and registered[0] == geometry_column:
            self.srid = registered[1]
        self.geometry_column = geometry_column

    def _geometry_column_entry(self) -> tuple[str, int] | None:
        try:
            row = self._connection.execute(
                "SELECT column_name, srs_id FROM gpkg_geometry_columns WHERE table_name = ?",
                (self.table,),
            ).fetchone()
        except sqlite3.OperationalError:
            return None
        return (row[0], row[1]) if row is not None else None

    def describe(self) -> DatasetInfo:
        """Summarise the table from ``gpkg_contents`` and a row count."""
        bbox: list[float] = []
        try:
            row = self._connection.execute(
                "SELECT min_x, min_y, max_x, max_y FROM gpkg_contents WHERE table_name = ?",
                (self.table,),
            ).fetchone()
        except sqlite3.OperationalError:
            row = None
        if row is not None and None not in row:
            bbox = [float(v) for v in row]

        (count,) = self._connection.execute(
            f"SELECT COUNT(*) FROM {_quote(self.table)}"  # noqa: S608
        ).fetchone()
        return DatasetInfo(name=self.table, srid=self.srid, bbox=bbox, feature_count=count)

    def process(self, processor: FeatureProcessor) -> None:
        """Replay every row as a feature inside one dataset."""
        cursor = self._connection.execute(f"SELECT * FROM {_quote(self.table)}")  # noqa: S608
        columns = [description[0] for description in cursor.description]
        if self.geometry_column not in columns:
            msg = f"Table {self.table!r} has no column {self.geometry_column!r}"
            raise DecodeError(msg, code="GEOMETRY_COLUMN_NOT_FOUND")
        geometry_index = columns.index(self.geometry_column)

        processor.dataset_begin(self.table)
        skipped: set[str] = set()
        count = 0
        for index, row in enumerate(cursor):
            processor.feature_begin(index)
            if processor.wants_properties:
                self._emit_properties(columns, geometry_index, row, processor, skipped)
            value = row[geometry_index]
            if isinstance(value, bytes | bytearray | memoryview):
                process_gpkg_geom(ByteCursor(value), processor)
            elif value is not None:
                # Already converted by register_sqlite_types.
                walk_geometry(value, processor, srid=self.srid)
            processor.feature_end(index)
            count += 1
        processor.dataset_end()
        logger.info("Read %d feature(s) from GeoPackage table %s", count, self.table)

    def _emit_properties(
        self,
        columns: list[str],
        geometry_index: int,
        row: tuple[object, ...],
        processor: FeatureProcessor,
        skipped: set[str],
    ) -> None:
        properties = []
        for position, (name, value) in enumerate(zip(columns, row, strict=True)):
            if position == geometry_index:
                continue
            if not isinstance(value, SCALAR_TYPES):
                if name in skipped:
                    continue
                skipped.add(name)
                logger.warning(
                    "Skipping non-scalar column %s (%s) in table %s",
                    name,
                    type(value).__name__,
                    self.table,
                )
                continue
            properties.append((name, value))
        if not properties:
            return
        processor.properties_begin()
        for name, value in properties:
            processor.property(name, value)
        processor.properties_end()
