"""Conversion entry points.

Each entry point composes a walker (or a reader) with a format writer:

    to_svg(geometry)            -> SVG fragment (str)
    to_svg_document(geometry)   -> standalone SVG document (str)
    to_svg(dataset)             -> SVG document for every feature (str)
    read_as_svg(reader, stream) -> SVG from any byte-stream reader (str)

and likewise for GeoJSON (``str``), WKB and GeoPackage binary
(``bytes``). ``convert`` and ``read_as`` are the generic forms taking a
format name registered with the writer factory.

The document form wraps a bare geometry in one implicit feature inside
one unnamed dataset. For SVG documents the viewBox is computed from the
geometry's bounding box and sized ``svg_width`` x ``svg_height`` unless
``svg_auto_viewbox`` is off; a zero-area bounding box leaves the
document unsized.

Text output is decoded as UTF-8; bytes that are not valid UTF-8 raise
``EncodingError``.
"""

from __future__ import annotations

import io
import logging
from typing import IO, TYPE_CHECKING

from geostream.core.config import GeoStreamConfig
from geostream.core.exceptions import EncodingError
from geostream.formats.builder import GeometryBuilder
from geostream.formats.factory import GEOJSON, GPKG, SVG, WKB, get_writer, is_binary
from geostream.protocol.bounds import BoundsProcessor
from geostream.protocol.processor import Datasource, DatasourceReader, FeatureProcessor
from geostream.protocol.validation import ValidatingProcessor
from geostream.walkers.geometry import walk_geometry

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry

    from geostream.models.geometry import Geometry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic forms
# ---------------------------------------------------------------------------


def convert(
    source: object,
    fmt: str,
    *,
    document: bool = False,
    config: GeoStreamConfig | None = None,
) -> str | bytes:
    """Convert a geometry or a datasource to the format named ``fmt``.

    Args:
        source: A geometry (model, shapely or ``GeometrySource``) or a
            ``Datasource`` such as ``Dataset``.
        fmt: A registered writer name (``"svg"``, ``"geojson"``, ...).
        document: Wrap a bare geometry in an implicit feature and dataset.
            Ignored for datasources, which always emit their own dataset.
        config: Conversion settings; defaults to ``GeoStreamConfig()``.

    Returns:
        ``str`` for text formats, ``bytes`` for binary ones.

    Raises:
        SinkError: If ``fmt`` is unknown or the writer rejects a call.
        EncodingError: If a text format produced invalid UTF-8.
        GeometryError: If the geometry cannot be walked.
    """
    config = config if config is not None else GeoStreamConfig()
    out = io.BytesIO()
    writer = get_writer(fmt, out, config)

    is_datasource = isinstance(source, Datasource)
    if fmt == SVG and (document or is_datasource):
        _apply_viewport(source, writer, config)

    sink = _wrap(writer, config)
    if is_datasource:
        source.process(sink)  # type: ignore[union-attr]
    elif document:
        _walk_document(source, sink)
    else:
        walk_geometry(source, sink)
    return _finish(sink, writer, out, fmt)


def read_as(
    reader: DatasourceReader,
    stream: IO[bytes],
    fmt: str,
    *,
    config: GeoStreamConfig | None = None,
) -> str | bytes:
    """Read ``stream`` with ``reader`` straight into the ``fmt`` writer.

    Raises:
        DecodeError: If the reader cannot decode the stream.
        SinkError: If ``fmt`` is unknown or the writer rejects a call.
        EncodingError: If a text format produced invalid UTF-8.
    """
    config = config if config is not None else GeoStreamConfig()
    out = io.BytesIO()
    writer = get_writer(fmt, out, config)
    sink = _wrap(writer, config)
    reader.read(stream, sink)
    return _finish(sink, writer, out, fmt)


def _wrap(writer: FeatureProcessor, config: GeoStreamConfig) -> FeatureProcessor:
    return ValidatingProcessor(writer) if config.validate_events else writer


def _finish(
    sink: FeatureProcessor, writer: FeatureProcessor, out: io.BytesIO, fmt: str
) -> str | bytes:
    if isinstance(sink, ValidatingProcessor):
        sink.finish()
    data = out.getvalue()
    logger.info("Converted to %s (%d bytes)", fmt, len(data))
    if is_binary(writer):
        return data
    return decode_text(data)


def decode_text(data: bytes) -> str:
    """Decode writer output as UTF-8.

    Raises:
        EncodingError: If ``data`` is not valid UTF-8.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        msg = f"Invalid UTF-8 encoding: {exc.reason}"
        raise EncodingError(msg, offset=exc.start) from exc


def _walk_document(geometry: object, processor: FeatureProcessor) -> None:
    processor.dataset_begin(None)
    processor.feature_begin(0)
    walk_geometry(geometry, processor)
    processor.feature_end(0)
    processor.dataset_end()


def _apply_viewport(source: object, writer: FeatureProcessor, config: GeoStreamConfig) -> None:
    set_dimensions = getattr(writer, "set_dimensions", None)
    if not config.svg_auto_viewbox or set_dimensions is None:
        return

    describe = getattr(source, "describe", None)
    if isinstance(source, Datasource):
        if describe is None:
            # Without a summary the source would have to be read twice.
            return
        bbox = describe().bbox or None
    else:
        bounds = BoundsProcessor()
        walk_geometry(source, bounds)
        bbox = bounds.bounds

    if bbox is None:
        return
    xmin, ymin, xmax, ymax = bbox
    if xmax <= xmin or ymax <= ymin:
        logger.debug("Zero-area bounds %s; SVG document left unsized", bbox)
        return
    set_dimensions(xmin, ymin, xmax, ymax, config.svg_width, config.svg_height)


# ---------------------------------------------------------------------------
# SVG
# ---------------------------------------------------------------------------


def to_svg(source: object, *, config: GeoStreamConfig | None = None) -> str:
    """Render a geometry as an SVG fragment, or a datasource as a document."""
    return convert(source, SVG, config=config)  # type: ignore[return-value]


def to_svg_document(geometry: object, *, config: GeoStreamConfig | None = None) -> str:
    """Render one geometry as a standalone SVG document."""
    return convert(geometry, SVG, document=True, config=config)  # type: ignore[return-value]


def read_as_svg(
    reader: DatasourceReader, stream: IO[bytes], *, config: GeoStreamConfig | None = None
) -> str:
    return read_as(reader, stream, SVG, config=config)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# GeoJSON
# ---------------------------------------------------------------------------


def to_geojson(source: object, *, config: GeoStreamConfig | None = None) -> str:
    """A geometry object for a geometry, a FeatureCollection for a datasource."""
    return convert(source, GEOJSON, config=config)  # type: ignore[return-value]


def to_geojson_document(geometry: object, *, config: GeoStreamConfig | None = None) -> str:
    """One geometry as a FeatureCollection holding a single feature."""
    return convert(geometry, GEOJSON, document=True, config=config)  # type: ignore[return-value]


def read_as_geojson(
    reader: DatasourceReader, stream: IO[bytes], *, config: GeoStreamConfig | None = None
) -> str:
    return read_as(reader, stream, GEOJSON, config=config)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Binary and in-memory targets
# ---------------------------------------------------------------------------


def to_wkb(geometry: object, *, config: GeoStreamConfig | None = None) -> bytes:
    return convert(geometry, WKB, config=config)  # type: ignore[return-value]


def to_gpkg_wkb(geometry: object, *, config: GeoStreamConfig | None = None) -> bytes:
    """Encode a geometry as a GeoPackage binary blob (SRID in the header)."""
    return convert(geometry, GPKG, config=config)  # type: ignore[return-value]


def to_geometry(geometry: object) -> Geometry | None:
    """Rebuild any walkable geometry as a ``geostream.models`` value."""
    builder = GeometryBuilder()
    walk_geometry(geometry, ValidatingProcessor(builder))
    return builder.geometry


def to_shapely(geometry: object) -> BaseGeometry | None:
    """Rebuild any walkable geometry as a shapely geometry."""
    from geostream.formats.shapely_adapter import ShapelyWriter

    writer = ShapelyWriter()
    walk_geometry(geometry, ValidatingProcessor(writer))
    return writer.geometry
