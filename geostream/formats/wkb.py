"""WKB and GeoPackage binary geometries.

Decoding reads ISO WKB and PostGIS EWKB (Z/M/SRID flag bits) from an
explicit ``ByteCursor`` and calls a processor as it goes. Before the
first call the whole geometry is scanned once without emitting: byte
order markers, type codes, member kinds, uniform dimensionality and
every declared length are checked against the buffer. A truncated or
malformed buffer therefore raises ``DecodeError`` with zero processor
calls, and on success the cursor ends up immediately after the
geometry.

GeoPackage blobs are WKB behind a small header::

    magic "GP" | version 0 | flags | srs_id (int32) | envelope (0-8 doubles)

flags bit 0 is the header byte order, bits 1-3 the envelope indicator,
bit 4 the empty flag and bit 5 the extended-type flag (not supported).

Encoding (``WkbWriter``) is the inverse: a sink that assembles ISO WKB,
optionally behind a GeoPackage header carrying the root SRID.
"""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING

from geostream.core.constants import (
    EWKB_M_FLAG,
    EWKB_SRID_FLAG,
    EWKB_TYPE_MASK,
    EWKB_Z_FLAG,
    GPKG_ENVELOPE_DOUBLES,
    GPKG_ENVELOPE_MASK,
    GPKG_ENVELOPE_SHIFT,
    GPKG_FLAG_EMPTY,
    GPKG_FLAG_EXTENDED,
    GPKG_FLAG_LITTLE_ENDIAN,
    GPKG_HEADER_SIZE,
    GPKG_MAGIC,
    GPKG_VERSION,
    ISO_M_OFFSET,
    ISO_Z_OFFSET,
    ISO_ZM_OFFSET,
    WKB_BIG_ENDIAN,
    WKB_LITTLE_ENDIAN,
)
from geostream.core.exceptions import DecodeError, SinkError
from geostream.models.geometry import Dimension, GeometryKind
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geostream.core.config import GeoStreamConfig

logger = logging.getLogger(__name__)

# Guards against hostile blobs nesting collections without bound.
MAX_NESTING_DEPTH = 64

_WKB_HEADER_SIZE = 5
_COUNT_SIZE = 4
_DOUBLE_SIZE = 8


class ByteCursor:
    """An offset into a borrowed byte region.

    Decoders read from ``view`` starting at ``offset`` and advance
    ``offset`` past what they consumed. The cursor never copies the
    underlying bytes.
    """

    __slots__ = ("offset", "view")

    def __init__(self, data: bytes | bytearray | memoryview, offset: int = 0) -> None:
        self.view = memoryview(data)
        if not 0 <= offset <= len(self.view):
            msg = f"Offset {offset} outside buffer of {len(self.view)} bytes"
            raise ValueError(msg)
        self.offset = offset

    def __len__(self) -> int:
        return len(self.view)

    @property
    def remaining(self) -> int:
        return len(self.view) - self.offset


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class _WkbDecoder:
    """Recursive WKB reader; with ``processor=None`` it only scans."""

    def __init__(self, view: memoryview, processor: FeatureProcessor | None) -> None:
        self._view = view
        self._processor = processor

    def _require(self, offset: int, size: int, what: str) -> None:
        available = len(self._view) - offset
        if size > available:
            msg = f"Truncated {what}: need {size} bytes, {max(available, 0)} available"
            raise DecodeError(msg, offset=offset, expected=size, actual=max(available, 0))

    def _header(
        self, offset: int
    ) -> tuple[str, GeometryKind, Dimension, int | None, int]:
        self._require(offset, _WKB_HEADER_SIZE, "WKB header")
        marker = self._view[offset]
        if marker == WKB_LITTLE_ENDIAN:
            order = "<"
        elif marker == WKB_BIG_ENDIAN:
            order = ">"
        else:
            msg = "Invalid WKB byte order marker"
            raise DecodeError(msg, offset=offset, expected="0 or 1", actual=marker)

        (code,) = struct.unpack_from(f"{order}I", self._view, offset + 1)
        has_z = bool(code & EWKB_Z_FLAG)
        has_m = bool(code & EWKB_M_FLAG)
        base = code & EWKB_TYPE_MASK
        if base >= ISO_Z_OFFSET:
            iso_dims = base - base % ISO_Z_OFFSET
            base %= ISO_Z_OFFSET
            if iso_dims == ISO_Z_OFFSET:
                has_z = True
            elif iso_dims == ISO_M_OFFSET:
                has_m = True
            elif iso_dims == ISO_ZM_OFFSET:
                has_z = has_m = True
            else:
                msg = "Unknown WKB dimension offset"
                raise DecodeError(msg, offset=offset + 1, expected="1000-3000", actual=code)

        kind = GeometryKind.from_wkb_code(base)
        if kind is None:
            msg = "Unknown WKB geometry type"
            raise DecodeError(msg, offset=offset + 1, expected="type code 1-7", actual=code)

        offset += _WKB_HEADER_SIZE
        srid = None
        if code & EWKB_SRID_FLAG:
            self._require(offset, 4, "EWKB SRID")
            (srid,) = struct.unpack_from(f"{order}i", self._view, offset)
            offset += 4
        return order, kind, Dimension.from_flags(has_z, has_m), srid, offset

    def _count(self, order: str, offset: int, what: str) -> int:
        self._require(offset, _COUNT_SIZE, what)
        (count,) = struct.unpack_from(f"{order}I", self._view, offset)
        return count

    def geometry(
        self,
        offset: int,
        *,
        srid: int | None = None,
        dimension: Dimension | None = None,
        parent: GeometryKind | None = None,
        depth: int = 0,
    ) -> int:
        """Read one geometry at ``offset`` and return the offset after it."""
        if depth > MAX_NESTING_DEPTH:
            msg = "WKB nesting too deep"
            raise DecodeError(msg, offset=offset, expected=f"<= {MAX_NESTING_DEPTH}", actual=depth)

        start = offset
        order, kind, own_dimension, ewkb_srid, offset = self._header(offset)

        if parent is not None:
            expected = parent.member_kind
            if expected is not None and kind is not expected:
                msg = f"{parent.value} member has the wrong type"
                raise DecodeError(msg, offset=start, expected=expected.value, actual=kind.value)
            if own_dimension is not dimension:
                msg = (
                    f"{kind.value} member dimension {own_dimension.value} differs from "
                    f"{parent.value} dimension {dimension.value}"  # type: ignore[union-attr]
                )
                raise DecodeError(
                    msg,
                    offset=start,
                    expected=dimension.value,  # type: ignore[union-attr]
                    actual=own_dimension.value,
                )
            node_srid = None
        else:
            node_srid = ewkb_srid if ewkb_srid is not None else srid

        processor = self._processor
        if processor is not None:
            processor.geometry_begin(kind, own_dimension, node_srid)

        if kind is GeometryKind.POINT:
            offset = self._point(order, offset, own_dimension)
        elif kind is GeometryKind.LINESTRING:
            offset = self._coordinates(order, offset, own_dimension, "LineString")
        elif kind is GeometryKind.POLYGON:
            rings = self._count(order, offset, "Polygon ring count")
            offset += _COUNT_SIZE
            for ring in range(rings):
                if processor is not None:
                    processor.ring_begin()
                offset = self._coordinates(order, offset, own_dimension, f"Polygon ring {ring}")
                if processor is not None:
                    processor.ring_end()
        else:
            members = self._count(order, offset, f"{kind.value} member count")
            offset += _COUNT_SIZE
            # Every member needs at least a header.
            self._require(offset, members * _WKB_HEADER_SIZE, f"{kind.value} members")
            for _ in range(members):
                offset = self.geometry(
                    offset, dimension=own_dimension, parent=kind, depth=depth + 1
                )

        if processor is not None:
            processor.geometry_end()
        return offset

    def _point(self, order: str, offset: int, dimension: Dimension) -> int:
        size = dimension.size * _DOUBLE_SIZE
        self._require(offset, size, "Point coordinates")
        if self._processor is not None:
            values = struct.unpack_from(f"{order}{dimension.size}d", self._view, offset)
            # WKB encodes the empty point as all-NaN.
            if not all(math.isnan(v) for v in values):
                self._processor.coordinate(values)
        return offset + size

    def _coordinates(self, order: str, offset: int, dimension: Dimension, what: str) -> int:
        count = self._count(order, offset, f"{what} point count")
        offset += _COUNT_SIZE
        stride = dimension.size * _DOUBLE_SIZE
        self._require(offset, count * stride, f"{what} coordinates")
        if self._processor is not None:
            fmt = f"{order}{dimension.size}d"
            for index in range(count):
                self._processor.coordinate(
                    struct.unpack_from(fmt, self._view, offset + index * stride)
                )
        return offset + count * stride


def _decode(
    view: memoryview,
    offset: int,
    processor: FeatureProcessor,
    *,
    srid: int | None,
    exact: bool,
) -> int:
    end = _WkbDecoder(view, None).geometry(offset, srid=srid)
    if exact and end != len(view):
        msg = "Trailing bytes after geometry"
        raise DecodeError(msg, offset=end, expected=end, actual=len(view))
    _WkbDecoder(view, processor).geometry(offset, srid=srid)
    return end


def process_wkb(
    cursor: ByteCursor, processor: FeatureProcessor, *, srid: int | None = None
) -> None:
    """Decode one WKB/EWKB geometry at the cursor into ``processor``.

    Args:
        cursor: Positioned at the geometry's byte-order marker; advanced
            past the geometry on success, untouched on failure.
        processor: The sink.
        srid: Root SRID when the encoding carries none.

    Raises:
        DecodeError: If the bytes are malformed or truncated (no calls made).
        GeoStreamError: Whatever the processor raises, unchanged.
    """
    cursor.offset = _decode(cursor.view, cursor.offset, processor, srid=srid, exact=False)


@dataclass(frozen=True, slots=True)
class GpkgHeader:
    """Parsed GeoPackage binary header.

    Attributes:
        srid: ``srs_id`` from the header.
        envelope: Envelope doubles (``minx, maxx, miny, maxy[, ...]``).
        empty: Whether the empty flag is set.
        little_endian: Byte order of the header values.
        size: Header length in bytes, i.e. where the WKB starts.
    """

    srid: int
    envelope: tuple[float, ...] = field(default=())
    empty: bool = False
    little_endian: bool = True
    size: int = GPKG_HEADER_SIZE


def read_gpkg_header(cursor: ByteCursor) -> GpkgHeader:
    """Parse and validate the GeoPackage header at the cursor (not advanced).

    Raises:
        DecodeError: On bad magic, version, flags or a truncated envelope.
    """
    view, offset = cursor.view, cursor.offset
    available = len(view) - offset
    if available < GPKG_HEADER_SIZE:
        msg = "Truncated GeoPackage header"
        raise DecodeError(msg, offset=offset, expected=GPKG_HEADER_SIZE, actual=available)

    magic = bytes(view[offset : offset + 2])
    if magic != GPKG_MAGIC:
        msg = "Not a GeoPackage geometry blob"
        raise DecodeError(msg, offset=offset, expected=GPKG_MAGIC, actual=magic)

    version = view[offset + 2]
    if version != GPKG_VERSION:
        msg = "Unsupported GeoPackage binary version"
        raise DecodeError(msg, offset=offset + 2, expected=GPKG_VERSION, actual=version)

    flags = view[offset + 3]
    if flags & GPKG_FLAG_EXTENDED:
        msg = "Extended GeoPackage geometry types are not supported"
        raise DecodeError(msg, offset=offset + 3, expected="standard", actual="extended")

    indicator = (flags >> GPKG_ENVELOPE_SHIFT) & GPKG_ENVELOPE_MASK
    doubles = GPKG_ENVELOPE_DOUBLES.get(indicator)
    if doubles is None:
        msg = "Invalid GeoPackage envelope indicator"
        raise DecodeError(msg, offset=offset + 3, expected="0-4", actual=indicator)

    order = "<" if flags & GPKG_FLAG_LITTLE_ENDIAN else ">"
    (srid,) = struct.unpack_from(f"{order}i", view, offset + 4)

    envelope_size = doubles * _DOUBLE_SIZE
    if available - GPKG_HEADER_SIZE < envelope_size:
        msg = "Truncated GeoPackage envelope"
        raise DecodeError(
            msg,
            offset=offset + GPKG_HEADER_SIZE,
            expected=envelope_size,
            actual=available - GPKG_HEADER_SIZE,
        )
    envelope = struct.unpack_from(f"{order}{doubles}d", view, offset + GPKG_HEADER_SIZE)

    return GpkgHeader(
        srid=srid,
        envelope=envelope,
        empty=bool(flags & GPKG_FLAG_EMPTY),
        little_endian=bool(flags & GPKG_FLAG_LITTLE_ENDIAN),
        size=GPKG_HEADER_SIZE + envelope_size,
    )


def process_gpkg_geom(cursor: ByteCursor, processor: FeatureProcessor) -> None:
    """Decode one GeoPackage geometry blob at the cursor into ``processor``.

    The header ``srs_id`` becomes the root SRID. The cursor is advanced
    past the blob on success and untouched on failure.

    Raises:
        DecodeError: If the header or the WKB payload is malformed (no
            calls made).
        GeoStreamError: Whatever the processor raises, unchanged.
    """
    header = read_gpkg_header(cursor)
    logger.debug(
        "GeoPackage header: srid=%d envelope=%s empty=%s",
        header.srid,
        header.envelope,
        header.empty,
    )
    cursor.offset = _decode(
        cursor.view, cursor.offset + header.size, processor, srid=header.srid, exact=False
    )


class WkbReader:
    """Read a stream holding exactly one WKB geometry."""

    @staticmethod
    def read(stream: IO[bytes], processor: FeatureProcessor) -> None:
        data = stream.read()
        _decode(memoryview(data), 0, processor, srid=None, exact=True)


class GpkgReader:
    """Read a stream holding exactly one GeoPackage geometry blob."""

    @staticmethod
    def read(stream: IO[bytes], processor: FeatureProcessor) -> None:
        cursor = ByteCursor(stream.read())
        header = read_gpkg_header(cursor)
        _decode(cursor.view, header.size, processor, srid=header.srid, exact=True)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

_ISO_OFFSETS = {
    Dimension.XY: 0,
    Dimension.XYZ: ISO_Z_OFFSET,
    Dimension.XYM: ISO_M_OFFSET,
    Dimension.XYZM: ISO_ZM_OFFSET,
}


@dataclass(slots=True)
class _Node:
    kind: GeometryKind
    dimension: Dimension
    srid: int | None
    body: bytearray = field(default_factory=bytearray)
    count: int = 0


class WkbWriter(FeatureProcessor):
    """Encode one root geometry as ISO WKB into ``out``.

    Args:
        out: Binary stream receiving the encoded bytes when the root
            geometry closes.
        gpkg: Prefix a GeoPackage header (no envelope) carrying the SRID.
        big_endian: Write big-endian instead of little-endian values.

    A WKB buffer holds a single geometry: a second root geometry is
    rejected with ``SinkError``. Dataset and feature calls are accepted
    and ignored.
    """

    wants_properties = False
    binary = True

    def __init__(self, out: IO[bytes], *, gpkg: bool = False, big_endian: bool = False) -> None:
        self._out = out
        self._gpkg = gpkg
        self._order = ">" if big_endian else "<"
        self._marker = WKB_BIG_ENDIAN if big_endian else WKB_LITTLE_ENDIAN
        self._stack: list[_Node] = []
        self._ring: tuple[bytearray, int] | None = None
        self._written = False

    @classmethod
    def from_config(
        cls, out: IO[bytes], config: GeoStreamConfig, *, gpkg: bool = False
    ) -> WkbWriter:
        return cls(out, gpkg=gpkg, big_endian=config.wkb_big_endian)

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        if not self._stack and self._written:
            msg = "WKB holds a single geometry; a second root geometry was emitted"
            raise SinkError(msg)
        self._stack.append(_Node(GeometryKind(kind), Dimension(dimension), srid))

    def ring_begin(self) -> None:
        self._ring = (bytearray(), 0)

    def ring_end(self) -> None:
        if self._ring is None or not self._stack:
            msg = "ring_end without ring_begin"
            raise SinkError(msg)
        ring, count = self._ring
        node = self._stack[-1]
        node.body += struct.pack(f"{self._order}I", count) + ring
        node.count += 1
        self._ring = None

    def coordinate(self, values: Sequence[float]) -> None:
        if not self._stack:
            msg = "coordinate outside a geometry"
            raise SinkError(msg)
        node = self._stack[-1]
        if len(values) != node.dimension.size:
            msg = (
                f"coordinate has {len(values)} components, "
                f"WKB {node.dimension.value} needs {node.dimension.size}"
            )
            raise SinkError(msg)
        packed = struct.pack(f"{self._order}{len(values)}d", *values)
        if self._ring is not None:
            ring, count = self._ring
            ring += packed
            self._ring = (ring, count + 1)
        else:
            node.body += packed
            node.count += 1

    def geometry_end(self) -> None:
        node = self._stack.pop()
        encoded = self._encode(node)
        if self._stack:
            parent = self._stack[-1]
            parent.body += encoded
            parent.count += 1
            return
        if self._gpkg:
            encoded = self._gpkg_header(node) + encoded
        self._out.write(encoded)
        self._written = True

    def _encode(self, node: _Node) -> bytes:
        code = node.kind.wkb_code + _ISO_OFFSETS[node.dimension]
        header = struct.pack(f"{self._order}BI", self._marker, code)
        if node.kind is GeometryKind.POINT:
            if node.count == 0:
                return header + struct.pack(
                    f"{self._order}{node.dimension.size}d", *([math.nan] * node.dimension.size)
                )
            return header + bytes(node.body)
        return header + struct.pack(f"{self._order}I", node.count) + bytes(node.body)

    def _gpkg_header(self, node: _Node) -> bytes:
        flags = GPKG_FLAG_LITTLE_ENDIAN if self._order == "<" else 0
        if node.count == 0:
            flags |= GPKG_FLAG_EMPTY
        srid = node.srid if node.srid is not None else 0
        return GPKG_MAGIC + bytes((GPKG_VERSION, flags)) + struct.pack(f"{self._order}i", srid)
