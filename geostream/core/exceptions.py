"""Unified exception taxonomy.

Every error raised by a walker, a source adapter or a sink inherits
from ``GeoStreamError`` and carries structured context fields so that
callers can report a failure without parsing message strings.

Taxonomy categories
-------------------
- ``DecodeError``       — malformed source bytes (envelope, tag, length).
- ``SinkError``         — a sink rejected a call.
- ``ProtocolError``     — a call sequence broke the ordering rules.
- ``EncodingError``     — produced bytes are not valid text.
- ``ColumnDecodeError`` — any of the above surfaced through a database value.
- ``GeometryError``     — an in-memory geometry cannot be walked.

Errors are deterministic: nothing in this package retries. The first
error aborts the walk and reaches the caller unchanged.
"""

from __future__ import annotations


class GeoStreamError(Exception):
    """Base exception for all geostream errors.

    Attributes:
        message: Human-readable error description.
        stage: Component where the error occurred
            (e.g. ``"decode"``, ``"sink"``).
        code: Machine-readable error code (e.g. ``"DECODE_FAILED"``).
        offset: Byte offset into the source buffer, when known.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        offset: int | None = None,
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.offset = offset
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ColumnDecodeError):
            return "column"
        if isinstance(self, DecodeError):
            return "decode"
        if isinstance(self, ProtocolError):
            return "protocol"
        if isinstance(self, SinkError):
            return "sink"
        if isinstance(self, EncodingError):
            return "encoding"
        if isinstance(self, GeometryError):
            return "geometry"
        return "error"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "offset": self.offset,
        }


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------


class DecodeError(GeoStreamError):
    """Malformed source bytes.

    Attributes:
        expected: What the decoder expected at ``offset`` (tag, length, magic).
        actual: What it found instead.
    """

    default_stage = "decode"
    default_code = "DECODE_FAILED"

    def __init__(
        self,
        message: str = "",
        *,
        offset: int | None = None,
        expected: object = None,
        actual: object = None,
        **kwargs: str,
    ) -> None:
        self.expected = expected
        self.actual = actual
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message, offset=offset, **kwargs)

    def to_error_dict(self) -> dict[str, object]:
        payload = super().to_error_dict()
        payload["expected"] = None if self.expected is None else str(self.expected)
        payload["actual"] = None if self.actual is None else str(self.actual)
        return payload


class SinkError(GeoStreamError):
    """A sink rejected a protocol call."""

    default_stage = "sink"
    default_code = "SINK_REJECTED"


class ProtocolError(SinkError):
    """A protocol call arrived out of order."""

    default_code = "PROTOCOL_VIOLATION"


class EncodingError(GeoStreamError):
    """Produced bytes are not valid text for a text-based format."""

    default_stage = "conversion"
    default_code = "TEXT_ENCODING_FAILED"


class GeometryError(GeoStreamError):
    """An in-memory geometry cannot be walked."""

    default_stage = "walk"
    default_code = "GEOMETRY_INVALID"


class DimensionMismatchError(GeometryError):
    """Members of one geometry disagree on dimensionality."""

    default_code = "DIMENSION_MISMATCH"


class ColumnDecodeError(GeoStreamError):
    """A database column value could not be decoded into a geometry.

    Attributes:
        cause: The underlying ``GeoStreamError``.
    """

    default_stage = "column"
    default_code = "COLUMN_DECODE_FAILED"

    def __init__(self, cause: GeoStreamError) -> None:
        self.cause = cause
        super().__init__(f"Cannot decode geometry column: {cause}", offset=cause.offset)

    def to_error_dict(self) -> dict[str, object]:
        payload = super().to_error_dict()
        payload["cause"] = self.cause.to_error_dict()
        return payload
