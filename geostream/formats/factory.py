"""Writer factory — selects an output sink by format name.

The factory maintains a registry of known writers. Each entry maps a
format name to a zero-argument loader returning a writer constructor
``(out, config) -> FeatureProcessor``; the writer module is imported
only when that format is first requested.

Usage::

    from geostream.formats.factory import get_writer

    writer = get_writer("svg", out, config)
    walk_geometry(geometry, writer)

Every writer declares ``binary``: ``True`` when its output is raw bytes,
``False`` when it is UTF-8 text.
"""

from __future__ import annotations

import functools
import logging
from typing import IO, TYPE_CHECKING

from geostream.core.config import GeoStreamConfig
from geostream.core.exceptions import SinkError

if TYPE_CHECKING:
    from collections.abc import Callable

    from geostream.protocol.processor import FeatureProcessor

    WriterFactory = Callable[[IO[bytes], GeoStreamConfig], FeatureProcessor]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Format name constants
# ---------------------------------------------------------------------------

SVG = "svg"
GEOJSON = "geojson"
WKB = "wkb"
GPKG = "gpkg"

# ---------------------------------------------------------------------------
# Lazy-import writer registry
# ---------------------------------------------------------------------------

_WRITER_REGISTRY: dict[str, Callable[[], WriterFactory]] = {}


def _register_builtin_writers() -> None:
    """Register the built-in writers (called once, on first use)."""

    def _svg() -> WriterFactory:
        from geostream.formats.svg import SvgWriter

        return SvgWriter.from_config

    def _geojson() -> WriterFactory:
        from geostream.formats.geojson import GeoJsonWriter

        return GeoJsonWriter.from_config

    def _wkb() -> WriterFactory:
        from geostream.formats.wkb import WkbWriter

        return WkbWriter.from_config

    def _gpkg() -> WriterFactory:
        from geostream.formats.wkb import WkbWriter

        return functools.partial(WkbWriter.from_config, gpkg=True)

    _WRITER_REGISTRY[SVG] = _svg
    _WRITER_REGISTRY[GEOJSON] = _geojson
    _WRITER_REGISTRY[WKB] = _wkb
    _WRITER_REGISTRY[GPKG] = _gpkg


def _ensure_registry() -> None:
    """Initialise the writer registry once (idempotent)."""
    if not _WRITER_REGISTRY:
        _register_builtin_writers()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def register_writer(name: str, loader: Callable[[], WriterFactory]) -> None:
    """Register a custom writer.

    Args:
        name: Format name (e.g. ``"my_format"``); replaces any existing entry.
        loader: A zero-argument callable returning the writer constructor.

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        msg = "Writer name must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _WRITER_REGISTRY[name] = loader
    logger.debug("Registered writer: %s", name)


def get_writer(
    name: str,
    out: IO[bytes],
    config: GeoStreamConfig | None = None,
) -> FeatureProcessor:
    """Create a writer for ``name`` that writes into ``out``.

    Raises:
        SinkError: If no writer is registered under ``name``.
    """
    _ensure_registry()

    loader = _WRITER_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_WRITER_REGISTRY))
        msg = f"Unknown output format: {name!r}. Available: {available}"
        raise SinkError(msg, code="UNKNOWN_FORMAT")

    factory = loader()
    return factory(out, config if config is not None else GeoStreamConfig())


def is_binary(writer: FeatureProcessor) -> bool:
    """Whether ``writer`` produces raw bytes rather than UTF-8 text."""
    return bool(getattr(writer, "binary", False))


def list_writers() -> list[str]:
    """Return the names of all registered writers."""
    _ensure_registry()
    return sorted(_WRITER_REGISTRY)
