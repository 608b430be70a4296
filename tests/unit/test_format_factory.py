"""Tests for the writer factory.

Covers: get_writer, list_writers, register_writer, error handling and
lazy registry initialisation.
"""

from __future__ import annotations

import io
import unittest

from geostream.core.config import GeoStreamConfig
from geostream.core.exceptions import SinkError
from geostream.formats.factory import (
    _WRITER_REGISTRY,
    GEOJSON,
    GPKG,
    SVG,
    WKB,
    _ensure_registry,
    get_writer,
    is_binary,
    list_writers,
    register_writer,
)
from geostream.formats.geojson import GeoJsonWriter
from geostream.formats.svg import SvgWriter
from geostream.formats.wkb import WkbWriter
from geostream.models import point
from geostream.protocol import EventRecorder
from geostream.walkers import walk_geometry


class TestListWriters(unittest.TestCase):
    """list_writers returns the built-in formats."""

    def test_includes_builtin_writers(self) -> None:
        writers = list_writers()
        for name in (SVG, GEOJSON, WKB, GPKG):
            assert name in writers

    def test_returns_sorted(self) -> None:
        writers = list_writers()
        assert writers == sorted(writers)


class TestGetWriter(unittest.TestCase):
    """get_writer builds the right sink for each format."""

    def test_svg(self) -> None:
        assert isinstance(get_writer(SVG, io.BytesIO()), SvgWriter)

    def test_geojson(self) -> None:
        assert isinstance(get_writer(GEOJSON, io.BytesIO()), GeoJsonWriter)

    def test_wkb_and_gpkg(self) -> None:
        out = io.BytesIO()
        writer = get_writer(GPKG, out)
        assert isinstance(writer, WkbWriter)
        walk_geometry(point(1, 2), writer)
        assert out.getvalue().startswith(b"GP")

        out = io.BytesIO()
        walk_geometry(point(1, 2), get_writer(WKB, out))
        assert out.getvalue()[:1] == b"\x01"

    def test_binary_flags(self) -> None:
        assert is_binary(get_writer(WKB, io.BytesIO()))
        assert is_binary(get_writer(GPKG, io.BytesIO()))
        assert not is_binary(get_writer(SVG, io.BytesIO()))
        assert not is_binary(get_writer(GEOJSON, io.BytesIO()))

    def test_config_is_applied(self) -> None:
        out = io.BytesIO()
        writer = get_writer(SVG, out, GeoStreamConfig(svg_invert_y=True))
        walk_geometry(point(1, 2), writer)
        assert out.getvalue() == b'<path d="M 1 -2 Z"/>'

    def test_unknown_format(self) -> None:
        with self.assertRaises(SinkError) as ctx:
            get_writer("shapefile", io.BytesIO())
        assert "Unknown output format" in str(ctx.exception)
        assert ctx.exception.code == "UNKNOWN_FORMAT"


class TestRegisterWriter(unittest.TestCase):
    """register_writer adds custom sinks."""

    def tearDown(self) -> None:
        _WRITER_REGISTRY.pop("recorder", None)

    def test_register_and_get(self) -> None:
        register_writer("recorder", lambda: lambda out, config: EventRecorder())
        assert "recorder" in list_writers()
        assert isinstance(get_writer("recorder", io.BytesIO()), EventRecorder)

    def test_empty_name_rejected(self) -> None:
        with self.assertRaises(ValueError):
            register_writer("", lambda: lambda out, config: EventRecorder())


class TestLazyRegistry(unittest.TestCase):
    """The registry fills itself on first use."""

    def test_ensure_registry_repopulates(self) -> None:
        saved = dict(_WRITER_REGISTRY)
        try:
            _WRITER_REGISTRY.clear()
            _ensure_registry()
            assert set(_WRITER_REGISTRY) == {SVG, GEOJSON, WKB, GPKG}
        finally:
            _WRITER_REGISTRY.clear()
            _WRITER_REGISTRY.update(saved)
