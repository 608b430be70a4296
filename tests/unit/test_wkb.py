"""Tests for WKB / EWKB / GeoPackage decoding and WKB encoding.

Decoder inputs are hand-packed in conftest.py.
"""

from __future__ import annotations

import io
import math
import struct

import pytest

from geostream.core.exceptions import DecodeError, SinkError
from geostream.formats.builder import GeometryBuilder
from geostream.formats.wkb import (
    ByteCursor,
    GpkgReader,
    WkbReader,
    WkbWriter,
    process_gpkg_geom,
    process_wkb,
    read_gpkg_header,
)
from geostream.models import Dimension, GeometryKind, LineString, Point, Polygon, point
from geostream.protocol import EventRecorder
from geostream.walkers import walk_geometry


class TestByteCursor:
    def test_remaining(self) -> None:
        cursor = ByteCursor(b"abcdef", 2)
        assert cursor.remaining == 4
        assert len(cursor) == 6

    def test_offset_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="outside buffer"):
            ByteCursor(b"abc", 4)


class TestProcessWkb:
    def test_point(self, wkb_point: bytes) -> None:
        recorder = EventRecorder()
        process_wkb(ByteCursor(wkb_point), recorder)
        assert recorder.events == [
            ("geometry_begin", GeometryKind.POINT, Dimension.XY, None),
            ("coordinate", (220.0, 10.0)),
            ("geometry_end",),
        ]

    def test_big_endian(self, wkb_point_big_endian: bytes) -> None:
        recorder = EventRecorder()
        process_wkb(ByteCursor(wkb_point_big_endian), recorder)
        assert recorder.events[1] == ("coordinate", (220.0, 10.0))

    def test_polygon_rings_in_order(self, wkb_polygon_with_hole: bytes) -> None:
        builder = GeometryBuilder()
        process_wkb(ByteCursor(wkb_polygon_with_hole), builder)
        polygon = builder.geometry
        assert isinstance(polygon, Polygon)
        assert len(polygon.rings) == 2
        assert polygon.exterior[0] == (0.0, 0.0)
        assert polygon.interiors[0] == ((1.0, 1.0), (2.0, 1.0), (2.0, 2.0), (1.0, 1.0))

    def test_iso_z_multipoint(self, wkb_multipoint_z: bytes) -> None:
        recorder = EventRecorder()
        process_wkb(ByteCursor(wkb_multipoint_z), recorder)
        assert recorder.events[0] == (
            "geometry_begin",
            GeometryKind.MULTIPOINT,
            Dimension.XYZ,
            None,
        )
        coordinates = [e[1] for e in recorder.events if e[0] == "coordinate"]
        assert coordinates == [(1.0, 2.0, 3.0), (4.0, 5.0, 6.0)]

    def test_ewkb_srid(self, ewkb_point_srid: bytes) -> None:
        recorder = EventRecorder()
        process_wkb(ByteCursor(ewkb_point_srid), recorder)
        assert recorder.events[0][3] == 4326

    def test_ewkb_z_flag(self) -> None:
        data = struct.pack("<BI3d", 1, 1 | 0x80000000, 1.0, 2.0, 3.0)
        recorder = EventRecorder()
        process_wkb(ByteCursor(data), recorder)
        assert recorder.events[0][2] is Dimension.XYZ

    def test_fallback_srid(self, wkb_point: bytes) -> None:
        recorder = EventRecorder()
        process_wkb(ByteCursor(wkb_point), recorder, srid=3857)
        assert recorder.events[0][3] == 3857

    def test_empty_point_emits_no_coordinate(self) -> None:
        data = struct.pack("<BIdd", 1, 1, math.nan, math.nan)
        recorder = EventRecorder()
        process_wkb(ByteCursor(data), recorder)
        assert recorder.names == ["geometry_begin", "geometry_end"]

    def test_cursor_advances_past_each_geometry(
        self, wkb_point: bytes, wkb_linestring: bytes
    ) -> None:
        cursor = ByteCursor(wkb_point + wkb_linestring)
        builder = GeometryBuilder()
        process_wkb(cursor, builder)
        assert cursor.offset == len(wkb_point)
        process_wkb(cursor, builder)
        assert cursor.remaining == 0
        assert [g.kind for g in builder.geometries] == [GeometryKind.POINT, GeometryKind.LINESTRING]


class TestDecodeErrors:
    def test_truncated_buffer_makes_zero_calls(self, wkb_linestring: bytes) -> None:
        recorder = EventRecorder()
        cursor = ByteCursor(wkb_linestring[:-3])
        with pytest.raises(DecodeError, match="Truncated LineString coordinates") as exc_info:
            process_wkb(cursor, recorder)
        assert recorder.events == []
        assert cursor.offset == 0
        assert exc_info.value.offset == 9

    def test_truncated_member_makes_zero_calls(self, wkb_multipoint_z: bytes) -> None:
        recorder = EventRecorder()
        with pytest.raises(DecodeError):
            process_wkb(ByteCursor(wkb_multipoint_z[:-1]), recorder)
        assert recorder.events == []

    def test_empty_buffer(self) -> None:
        with pytest.raises(DecodeError, match="Truncated WKB header"):
            process_wkb(ByteCursor(b""), EventRecorder())

    def test_bad_byte_order(self, wkb_point: bytes) -> None:
        with pytest.raises(DecodeError, match="byte order") as exc_info:
            process_wkb(ByteCursor(b"\x02" + wkb_point[1:]), EventRecorder())
        assert exc_info.value.expected == "0 or 1"

    def test_unknown_type_code(self) -> None:
        with pytest.raises(DecodeError, match="Unknown WKB geometry type"):
            process_wkb(ByteCursor(struct.pack("<BI", 1, 17)), EventRecorder())

    def test_wrong_member_kind(self) -> None:
        data = struct.pack("<BII", 1, 4, 1) + struct.pack("<BII", 1, 2, 0)
        recorder = EventRecorder()
        with pytest.raises(DecodeError, match="wrong type"):
            process_wkb(ByteCursor(data), recorder)
        assert recorder.events == []

    def test_mixed_member_dimension(self) -> None:
        data = struct.pack("<BII", 1, 4, 1) + struct.pack("<BI3d", 1, 1001, 1.0, 2.0, 3.0)
        recorder = EventRecorder()
        with pytest.raises(DecodeError, match="member dimension") as exc_info:
            process_wkb(ByteCursor(data), recorder)
        assert recorder.events == []
        assert exc_info.value.offset == 9
        assert exc_info.value.to_error_dict()["category"] == "decode"
        assert (exc_info.value.expected, exc_info.value.actual) == ("XY", "XYZ")

    def test_huge_member_count_is_rejected_before_reading(self) -> None:
        data = struct.pack("<BII", 1, 7, 0xFFFFFFFF)
        with pytest.raises(DecodeError, match="GeometryCollection members"):
            process_wkb(ByteCursor(data), EventRecorder())

    def test_reader_rejects_trailing_bytes(self, wkb_point: bytes) -> None:
        recorder = EventRecorder()
        with pytest.raises(DecodeError, match="Trailing bytes"):
            WkbReader.read(io.BytesIO(wkb_point + b"\x00"), recorder)
        assert recorder.events == []


class TestGeoPackage:
    def test_header_fields(self, gpkg_point: bytes) -> None:
        header = read_gpkg_header(ByteCursor(gpkg_point))
        assert header.srid == 4326
        assert header.envelope == (220.0, 220.0, 10.0, 10.0)
        assert header.size == 8 + 32
        assert header.little_endian
        assert not header.empty

    def test_srs_id_becomes_root_srid(self, gpkg_point: bytes) -> None:
        recorder = EventRecorder()
        cursor = ByteCursor(gpkg_point)
        process_gpkg_geom(cursor, recorder)
        assert recorder.events[0] == ("geometry_begin", GeometryKind.POINT, Dimension.XY, 4326)
        assert cursor.remaining == 0

    def test_reader(self, gpkg_point: bytes) -> None:
        builder = GeometryBuilder()
        GpkgReader.read(io.BytesIO(gpkg_point), builder)
        assert builder.geometry == point(220, 10, srid=4326)

    def test_bad_magic(self, gpkg_point: bytes) -> None:
        with pytest.raises(DecodeError, match="Not a GeoPackage geometry blob"):
            process_gpkg_geom(ByteCursor(b"XX" + gpkg_point[2:]), EventRecorder())

    def test_bad_version(self, gpkg_point: bytes) -> None:
        with pytest.raises(DecodeError, match="version"):
            process_gpkg_geom(ByteCursor(b"GP\x01" + gpkg_point[3:]), EventRecorder())

    def test_extended_type_rejected(self, gpkg_point: bytes) -> None:
        data = gpkg_point[:3] + bytes((gpkg_point[3] | 0x20,)) + gpkg_point[4:]
        with pytest.raises(DecodeError, match="Extended"):
            process_gpkg_geom(ByteCursor(data), EventRecorder())

    def test_invalid_envelope_indicator(self, gpkg_point: bytes) -> None:
        data = gpkg_point[:3] + bytes((0x01 | (5 << 1),)) + gpkg_point[4:]
        with pytest.raises(DecodeError, match="envelope indicator"):
            process_gpkg_geom(ByteCursor(data), EventRecorder())

    def test_truncated_envelope(self, gpkg_point: bytes) -> None:
        with pytest.raises(DecodeError, match="Truncated GeoPackage envelope"):
            process_gpkg_geom(ByteCursor(gpkg_point[:20]), EventRecorder())

    def test_truncated_payload_makes_zero_calls(self, gpkg_point: bytes) -> None:
        recorder = EventRecorder()
        with pytest.raises(DecodeError):
            process_gpkg_geom(ByteCursor(gpkg_point[:-4]), recorder)
        assert recorder.events == []


class TestWkbWriter:
    def _encode(self, geometry: object, **kwargs: bool) -> bytes:
        out = io.BytesIO()
        walk_geometry(geometry, WkbWriter(out, **kwargs))
        return out.getvalue()

    def test_point_matches_hand_packed(self, wkb_point: bytes) -> None:
        assert self._encode(point(220, 10)) == wkb_point

    def test_big_endian(self, wkb_point_big_endian: bytes) -> None:
        assert self._encode(point(220, 10), big_endian=True) == wkb_point_big_endian

    def test_polygon_matches_hand_packed(self, wkb_polygon_with_hole: bytes, square: Polygon) -> None:
        assert self._encode(square) == wkb_polygon_with_hole

    def test_iso_z_codes(self, wkb_multipoint_z: bytes) -> None:
        from geostream.models import MultiPoint

        multi = MultiPoint([point(1, 2, 3), point(4, 5, 6)], Dimension.XYZ)
        assert self._encode(multi) == wkb_multipoint_z

    def test_empty_point_is_nan(self) -> None:
        data = self._encode(Point())
        assert all(math.isnan(v) for v in struct.unpack_from("<2d", data, 5))

    def test_gpkg_header(self) -> None:
        data = self._encode(point(220, 10, srid=4326), gpkg=True)
        assert data[:4] == b"GP\x00\x01"
        assert struct.unpack_from("<i", data, 4) == (4326,)
        assert data[8:] == struct.pack("<BIdd", 1, 1, 220.0, 10.0)

    def test_gpkg_empty_flag_and_default_srid(self) -> None:
        data = self._encode(Point(), gpkg=True)
        assert data[3] & 0x10
        assert struct.unpack_from("<i", data, 4) == (0,)

    def test_round_trip_through_decoder(self, sample_geometries: list) -> None:
        for geometry in sample_geometries:
            builder = GeometryBuilder()
            process_wkb(ByteCursor(self._encode(geometry)), builder)
            assert builder.geometry == geometry

    def test_second_root_rejected(self) -> None:
        writer = WkbWriter(io.BytesIO())
        walk_geometry(point(1, 2), writer)
        with pytest.raises(SinkError, match="single geometry"):
            walk_geometry(point(3, 4), writer)

    def test_wrong_arity_rejected(self) -> None:
        writer = WkbWriter(io.BytesIO())
        writer.geometry_begin(GeometryKind.LINESTRING, Dimension.XYZ, None)
        with pytest.raises(SinkError, match="needs 3"):
            writer.coordinate((1.0, 2.0))

    def test_feature_calls_are_ignored(self) -> None:
        out = io.BytesIO()
        writer = WkbWriter(out)
        writer.dataset_begin(None)
        writer.feature_begin(0)
        walk_geometry(LineString([(0, 0), (1, 1)]), writer)
        writer.feature_end(0)
        writer.dataset_end()
        assert out.getvalue()[:5] == struct.pack("<BI", 1, 2)
