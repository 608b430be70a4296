"""Tests for the processor protocol helpers.

Covers:
- ValidatingProcessor: every class of out-of-order call is rejected
  before the inner sink sees it
- EventRecorder: recording, counting, fail_at
- BoundsProcessor: XY extent, NaN handling
"""

from __future__ import annotations

import math

import pytest

from geostream.core.exceptions import ProtocolError, SinkError
from geostream.models import Dimension, GeometryKind, point
from geostream.protocol import (
    BoundsProcessor,
    Datasource,
    EventRecorder,
    FeatureProcessor,
    GeometrySource,
    ValidatingProcessor,
)
from geostream.protocol.validation import _Frame
from geostream.walkers import walk_dataset

POINT, LINE, POLYGON = GeometryKind.POINT, GeometryKind.LINESTRING, GeometryKind.POLYGON
MULTIPOINT = GeometryKind.MULTIPOINT
XY, XYZ = Dimension.XY, Dimension.XYZ


@pytest.fixture()
def inner() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def validator(inner: EventRecorder) -> ValidatingProcessor:
    return ValidatingProcessor(inner)


class TestValidatingProcessorAccepts:
    def test_forwards_a_valid_dataset(self, inner: EventRecorder) -> None:
        from geostream.models import Feature

        validator = ValidatingProcessor(inner)
        walk_dataset([Feature(point(1, 2), {"a": 1})], validator)
        validator.finish()
        assert inner.count("coordinate") == 1
        assert inner.names[0] == "dataset_begin"

    def test_bare_geometry(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(POINT, XY, None)
        validator.coordinate((1.0, 2.0))
        validator.geometry_end()
        validator.finish()

    def test_copies_wants_properties(self) -> None:
        assert ValidatingProcessor(EventRecorder(wants_properties=False)).wants_properties is False


class TestValidatingProcessorRejects:
    def test_unmatched_end(self, validator: ValidatingProcessor, inner: EventRecorder) -> None:
        with pytest.raises(ProtocolError, match="geometry_end without matching"):
            validator.geometry_end()
        assert inner.events == []

    def test_feature_end_index_mismatch(self, validator: ValidatingProcessor) -> None:
        validator.dataset_begin(None)
        validator.feature_begin(0)
        with pytest.raises(ProtocolError, match="closes feature_begin"):
            validator.feature_end(1)

    def test_dataset_begin_twice(self, validator: ValidatingProcessor) -> None:
        validator.dataset_begin(None)
        with pytest.raises(ProtocolError, match="first call"):
            validator.dataset_begin(None)

    def test_feature_after_dataset_closed(self, validator: ValidatingProcessor) -> None:
        validator.dataset_begin(None)
        validator.dataset_end()
        with pytest.raises(ProtocolError, match="after the dataset closed"):
            validator.feature_begin(0)

    def test_negative_feature_index(self, validator: ValidatingProcessor) -> None:
        with pytest.raises(ProtocolError, match=">= 0"):
            validator.feature_begin(-1)

    def test_geometry_directly_in_dataset(self, validator: ValidatingProcessor) -> None:
        validator.dataset_begin(None)
        with pytest.raises(ProtocolError, match="directly inside a dataset"):
            validator.geometry_begin(POINT, XY, None)

    def test_properties_outside_feature(self, validator: ValidatingProcessor) -> None:
        with pytest.raises(ProtocolError, match="outside a feature"):
            validator.properties_begin()

    def test_property_outside_properties(self, validator: ValidatingProcessor) -> None:
        validator.feature_begin(0)
        with pytest.raises(ProtocolError, match="outside properties_begin"):
            validator.property("a", 1)

    def test_properties_after_geometry(self, validator: ValidatingProcessor) -> None:
        validator.feature_begin(0)
        validator.geometry_begin(POINT, XY, None)
        validator.geometry_end()
        with pytest.raises(ProtocolError, match="after the feature geometry"):
            validator.properties_begin()

    def test_properties_twice(self, validator: ValidatingProcessor) -> None:
        validator.feature_begin(0)
        validator.properties_begin()
        validator.properties_end()
        with pytest.raises(ProtocolError, match="twice"):
            validator.properties_begin()

    def test_second_geometry_in_feature(self, validator: ValidatingProcessor) -> None:
        validator.feature_begin(0)
        validator.geometry_begin(POINT, XY, None)
        validator.geometry_end()
        with pytest.raises(ProtocolError, match="second geometry"):
            validator.geometry_begin(POINT, XY, None)

    def test_wrong_member_kind(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(MULTIPOINT, XY, None)
        with pytest.raises(ProtocolError, match="member must be Point"):
            validator.geometry_begin(LINE, XY, None)

    def test_member_dimension_mismatch(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(MULTIPOINT, XY, None)
        with pytest.raises(ProtocolError, match="member dimension XYZ"):
            validator.geometry_begin(POINT, XYZ, None)

    def test_geometry_nested_in_leaf(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(LINE, XY, None)
        with pytest.raises(ProtocolError, match="nested inside LineString"):
            validator.geometry_begin(POINT, XY, None)

    def test_ring_outside_polygon(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(LINE, XY, None)
        with pytest.raises(ProtocolError, match="ring_begin outside a Polygon"):
            validator.ring_begin()

    def test_coordinate_directly_in_polygon(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(POLYGON, XY, None)
        with pytest.raises(ProtocolError, match="directly inside Polygon"):
            validator.coordinate((0.0, 0.0))

    def test_point_with_two_coordinates(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(POINT, XY, None)
        validator.coordinate((0.0, 0.0))
        with pytest.raises(ProtocolError, match="more than one coordinate"):
            validator.coordinate((1.0, 1.0))

    def test_coordinate_arity(self, validator: ValidatingProcessor) -> None:
        validator.geometry_begin(POLYGON, XYZ, None)
        validator.ring_begin()
        with pytest.raises(ProtocolError, match="needs 3"):
            validator.coordinate((0.0, 0.0))

    def test_coordinate_outside_geometry(self, validator: ValidatingProcessor) -> None:
        with pytest.raises(ProtocolError, match="outside a geometry"):
            validator.coordinate((0.0, 0.0))

    def test_finish_with_open_brackets(self, validator: ValidatingProcessor) -> None:
        validator.dataset_begin("d")
        validator.feature_begin(0)
        with pytest.raises(ProtocolError, match="open brackets") as exc_info:
            validator.finish()
        assert "dataset/feature" in str(exc_info.value)

    def test_protocol_error_is_sink_error(self, validator: ValidatingProcessor) -> None:
        with pytest.raises(SinkError):
            validator.ring_end()

    def test_incomplete_geometry_frame_is_a_protocol_error(
        self, validator: ValidatingProcessor, inner: EventRecorder
    ) -> None:
        validator._stack.append(_Frame("geometry", kind=MULTIPOINT))
        with pytest.raises(ProtocolError, match="without kind or dimension"):
            validator.geometry_begin(POINT, XY, None)
        assert inner.events == []

    def test_ring_frame_without_dimension_is_a_protocol_error(
        self, validator: ValidatingProcessor, inner: EventRecorder
    ) -> None:
        validator._stack.append(_Frame("ring"))
        with pytest.raises(ProtocolError, match="without a dimension"):
            validator.coordinate((1.0, 2.0))
        assert inner.events == []


class TestEventRecorder:
    def test_records_calls_with_arguments(self) -> None:
        recorder = EventRecorder()
        recorder.dataset_begin("d")
        recorder.property("k", "v")
        recorder.coordinate([1.0, 2.0])
        assert recorder.events == [
            ("dataset_begin", "d"),
            ("property", "k", "v"),
            ("coordinate", (1.0, 2.0)),
        ]

    def test_coordinate_values_are_copied(self) -> None:
        recorder = EventRecorder()
        values = [1.0, 2.0]
        recorder.coordinate(values)
        values[0] = 99.0
        assert recorder.events[0] == ("coordinate", (1.0, 2.0))

    def test_fail_at_does_not_record_the_failing_call(self) -> None:
        recorder = EventRecorder(fail_at=("ring_begin", 2))
        recorder.ring_begin()
        with pytest.raises(SinkError, match="ring_begin call #2"):
            recorder.ring_begin()
        assert recorder.count("ring_begin") == 1


class TestBoundsProcessor:
    def test_accumulates_xy_extent(self) -> None:
        bounds = BoundsProcessor()
        for values in ((1.0, 5.0, 100.0), (-2.0, 3.0, 0.0), (4.0, -1.0, 7.0)):
            bounds.coordinate(values)
        assert bounds.bounds == (-2.0, -1.0, 4.0, 5.0)

    def test_none_until_a_coordinate(self) -> None:
        assert BoundsProcessor().bounds is None

    def test_ignores_nan(self) -> None:
        bounds = BoundsProcessor()
        bounds.coordinate((math.nan, math.nan))
        assert bounds.bounds is None
        bounds.coordinate((1.0, 1.0))
        assert bounds.bounds == (1.0, 1.0, 1.0, 1.0)


class TestStructuralInterfaces:
    def test_geometry_values_are_geometry_sources(self) -> None:
        assert isinstance(point(1, 2), GeometrySource)

    def test_dataset_is_datasource_not_geometry(self) -> None:
        from geostream.models import Dataset

        assert isinstance(Dataset(), Datasource)
        assert not isinstance(point(1, 2), Datasource)

    def test_base_processor_accepts_everything(self) -> None:
        processor = FeatureProcessor()
        processor.dataset_begin(None)
        processor.geometry_begin(POINT, XY, None)
        processor.coordinate((0.0, 0.0))
        processor.geometry_end()
        processor.dataset_end()
