"""Tests for the model-building sinks."""

from __future__ import annotations

import pytest

from geostream.conversion import to_geometry
from geostream.core.exceptions import SinkError
from geostream.formats.builder import DatasetBuilder, GeometryBuilder
from geostream.models import (
    Dataset,
    Dimension,
    Feature,
    GeometryCollection,
    GeometryKind,
    MultiPoint,
    point,
)
from geostream.walkers import walk_geometry


class TestGeometryBuilder:
    def test_every_kind_rebuilds_equal(self, sample_geometries: list) -> None:
        for geometry in sample_geometries:
            assert to_geometry(geometry) == geometry

    def test_srid_kept_on_root_only(self) -> None:
        builder = GeometryBuilder()
        walk_geometry(MultiPoint([point(1, 2), point(3, 4)], srid=4326), builder)
        rebuilt = builder.geometry
        assert rebuilt.srid == 4326
        assert [p.srid for p in rebuilt.points] == [None, None]

    def test_collects_roots_in_order(self) -> None:
        builder = GeometryBuilder()
        walk_geometry(point(1, 2), builder)
        walk_geometry(point(3, 4), builder)
        assert builder.geometries == [point(1, 2), point(3, 4)]

    def test_no_geometry_yet(self) -> None:
        assert GeometryBuilder().geometry is None

    def test_point_with_two_coordinates(self) -> None:
        builder = GeometryBuilder()
        builder.geometry_begin(GeometryKind.POINT, Dimension.XY, None)
        builder.coordinate((1, 2))
        builder.coordinate((3, 4))
        with pytest.raises(SinkError, match="2 coordinates"):
            builder.geometry_end()

    def test_coordinate_outside_geometry(self) -> None:
        with pytest.raises(SinkError, match="outside a geometry"):
            GeometryBuilder().coordinate((1, 2))

    def test_ring_outside_geometry(self) -> None:
        with pytest.raises(SinkError, match="outside a geometry"):
            GeometryBuilder().ring_begin()

    def test_unbalanced_end(self) -> None:
        with pytest.raises(SinkError, match="without geometry_begin"):
            GeometryBuilder().geometry_end()

    def test_nested_member_dimension(self) -> None:
        collection = GeometryCollection([point(1, 2, 3)], dimension=Dimension.XYZ)
        rebuilt = to_geometry(collection)
        assert rebuilt.geometries[0].dimension is Dimension.XYZ


class TestDatasetBuilder:
    def test_rebuilds_dataset(self) -> None:
        original = Dataset(
            [
                Feature(point(1, 2), {"name": "well", "depth": 12.5}),
                Feature(None, {"note": None}),
            ],
            name="wells",
        )
        builder = DatasetBuilder()
        original.process(builder)
        rebuilt = builder.dataset
        assert rebuilt.name == "wells"
        assert rebuilt.features == original.features

    def test_feature_without_geometry(self) -> None:
        builder = DatasetBuilder()
        Dataset([Feature(point(1, 2)), Feature()]).process(builder)
        assert builder.dataset.features[0].geometry == point(1, 2)
        assert builder.dataset.features[1].geometry is None

    def test_dataset_srid_is_recorded(self) -> None:
        builder = DatasetBuilder(srid=4326)
        Dataset().process(builder)
        assert builder.dataset.srid == 4326

    def test_wants_properties(self) -> None:
        assert DatasetBuilder.wants_properties is True
        assert GeometryBuilder.wants_properties is False

    def test_property_outside_feature(self) -> None:
        with pytest.raises(SinkError, match="outside a feature"):
            DatasetBuilder().property("a", 1)
