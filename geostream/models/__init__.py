"""Data models.

- Geometry values: Point, LineString, Polygon and their multi/collection kinds
- Feature: a geometry with scalar properties
- Dataset: an ordered collection of features with optional metadata
- DatasetInfo: pydantic summary of a dataset
"""

from geostream.models.feature import Dataset, Feature, PropertyValue
from geostream.models.geometry import (
    GEOMETRY_TYPES,
    Coordinate,
    Dimension,
    Geometry,
    GeometryCollection,
    GeometryKind,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    point,
)
from geostream.models.metadata import DatasetInfo

__all__ = [
    "GEOMETRY_TYPES",
    "Coordinate",
    "Dataset",
    "DatasetInfo",
    "Dimension",
    "Feature",
    "Geometry",
    "GeometryCollection",
    "GeometryKind",
    "LineString",
    "MultiLineString",
    "MultiPoint",
    "MultiPolygon",
    "Point",
    "Polygon",
    "PropertyValue",
    "point",
]
