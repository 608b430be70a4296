"""KML as a datasource.

Parses a KML document with lxml and replays it as one dataset:

- the dataset is named after the ``<Document>`` (or top ``<Folder>``) name
- one feature per ``<Placemark>``, in document order, at any folder depth
- properties: ``name``, ``description``, then ExtendedData fields from
  both ``Data/value`` and ``SchemaData/SimpleData``
- geometries: Point, LineString, LinearRing (as a LineString), Polygon
  (outer boundary first) and MultiGeometry (a homogeneous one becomes
  the matching Multi* kind, a mixed one a GeometryCollection)

Coordinates are WGS 84 longitude/latitude, so every geometry carries
SRID 4326. Altitude is kept only when every coordinate of a placemark
has one. The whole document is parsed before the first processor call:
malformed input raises ``DecodeError`` and emits nothing.
"""

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING, Any

from lxml import etree

from geostream.core.constants import KML_NAMESPACE, KML_SRID
from geostream.core.exceptions import DecodeError
from geostream.models.feature import Feature
from geostream.models.geometry import (
    Dimension,
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)
from geostream.walkers.dataset import walk_dataset

if TYPE_CHECKING:
    from geostream.models.feature import PropertyValue
    from geostream.models.geometry import Coordinate, Geometry
    from geostream.protocol.processor import FeatureProcessor

logger = logging.getLogger(__name__)

_GEOMETRY_TAGS = ("Point", "LineString", "LinearRing", "Polygon", "MultiGeometry")


class KmlReader:
    """Read a KML byte stream into a processor."""

    @staticmethod
    def read(stream: IO[bytes], processor: FeatureProcessor) -> None:
        name, features = parse_kml(stream.read())
        walk_dataset(features, processor, name=name, srid=KML_SRID)
        logger.info("Read KML dataset %r with %d placemark(s)", name, len(features))


def parse_kml(content: bytes) -> tuple[str | None, list[Feature]]:
    """Parse KML bytes into a dataset name and its features.

    Raises:
        DecodeError: If the content is empty, not XML, not KML, or holds a
            malformed coordinate.
    """
    if not content.strip():
        msg = "KML document is empty"
        raise DecodeError(msg)

    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
    try:
        root = etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as exc:
        msg = f"Not valid XML: {exc}"
        raise DecodeError(msg) from exc

    qname = etree.QName(root)
    if qname.localname != "kml":
        msg = f"Not a KML document: root element is <{qname.localname}>"
        raise DecodeError(msg, expected="kml", actual=qname.localname)
    if qname.namespace not in (None, KML_NAMESPACE):
        logger.debug("KML root uses namespace %s", qname.namespace)

    reader = _Reader(qname.namespace)
    features = [reader.placemark(pm) for pm in root.iter(reader.tag("Placemark"))]
    return reader.dataset_name(root), features


class _Reader:
    """Element lookups bound to the document's KML namespace."""

    def __init__(self, namespace: str | None) -> None:
        self._ns = namespace

    def tag(self, local: str) -> str:
        return f"{{{self._ns}}}{local}" if self._ns else local

    def _text(self, elem: Any, local: str) -> str | None:
        child = elem.find(self.tag(local))
        if child is None or child.text is None:
            return None
        return child.text.strip()

    def dataset_name(self, root: Any) -> str | None:
        for container in ("Document", "Folder"):
            elem = root.find(self.tag(container))
            if elem is not None:
                return self._text(elem, "name")
        return None

    # -- placemarks --------------------------------------------------------

    def placemark(self, pm: Any) -> Feature:
        properties: dict[str, PropertyValue] = {}
        for field in ("name", "description"):
            value = self._text(pm, field)
            if value is not None:
                properties[field] = value
        properties.update(self._extended_data(pm))

        geometry = None
        for child in pm:
            if isinstance(child.tag, str) and etree.QName(child).localname in _GEOMETRY_TAGS:
                geometry = self._geometry(child, _has_z(self, child))
                break
        return Feature(geometry, properties)

    def _extended_data(self, pm: Any) -> dict[str, str]:
        metadata: dict[str, str] = {}
        extended = pm.find(self.tag("ExtendedData"))
        if extended is None:
            return metadata

        for data_elem in extended.findall(self.tag("Data")):
            key = data_elem.get("name", "")
            value = self._text(data_elem, "value")
            if key and value is not None:
                metadata[key] = value

        for schema_data in extended.findall(self.tag("SchemaData")):
            for simple_data in schema_data.findall(self.tag("SimpleData")):
                key = simple_data.get("name", "")
                if key and simple_data.text:
                    metadata[key] = simple_data.text.strip()
        return metadata

    # -- geometries --------------------------------------------------------

    def coordinates(self, elem: Any, has_z: bool) -> tuple[Coordinate, ...]:
        node = elem.find(self.tag("coordinates"))
        if node is None or not node.text:
            return ()
        size = 3 if has_z else 2
        return tuple(c[:size] for c in _parse_coordinates(node.text, node.sourceline))

    def _geometry(self, elem: Any, has_z: bool) -> Geometry:
        local = etree.QName(elem).localname
        dimension = Dimension.XYZ if has_z else Dimension.XY

        if local == "Point":
            coords = self.coordinates(elem, has_z)
            return Point(coords[0] if coords else None, dimension)
        if local in ("LineString", "LinearRing"):
            return LineString(self.coordinates(elem, has_z), dimension)
        if local == "Polygon":
            rings = []
            outer = elem.find(f"{self.tag('outerBoundaryIs')}/{self.tag('LinearRing')}")
            inners = elem.findall(f"{self.tag('innerBoundaryIs')}/{self.tag('LinearRing')}")
            if outer is None:
                if inners:
                    msg = (
                        f"KML <Polygon> on line {elem.sourceline} has inner rings "
                        "but no outerBoundaryIs/LinearRing"
                    )
                    raise DecodeError(msg, expected="outerBoundaryIs", actual="missing")
            else:
                rings.append(self.coordinates(outer, has_z))
            for inner in inners:
                rings.append(self.coordinates(inner, has_z))
            return Polygon(tuple(rings), dimension)

        members = [
            self._geometry(child, has_z)
            for child in elem
            if isinstance(child.tag, str) and etree.QName(child).localname in _GEOMETRY_TAGS
        ]
        return _multi(members, dimension)


def _multi(members: list[Geometry], dimension: Dimension) -> Geometry:
    kinds = {type(m) for m in members}
    if kinds == {Point}:
        return MultiPoint(tuple(members), dimension)  # type: ignore[arg-type]
    if kinds == {LineString}:
        return MultiLineString(tuple(members), dimension)  # type: ignore[arg-type]
    if kinds == {Polygon}:
        return MultiPolygon(tuple(members), dimension)  # type: ignore[arg-type]
    return GeometryCollection(tuple(members), dimension)


def _has_z(reader: _Reader, elem: Any) -> bool:
    """Whether every coordinate under ``elem`` carries an altitude."""
    seen = False
    for node in elem.iter(reader.tag("coordinates")):
        for coordinate in _parse_coordinates(node.text or "", node.sourceline):
            seen = True
            if len(coordinate) < 3:
                return False
    return seen


def _parse_coordinates(text: str, line: int | None) -> list[Coordinate]:
    """Parse ``lon,lat[,alt]`` tokens separated by whitespace."""
    coords: list[Coordinate] = []
    for token in text.split():
        parts = token.split(",")
        if not 2 <= len(parts) <= 3:
            msg = f"Malformed KML coordinate {token!r} on line {line}"
            raise DecodeError(msg, expected="lon,lat[,alt]", actual=token)
        try:
            coords.append(tuple(float(p) for p in parts))
        except ValueError as exc:
            msg = f"Malformed KML coordinate {token!r} on line {line}"
            raise DecodeError(msg, expected="numbers", actual=token) from exc
    return coords
