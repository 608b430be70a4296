"""GeoJSON (RFC 7946) output as a processor sink.

Uses only stdlib json. The writer assembles plain dicts while calls
arrive and serialises the root object once its bracket closes:

- bare geometry -> geometry object
- feature       -> ``Feature`` (one JSON document per feature when
  there is no dataset bracket)
- dataset       -> ``FeatureCollection`` (with ``name`` when given)
"""

from __future__ import annotations

import json
from typing import IO, TYPE_CHECKING, Any

from geostream.core.exceptions import SinkError
from geostream.models.geometry import GeometryKind
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geostream.core.config import GeoStreamConfig
    from geostream.models.feature import PropertyValue
    from geostream.models.geometry import Dimension


class GeoJsonWriter(FeatureProcessor):
    """Write GeoJSON for the geometries, features and datasets it receives.

    Args:
        out: Binary stream receiving UTF-8 JSON.
        precision: Optional decimal places for coordinates.
    """

    binary = False

    def __init__(self, out: IO[bytes], *, precision: int | None = None) -> None:
        self._out = out
        self._precision = precision
        self._collection: dict[str, Any] | None = None
        self._feature: dict[str, Any] | None = None
        self._nodes: list[dict[str, Any]] = []
        self._ring: list[list[float]] | None = None
        self._documents = 0

    @classmethod
    def from_config(cls, out: IO[bytes], config: GeoStreamConfig) -> GeoJsonWriter:
        return cls(out, precision=config.coordinate_precision)

    def _dump(self, obj: dict[str, Any]) -> None:
        text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
        if self._documents:
            text = "\n" + text
        self._out.write(text.encode("utf-8"))
        self._documents += 1

    # -- dataset / feature -------------------------------------------------

    def dataset_begin(self, name: str | None) -> None:
        self._collection = {"type": "FeatureCollection"}
        if name is not None:
            self._collection["name"] = name
        self._collection["features"] = []

    def dataset_end(self) -> None:
        if self._collection is None:
            msg = "dataset_end without dataset_begin"
            raise SinkError(msg)
        self._dump(self._collection)
        self._collection = None

    def feature_begin(self, index: int) -> None:
        self._feature = {"type": "Feature", "properties": {}, "geometry": None}

    def feature_end(self, index: int) -> None:
        if self._feature is None:
            msg = f"feature_end({index}) without feature_begin"
            raise SinkError(msg)
        if self._collection is not None:
            self._collection["features"].append(self._feature)
        else:
            self._dump(self._feature)
        self._feature = None

    # -- geometry ----------------------------------------------------------

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        kind = GeometryKind(kind)
        node: dict[str, Any] = {"type": kind.value}
        if kind is GeometryKind.GEOMETRYCOLLECTION:
            node["geometries"] = []
        else:
            node["coordinates"] = []
        self._nodes.append(node)

    def geometry_end(self) -> None:
        node = self._nodes.pop()
        if node["type"] == GeometryKind.POINT.value and node["coordinates"]:
            node["coordinates"] = node["coordinates"][0]
        if self._nodes:
            parent = self._nodes[-1]
            if parent["type"] == GeometryKind.GEOMETRYCOLLECTION.value:
                parent["geometries"].append(node)
            else:
                parent["coordinates"].append(node["coordinates"])
        elif self._feature is not None:
            self._feature["geometry"] = node
        else:
            self._dump(node)

    def ring_begin(self) -> None:
        self._ring = []

    def ring_end(self) -> None:
        if self._ring is None or not self._nodes:
            msg = "ring_end without ring_begin"
            raise SinkError(msg)
        self._nodes[-1]["coordinates"].append(self._ring)
        self._ring = None

    def coordinate(self, values: Sequence[float]) -> None:
        if self._precision is not None:
            position = [round(v, self._precision) for v in values]
        else:
            position = list(values)
        if self._ring is not None:
            self._ring.append(position)
        elif self._nodes:
            self._nodes[-1]["coordinates"].append(position)
        else:
            msg = "coordinate outside a geometry"
            raise SinkError(msg)

    # -- properties --------------------------------------------------------

    def property(self, name: str, value: PropertyValue) -> None:
        if self._feature is None:
            msg = f"property {name!r} outside a feature"
            raise SinkError(msg)
        self._feature["properties"][name] = value
