"""Call-sequence validation.

``ValidatingProcessor`` sits between a source and a sink and checks
every call against the processor grammar before forwarding it. It
turns a buggy source into an immediate ``ProtocolError`` instead of a
corrupt artifact further down the line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, NoReturn

from geostream.core.exceptions import ProtocolError
from geostream.models.geometry import Dimension, GeometryKind
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geostream.models.feature import PropertyValue

logger = logging.getLogger(__name__)

_DATASET = "dataset"
_FEATURE = "feature"
_PROPERTIES = "properties"
_GEOMETRY = "geometry"
_RING = "ring"


@dataclass(slots=True)
class _Frame:
    bracket: str
    index: int = -1
    kind: GeometryKind | None = None
    dimension: Dimension | None = None
    coordinates: int = 0
    has_properties: bool = False
    has_geometry: bool = False


class ValidatingProcessor(FeatureProcessor):
    """Check the call sequence, then forward each call to ``inner``.

    Raises ``ProtocolError`` (a ``SinkError``) on the first call that
    breaks the grammar; the inner sink never sees that call.
    """

    def __init__(self, inner: FeatureProcessor) -> None:
        self.inner = inner
        self.wants_properties = inner.wants_properties
        self._stack: list[_Frame] = []
        self._dataset_seen = False

    # -- helpers ---------------------------------------------------------

    def _top(self) -> _Frame | None:
        return self._stack[-1] if self._stack else None

    def _fail(self, message: str) -> NoReturn:
        path = "/".join(
            frame.kind.value if frame.kind is not None else frame.bracket for frame in self._stack
        )
        logger.debug("Protocol violation: %s", message)
        raise ProtocolError(f"{message} (open: {path or 'nothing'})")

    def _pop(self, bracket: str, call: str) -> _Frame:
        top = self._top()
        if top is None or top.bracket != bracket:
            self._fail(f"{call} without matching {bracket} begin")
        return self._stack.pop()

    def finish(self) -> None:
        """Assert the walk closed every bracket it opened."""
        if self._stack:
            self._fail("walk ended with open brackets")

    # -- dataset ---------------------------------------------------------

    def dataset_begin(self, name: str | None) -> None:
        if self._stack or self._dataset_seen:
            self._fail("dataset_begin must be the first call of a walk")
        self._dataset_seen = True
        self._stack.append(_Frame(_DATASET))
        self.inner.dataset_begin(name)

    def dataset_end(self) -> None:
        self._pop(_DATASET, "dataset_end")
        self.inner.dataset_end()

    # -- feature ---------------------------------------------------------

    def feature_begin(self, index: int) -> None:
        top = self._top()
        if top is None and self._dataset_seen:
            self._fail(f"feature_begin({index}) after the dataset closed")
        if top is not None and top.bracket != _DATASET:
            self._fail(f"feature_begin({index}) inside {top.bracket}")
        if index < 0:
            self._fail(f"feature index must be >= 0, got {index}")
        self._stack.append(_Frame(_FEATURE, index=index))
        self.inner.feature_begin(index)

    def feature_end(self, index: int) -> None:
        top = self._top()
        if top is not None and top.bracket == _FEATURE and top.index != index:
            self._fail(f"feature_end({index}) closes feature_begin({top.index})")
        self._pop(_FEATURE, f"feature_end({index})")
        self.inner.feature_end(index)

    def properties_begin(self) -> None:
        top = self._top()
        if top is None or top.bracket != _FEATURE:
            self._fail("properties_begin outside a feature")
        if top.has_properties:
            self._fail("properties emitted twice for one feature")
        if top.has_geometry:
            self._fail("properties_begin after the feature geometry")
        top.has_properties = True
        self._stack.append(_Frame(_PROPERTIES))
        self.inner.properties_begin()

    def properties_end(self) -> None:
        self._pop(_PROPERTIES, "properties_end")
        self.inner.properties_end()

    # -- geometry --------------------------------------------------------

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        kind = GeometryKind(kind)
        dimension = Dimension(dimension)
        top = self._top()
        if top is None:
            if self._dataset_seen:
                self._fail("geometry_begin after the dataset closed")
        elif top.bracket == _DATASET:
            self._fail("geometry_begin directly inside a dataset")
        elif top.bracket == _FEATURE:
            if top.has_geometry:
                self._fail(f"second geometry in feature {top.index}")
            top.has_geometry = True
        elif top.bracket == _GEOMETRY:
            self._check_member(top, kind, dimension)
        else:
            self._fail(f"geometry_begin inside {top.bracket}")
        self._stack.append(_Frame(_GEOMETRY, kind=kind, dimension=dimension))
        self.inner.geometry_begin(kind, dimension, srid)

    def _check_member(self, parent: _Frame, kind: GeometryKind, dimension: Dimension) -> None:
        parent_kind, parent_dimension = parent.kind, parent.dimension
        if parent_kind is None or parent_dimension is None:
            self._fail(f"{kind.value} inside a geometry frame without kind or dimension")
        if not parent_kind.is_composite:
            self._fail(f"{kind.value} nested inside {parent_kind.value}")
        expected = parent_kind.member_kind
        if expected is not None and kind is not expected:
            self._fail(f"{parent_kind.value} member must be {expected.value}, got {kind.value}")
        if dimension is not parent_dimension:
            self._fail(
                f"member dimension {dimension.value} differs from "
                f"{parent_kind.value} dimension {parent_dimension.value}"
            )

    def geometry_end(self) -> None:
        self._pop(_GEOMETRY, "geometry_end")
        self.inner.geometry_end()

    def ring_begin(self) -> None:
        top = self._top()
        if top is None or top.kind is not GeometryKind.POLYGON:
            self._fail("ring_begin outside a Polygon")
        self._stack.append(_Frame(_RING, dimension=top.dimension))
        self.inner.ring_begin()

    def ring_end(self) -> None:
        self._pop(_RING, "ring_end")
        self.inner.ring_end()

    def coordinate(self, values: Sequence[float]) -> None:
        top = self._top()
        if top is None:
            self._fail("coordinate outside a geometry")
        if top.bracket == _GEOMETRY:
            if top.kind is GeometryKind.POINT:
                if top.coordinates:
                    self._fail("Point with more than one coordinate")
            elif top.kind is not GeometryKind.LINESTRING:
                self._fail(f"coordinate directly inside {top.kind.value}")  # type: ignore[union-attr]
        elif top.bracket != _RING:
            self._fail(f"coordinate inside {top.bracket}")
        dimension = top.dimension
        if dimension is None:
            self._fail(f"coordinate inside a {top.bracket} frame without a dimension")
        if len(values) != dimension.size:
            self._fail(
                f"coordinate has {len(values)} components, "
                f"dimension {dimension.value} needs {dimension.size}"
            )
        top.coordinates += 1
        self.inner.coordinate(values)

    # -- properties ------------------------------------------------------

    def property(self, name: str, value: PropertyValue) -> None:
        top = self._top()
        if top is None or top.bracket != _PROPERTIES:
            self._fail(f"property {name!r} outside properties_begin/properties_end")
        self.inner.property(name, value)
