"""A sink that records every call it receives.

Useful for debugging a source ("what exactly did the decoder emit?")
and for asserting call order in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from geostream.core.exceptions import SinkError
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geostream.models.feature import PropertyValue
    from geostream.models.geometry import Dimension, GeometryKind

Event = tuple[object, ...]


class EventRecorder(FeatureProcessor):
    """Record calls as ``(name, *args)`` tuples.

    Args:
        wants_properties: Whether the dataset walker should emit properties.
        fail_at: Optional ``(call_name, n)``; the n-th (1-based) call with
            that name raises ``SinkError`` instead of being recorded.
    """

    def __init__(
        self,
        *,
        wants_properties: bool = True,
        fail_at: tuple[str, int] | None = None,
    ) -> None:
        self.wants_properties = wants_properties
        self.events: list[Event] = []
        self._fail_at = fail_at
        self._counts: dict[str, int] = {}

    @property
    def names(self) -> list[str]:
        """Call names in order, without arguments."""
        return [str(event[0]) for event in self.events]

    def count(self, name: str) -> int:
        return sum(1 for event in self.events if event[0] == name)

    def _record(self, name: str, *args: object) -> None:
        seen = self._counts.get(name, 0) + 1
        self._counts[name] = seen
        if self._fail_at is not None and self._fail_at == (name, seen):
            msg = f"Rejected {name} call #{seen}"
            raise SinkError(msg)
        self.events.append((name, *args))

    def dataset_begin(self, name: str | None) -> None:
        self._record("dataset_begin", name)

    def dataset_end(self) -> None:
        self._record("dataset_end")

    def feature_begin(self, index: int) -> None:
        self._record("feature_begin", index)

    def feature_end(self, index: int) -> None:
        self._record("feature_end", index)

    def properties_begin(self) -> None:
        self._record("properties_begin")

    def properties_end(self) -> None:
        self._record("properties_end")

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        self._record("geometry_begin", kind, dimension, srid)

    def geometry_end(self) -> None:
        self._record("geometry_end")

    def ring_begin(self) -> None:
        self._record("ring_begin")

    def ring_end(self) -> None:
        self._record("ring_end")

    def coordinate(self, values: Sequence[float]) -> None:
        self._record("coordinate", tuple(values))

    def property(self, name: str, value: PropertyValue) -> None:
        self._record("property", name, value)
