"""Bounding-box accumulation as a sink."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence


class BoundsProcessor(FeatureProcessor):
    """Track the XY extent of every coordinate it is given.

    NaN components are ignored. ``bounds`` is ``None`` until a finite
    coordinate has been seen.
    """

    wants_properties = False

    def __init__(self) -> None:
        self._minx = math.inf
        self._miny = math.inf
        self._maxx = -math.inf
        self._maxy = -math.inf

    @property
    def bounds(self) -> tuple[float, float, float, float] | None:
        """``(minx, miny, maxx, maxy)`` or ``None``."""
        if self._minx > self._maxx:
            return None
        return (self._minx, self._miny, self._maxx, self._maxy)

    def coordinate(self, values: Sequence[float]) -> None:
        x, y = values[0], values[1]
        if math.isnan(x) or math.isnan(y):
            return
        self._minx = min(self._minx, x)
        self._miny = min(self._miny, y)
        self._maxx = max(self._maxx, x)
        self._maxy = max(self._maxy, y)
