"""SVG rendering as a processor sink.

Geometry nodes become ``<path>`` elements written straight to a binary
stream as the calls arrive:

- Point      -> ``<path d="M x y Z"/>``
- LineString -> ``<path d="M x y x y ..."/>``
- Polygon    -> one ``<path>`` with an ``M ... Z`` subpath per ring

Composite kinds only group their members. A dataset bracket adds the
XML declaration, the ``<svg>`` root (SVG 1.2 Tiny) and a ``<g>`` named
after the dataset; without it the output is a bare fragment. Only X and
Y are rendered.
"""

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING
from xml.sax.saxutils import quoteattr

from geostream.core.constants import SVG_NAMESPACE
from geostream.models.geometry import GeometryKind
from geostream.protocol.processor import FeatureProcessor

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geostream.core.config import GeoStreamConfig
    from geostream.models.geometry import Dimension

logger = logging.getLogger(__name__)


def format_number(value: float, precision: int | None = None) -> str:
    """Render a coordinate value; integral values have no decimal point."""
    if precision is not None:
        value = round(value, precision)
    if value == 0:
        return "0"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


class SvgWriter(FeatureProcessor):
    """Write SVG markup for every geometry it receives.

    Args:
        out: Binary stream receiving UTF-8 markup.
        invert_y: Negate Y values (SVG's Y axis points down).
        precision: Optional decimal places for coordinates.
    """

    wants_properties = False
    binary = False

    def __init__(
        self,
        out: IO[bytes],
        *,
        invert_y: bool = False,
        precision: int | None = None,
    ) -> None:
        self._out = out
        self._invert_y = invert_y
        self._precision = precision
        self._view_box: tuple[float, float, float, float] | None = None
        self._size: tuple[int, int] | None = None
        self._kinds: list[GeometryKind] = []

    @classmethod
    def from_config(cls, out: IO[bytes], config: GeoStreamConfig) -> SvgWriter:
        return cls(out, invert_y=config.svg_invert_y, precision=config.coordinate_precision)

    def set_dimensions(
        self,
        xmin: float,
        ymin: float,
        xmax: float,
        ymax: float,
        width: int,
        height: int,
    ) -> None:
        """Set the document viewBox and output size written by ``dataset_begin``."""
        self._view_box = (xmin, ymin, xmax, ymax)
        self._size = (width, height)

    def _write(self, text: str) -> None:
        self._out.write(text.encode("utf-8"))

    def _number(self, value: float) -> str:
        return format_number(value, self._precision)

    # -- dataset / feature -------------------------------------------------

    def dataset_begin(self, name: str | None) -> None:
        header = [
            '<?xml version="1.0"?>\n',
            f'<svg xmlns="{SVG_NAMESPACE}" version="1.2" baseProfile="tiny" ',
        ]
        if self._size is not None:
            width, height = self._size
            header.append(f'width="{width}" height="{height}" ')
        if self._view_box is not None:
            xmin, ymin, xmax, ymax = self._view_box
            if self._invert_y:
                ymin, ymax = -ymax, -ymin
            header.append(
                f'viewBox="{self._number(xmin)} {self._number(ymin)} '
                f'{self._number(xmax - xmin)} {self._number(ymax - ymin)}" '
            )
        header.append('stroke-linecap="round" stroke-linejoin="round">\n')
        header.append(f"<g id={quoteattr(name or '')}>")
        self._write("".join(header))

    def dataset_end(self) -> None:
        self._write("</g>\n</svg>")

    def feature_begin(self, index: int) -> None:
        self._write("\n")

    # -- geometry ----------------------------------------------------------

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        kind = GeometryKind(kind)
        self._kinds.append(kind)
        if kind is GeometryKind.POINT:
            self._write('<path d="M ')
        elif kind in (GeometryKind.LINESTRING, GeometryKind.POLYGON):
            self._write('<path d="')
            if kind is GeometryKind.LINESTRING:
                self._write("M ")

    def geometry_end(self) -> None:
        kind = self._kinds.pop()
        if kind is GeometryKind.POINT:
            self._write('Z"/>')
        elif kind in (GeometryKind.LINESTRING, GeometryKind.POLYGON):
            self._write('"/>')

    def ring_begin(self) -> None:
        self._write("M ")

    def ring_end(self) -> None:
        self._write("Z ")

    def coordinate(self, values: Sequence[float]) -> None:
        x, y = values[0], values[1]
        if self._invert_y:
            y = -y
        self._write(f"{self._number(x)} {self._number(y)} ")
