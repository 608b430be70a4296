"""The processor contract shared by every source and sink.

A source (a decoder, a walker over an in-memory tree) drives a sink by
calling the methods below in a fixed order; the sink accumulates state
and yields a finished artifact once the root bracket closes.

Call grammar::

    dataset    := dataset_begin feature* dataset_end
    feature    := feature_begin properties? geometry? feature_end
    properties := properties_begin property* properties_end
    geometry   := geometry_begin body geometry_end
    body       := coordinate*            (Point: at most one, LineString)
                | ring*                  (Polygon)
                | geometry*              (Multi* and GeometryCollection)
    ring       := ring_begin coordinate* ring_end

The dataset and feature brackets are optional: a bare geometry walk
issues only the ``geometry`` production.

Failure is signalled by raising a ``GeoStreamError`` (normally
``SinkError``) from any call. Sources never catch it, so the first
failure aborts the walk and no further calls are made. A sink that
raised, or that saw the walk abort, is discarded; it never exposes a
partial artifact. Values passed to a call are borrowed: a sink that
needs them later copies them during the call.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from geostream.models.feature import PropertyValue
    from geostream.models.geometry import Dimension, GeometryKind


class FeatureProcessor:
    """Base sink; every call defaults to a no-op.

    Subclasses override the calls they care about. Setting
    ``wants_properties`` to ``False`` asks the dataset walker not to
    emit property calls at all.
    """

    wants_properties: bool = True

    # -- dataset ---------------------------------------------------------

    def dataset_begin(self, name: str | None) -> None:
        """Start of a multi-feature dataset."""

    def dataset_end(self) -> None:
        """End of the dataset."""

    # -- feature ---------------------------------------------------------

    def feature_begin(self, index: int) -> None:
        """Start of the feature at zero-based ``index``."""

    def feature_end(self, index: int) -> None:
        """End of the feature at ``index``."""

    def properties_begin(self) -> None:
        """Start of the current feature's properties."""

    def property(self, name: str, value: PropertyValue) -> None:
        """One scalar property of the current feature."""

    def properties_end(self) -> None:
        """End of the current feature's properties."""

    # -- geometry --------------------------------------------------------

    def geometry_begin(
        self, kind: GeometryKind, dimension: Dimension, srid: int | None
    ) -> None:
        """Start of a geometry node; only the root node carries an SRID."""

    def geometry_end(self) -> None:
        """End of the innermost open geometry node."""

    def ring_begin(self) -> None:
        """Start of a Polygon ring; the first ring is the exterior."""

    def ring_end(self) -> None:
        """End of the current ring."""

    def coordinate(self, values: Sequence[float]) -> None:
        """One position with as many components as the declared dimension."""


# ---------------------------------------------------------------------------
# Source interfaces (structural)
# ---------------------------------------------------------------------------


@runtime_checkable
class GeometrySource(Protocol):
    """Anything that can replay one geometry."""

    def process_geom(self, processor: FeatureProcessor) -> None: ...


@runtime_checkable
class Datasource(Protocol):
    """Anything that can replay a sequence of features."""

    def process(self, processor: FeatureProcessor) -> None: ...


class DatasourceReader(Protocol):
    """A decoder that reads a byte stream straight into a processor."""

    def read(self, stream: IO[bytes], processor: FeatureProcessor) -> None: ...
