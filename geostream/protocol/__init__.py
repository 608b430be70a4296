"""The processor protocol.

- FeatureProcessor: base sink with a no-op for every call
- GeometrySource / Datasource / DatasourceReader: structural source interfaces
- ValidatingProcessor: call-sequence checker that wraps another sink
- EventRecorder: sink that records calls
- BoundsProcessor: sink that accumulates the XY bounding box
"""

from geostream.protocol.bounds import BoundsProcessor
from geostream.protocol.processor import (
    Datasource,
    DatasourceReader,
    FeatureProcessor,
    GeometrySource,
)
from geostream.protocol.recorder import EventRecorder
from geostream.protocol.validation import ValidatingProcessor

__all__ = [
    "BoundsProcessor",
    "Datasource",
    "DatasourceReader",
    "EventRecorder",
    "FeatureProcessor",
    "GeometrySource",
    "ValidatingProcessor",
]
