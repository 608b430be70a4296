"""Dataset walker — replays a sequence of features as processor calls.

Wraps the geometry walker with feature brackets and, when the sink asks
for them, property calls. A failure on any feature aborts the whole
walk; partial datasets are never produced.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from geostream.walkers.geometry import walk_geometry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from geostream.models.feature import Feature
    from geostream.protocol.processor import FeatureProcessor

logger = logging.getLogger(__name__)


def walk_dataset(
    features: Iterable[Feature],
    processor: FeatureProcessor,
    *,
    name: str | None = None,
    srid: int | None = None,
) -> int:
    """Emit every feature of ``features`` inside a dataset bracket.

    ``features`` may be lazy (a generator); it is consumed once, in order.

    Args:
        features: The features, in dataset order.
        processor: The sink.
        name: Dataset name passed to ``dataset_begin``.
        srid: SRID for feature geometries that carry none.

    Returns:
        The number of features walked.
    """
    processor.dataset_begin(name)
    count = 0
    for index, feature in enumerate(features):
        walk_feature(feature, index, processor, srid=srid)
        count += 1
    processor.dataset_end()
    logger.debug("Walked dataset %r with %d feature(s)", name, count)
    return count


def walk_feature(
    feature: Feature,
    index: int,
    processor: FeatureProcessor,
    *,
    srid: int | None = None,
) -> None:
    """Emit one feature without a dataset bracket."""
    processor.feature_begin(index)
    if feature.properties and processor.wants_properties:
        processor.properties_begin()
        for key, value in feature.properties.items():
            processor.property(key, value)
        processor.properties_end()
    if feature.geometry is not None:
        walk_geometry(feature.geometry, processor, srid=srid)
    processor.feature_end(index)
