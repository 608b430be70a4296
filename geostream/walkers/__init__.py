"""Walkers that turn geometries and datasets into processor calls."""

from geostream.walkers.dataset import walk_dataset, walk_feature
from geostream.walkers.geometry import check_geometry, walk_geometry

__all__ = [
    "check_geometry",
    "walk_dataset",
    "walk_feature",
    "walk_geometry",
]
