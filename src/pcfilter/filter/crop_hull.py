"""Crop a cloud to the inside (or outside) of a closed hull.

Example:
    >>> from pcfilter import CropHull, Hull
    >>>
    >>> hull = Hull.box((-0.25, -0.25, -0.25), (0.25, 0.25, 0.25))
    >>> result = CropHull(hull).apply(cloud)
    >>> outside = CropHull(hull, inside_is_kept=False).apply(cloud)
"""

from __future__ import annotations

import logging

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import CropHullValues
from pcfilter.filter.base import IndexFilter
from pcfilter.geometry.hull import Hull, contains_points

logger = logging.getLogger(__name__)


class CropHull(IndexFilter):
    """
    Keep points by hull containment.

    With ``inside_is_kept=True`` points inside or on the hull are kept;
    with ``False`` the rest are kept. Non-finite points are never inside,
    so the two polarities always partition the cloud.

    :param hull: Closed hull
    :param inside_is_kept: Polarity of the crop
    :raises InvalidParameterError: If ``hull`` is missing
    """

    def __init__(self, hull: Hull, inside_is_kept: bool = True):
        values = CropHullValues(hull=hull, inside_is_kept=inside_is_kept)
        self.hull = values.hull
        self.inside_is_kept = values.inside_is_kept

    @classmethod
    def from_values(cls, values: CropHullValues) -> CropHull:
        return cls(values.hull, values.inside_is_kept)

    def __repr__(self) -> str:
        return f"CropHull({self.hull!r}, inside_is_kept={self.inside_is_kept})"

    def get_mask(self, cloud: PointCloud) -> np.ndarray:
        """Boolean keep-mask [N]."""
        inside = contains_points(self.hull, cloud.points)
        return inside if self.inside_is_kept else ~inside

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        return np.flatnonzero(self.get_mask(cloud)).astype(np.int64)

    def filter_all_indices(self, cloud: PointCloud) -> tuple[np.ndarray, np.ndarray]:
        mask = self.get_mask(cloud)
        return np.flatnonzero(mask).astype(np.int64), np.flatnonzero(~mask).astype(np.int64)
