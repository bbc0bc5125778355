"""Neighbourhood-based outlier removal.

:class:`StatisticalOutlierRemoval` computes, for every point, the mean
distance to its ``mean_k`` nearest neighbours. Points whose mean distance
exceeds ``mean + stddev_mul * stddev`` over the whole cloud are outliers.

:class:`RadiusOutlierRemoval` counts the other points within ``radius``;
points with fewer than ``min_neighbors`` are outliers.

Both keep the inliers, or only the outliers when ``negative=True``.
Non-finite points and points without any neighbour are outliers, so the
two polarities always partition the cloud.

Example:
    >>> from pcfilter import StatisticalOutlierRemoval
    >>>
    >>> clean = StatisticalOutlierRemoval(mean_k=16, stddev_mul=2.0)(cloud)
"""

from __future__ import annotations

import logging

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import RadiusOutlierValues, StatisticalOutlierValues
from pcfilter.filter.base import IndexFilter
from pcfilter.protocols import SearchFactory
from pcfilter.search import KDTreeSearch

logger = logging.getLogger(__name__)


def _keep(inlier: np.ndarray, negative: bool) -> np.ndarray:
    return np.flatnonzero(inlier ^ negative).astype(np.int64)


class StatisticalOutlierRemoval(IndexFilter):
    """
    Remove points that are far from their neighbours compared to the rest.

    :param mean_k: Neighbours averaged per point, the point itself excluded
    :param stddev_mul: Standard deviation multiplier for the threshold
    :param negative: Keep the outliers instead of the inliers
    :param search_factory: Builds the neighbour search for a cloud
    """

    def __init__(
        self,
        mean_k: int = 8,
        stddev_mul: float = 1.0,
        negative: bool = False,
        search_factory: SearchFactory = KDTreeSearch,
    ):
        values = StatisticalOutlierValues(mean_k=mean_k, stddev_mul=stddev_mul, negative=negative)
        self.mean_k = values.mean_k
        self.stddev_mul = values.stddev_mul
        self.negative = values.negative
        self.search_factory = search_factory

    @classmethod
    def from_values(cls, values: StatisticalOutlierValues, **kwargs) -> StatisticalOutlierRemoval:
        return cls(values.mean_k, values.stddev_mul, values.negative, **kwargs)

    def __repr__(self) -> str:
        return (
            f"StatisticalOutlierRemoval(mean_k={self.mean_k}, stddev_mul={self.stddev_mul}, "
            f"negative={self.negative})"
        )

    def mean_distances(self, cloud: PointCloud) -> np.ndarray:
        """Mean neighbour distance per point [N]; NaN for non-finite or isolated points."""
        out = np.full(len(cloud), np.nan)
        finite = np.flatnonzero(cloud.finite_mask())
        if finite.size == 0:
            return out
        search = self.search_factory(cloud)
        points = cloud.points
        for i in finite:
            nbrs = search.k_nearest(int(i), self.mean_k + 1)
            nbrs = nbrs[nbrs != i][: self.mean_k]
            if nbrs.size:
                out[i] = np.linalg.norm(points[nbrs] - points[i], axis=1).mean()
        return out

    def threshold(self, distances: np.ndarray) -> float:
        """``mean + stddev_mul * stddev`` of the finite mean distances (NaN if none)."""
        valid = distances[np.isfinite(distances)]
        if valid.size == 0:
            return float("nan")
        return float(valid.mean() + self.stddev_mul * valid.std())

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        distances = self.mean_distances(cloud)
        limit = self.threshold(distances)
        with np.errstate(invalid="ignore"):
            inlier = distances <= limit
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[StatisticalOutlierRemoval] threshold %.4g, %d/%d inliers",
                limit,
                int(inlier.sum()),
                len(cloud),
            )
        return _keep(inlier, self.negative)


class RadiusOutlierRemoval(IndexFilter):
    """
    Remove points with too few neighbours within a radius.

    :param radius: Search radius, > 0
    :param min_neighbors: Other points needed within ``radius``
    :param negative: Keep the outliers instead of the inliers
    :param search_factory: Builds the neighbour search for a cloud
    """

    def __init__(
        self,
        radius: float,
        min_neighbors: int = 2,
        negative: bool = False,
        search_factory: SearchFactory = KDTreeSearch,
    ):
        values = RadiusOutlierValues(radius=radius, min_neighbors=min_neighbors, negative=negative)
        self.radius = values.radius
        self.min_neighbors = values.min_neighbors
        self.negative = values.negative
        self.search_factory = search_factory

    @classmethod
    def from_values(cls, values: RadiusOutlierValues, **kwargs) -> RadiusOutlierRemoval:
        return cls(values.radius, values.min_neighbors, values.negative, **kwargs)

    def __repr__(self) -> str:
        return (
            f"RadiusOutlierRemoval(radius={self.radius}, min_neighbors={self.min_neighbors}, "
            f"negative={self.negative})"
        )

    def neighbor_counts(self, cloud: PointCloud) -> np.ndarray:
        """Other points within ``radius`` per point [N]; -1 for non-finite points."""
        counts = np.full(len(cloud), -1, dtype=np.int64)
        finite = np.flatnonzero(cloud.finite_mask())
        if finite.size == 0:
            return counts
        search = self.search_factory(cloud)
        for i in finite:
            counts[i] = search.radius_search(int(i), self.radius).size - 1
        return counts

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        inlier = self.neighbor_counts(cloud) >= self.min_neighbors
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[RadiusOutlierRemoval] %d/%d inliers", int(inlier.sum()), len(cloud)
            )
        return _keep(inlier, self.negative)
