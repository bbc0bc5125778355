"""Neighbour search over a fixed cloud.

Both searchers follow the :class:`pcfilter.protocols.NeighborSearch`
contract: results are point indices into the searched cloud, sorted by
distance (ties by index), and include the query point itself. Points with
non-finite coordinates are never returned and have no neighbours.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial import cKDTree

from pcfilter.cloud import PointCloud
from pcfilter.errors import InvalidParameterError

logger = logging.getLogger(__name__)


def _check_k(k: int) -> int:
    if int(k) < 1:
        raise InvalidParameterError(f"k must be >= 1, got {k}")
    return int(k)


def _check_radius(radius: float) -> float:
    if not radius > 0.0:
        raise InvalidParameterError(f"radius must be positive, got {radius}")
    return float(radius)


def _sorted_by_distance(indices: np.ndarray, dist_sq: np.ndarray) -> np.ndarray:
    order = np.lexsort((indices, dist_sq))
    return indices[order].astype(np.int64)


class BruteForceSearch:
    """Exhaustive O(N) search per query. Deterministic, for tests and small clouds."""

    def __init__(self, cloud: PointCloud):
        self.cloud = cloud
        self._points = cloud.points
        self._finite = cloud.finite_mask()

    def _dist_sq(self, index: int) -> np.ndarray | None:
        if not self._finite[index]:
            return None
        diff = self._points - self._points[index]
        d = np.einsum("ij,ij->i", diff, diff)
        d[~self._finite] = np.inf
        return d

    def k_nearest(self, index: int, k: int) -> np.ndarray:
        k = _check_k(k)
        d = self._dist_sq(index)
        if d is None:
            return np.empty(0, dtype=np.int64)
        candidates = np.flatnonzero(np.isfinite(d))
        nearest = _sorted_by_distance(candidates, d[candidates])
        return nearest[:k]

    def radius_search(self, index: int, radius: float) -> np.ndarray:
        radius = _check_radius(radius)
        d = self._dist_sq(index)
        if d is None:
            return np.empty(0, dtype=np.int64)
        candidates = np.flatnonzero(d <= radius * radius)
        return _sorted_by_distance(candidates, d[candidates])


class KDTreeSearch:
    """KD-tree search backed by ``scipy.spatial.cKDTree``."""

    def __init__(self, cloud: PointCloud, leafsize: int = 16):
        self.cloud = cloud
        self._points = cloud.points
        self._finite = cloud.finite_mask()
        self._tree_index = np.flatnonzero(self._finite)
        self._tree = cKDTree(self._points[self._tree_index], leafsize=leafsize)
        logger.debug("[KDTreeSearch] Built tree over %d points", self._tree_index.size)

    def k_nearest(self, index: int, k: int) -> np.ndarray:
        k = _check_k(k)
        if not self._finite[index] or self._tree_index.size == 0:
            return np.empty(0, dtype=np.int64)
        k_eff = min(k, self._tree_index.size)
        # Ask for one extra so ties at the k-th distance can be ordered by index
        k_query = min(k_eff + 1, self._tree_index.size)
        dist, local = self._tree.query(self._points[index], k=k_query)
        dist = np.atleast_1d(dist)
        local = np.atleast_1d(local)
        found = self._tree_index[local]
        return _sorted_by_distance(found, dist * dist)[:k_eff]

    def radius_search(self, index: int, radius: float) -> np.ndarray:
        radius = _check_radius(radius)
        if not self._finite[index] or self._tree_index.size == 0:
            return np.empty(0, dtype=np.int64)
        local = np.asarray(self._tree.query_ball_point(self._points[index], r=radius), dtype=np.int64)
        found = self._tree_index[local]
        diff = self._points[found] - self._points[index]
        return _sorted_by_distance(found, np.einsum("ij,ij->i", diff, diff))
