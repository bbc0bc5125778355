"""
Protocol definitions for pcfilter's injected collaborators.

Neighbour search and eigen-decomposition are capabilities handed to the
normal estimator rather than hard dependencies, so the filters can run
against deterministic stand-ins (brute-force search, closed-form solver).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np

    from pcfilter.cloud import PointCloud
    from pcfilter.filter.base import FilterResult


@runtime_checkable
class NeighborSearch(Protocol):
    """Neighbour queries bound to one cloud.

    Results are indices into that cloud, sorted by distance, including the
    query point itself.
    """

    def k_nearest(self, index: int, k: int) -> np.ndarray:
        """Indices of the ``k`` nearest points to point ``index``."""
        ...

    def radius_search(self, index: int, radius: float) -> np.ndarray:
        """Indices of all points within ``radius`` of point ``index``."""
        ...


# Builds a NeighborSearch for a cloud (e.g. KDTreeSearch, BruteForceSearch)
SearchFactory = Callable[["PointCloud"], NeighborSearch]


@runtime_checkable
class EigenSolver(Protocol):
    """Symmetric 3x3 eigen-decomposition."""

    def eigh(self, matrices: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Decompose [3, 3] or [..., 3, 3] symmetric matrices.

        :returns: (eigenvalues [..., 3] ascending, eigenvectors [..., 3, 3] as columns)
        """
        ...


@runtime_checkable
class CloudFilter(Protocol):
    """Index-producing filter: keeps a subset of the input points."""

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        """Indices of kept points."""
        ...

    def apply(self, cloud: PointCloud) -> FilterResult:
        """Filtered cloud plus kept and removed indices."""
        ...
