"""Common filter plumbing: the result type and the index-filter base class.

An index filter decides which input points survive. Subclasses implement
:meth:`IndexFilter.filter_indices`; the base class derives the removed
set, the output cloud and the call conventions from it.

Example:
    >>> result = CropHull(hull).apply(cloud)
    >>> result.cloud, result.indices, result.removed_indices
    >>> kept_cloud = CropHull(hull)(cloud)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from pcfilter.cloud import PointCloud

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterResult:
    """Output of an index filter.

    Attributes:
        cloud: New cloud of the kept points, in ``indices`` order
        indices: Kept input indices, ascending
        removed_indices: Input indices not kept, ascending
    """

    cloud: PointCloud
    indices: np.ndarray
    removed_indices: np.ndarray

    def __len__(self) -> int:
        return len(self.cloud)

    @property
    def mask(self) -> np.ndarray:
        """Boolean keep-mask over the input cloud."""
        mask = np.zeros(len(self.indices) + len(self.removed_indices), dtype=bool)
        mask[self.indices] = True
        return mask


def complement(indices: np.ndarray, n: int) -> np.ndarray:
    """Ascending indices in ``range(n)`` not present in ``indices``."""
    keep = np.ones(n, dtype=bool)
    keep[np.asarray(indices, dtype=np.int64)] = False
    return np.flatnonzero(keep).astype(np.int64)


class IndexFilter(ABC):
    """Base class for filters that keep a subset of the input points."""

    @abstractmethod
    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        """Ascending indices of the points this filter keeps."""

    def filter_all_indices(self, cloud: PointCloud) -> tuple[np.ndarray, np.ndarray]:
        """(kept, removed) indices; together they partition ``range(len(cloud))``."""
        kept = np.asarray(self.filter_indices(cloud), dtype=np.int64)
        return kept, complement(kept, len(cloud))

    def apply(self, cloud: PointCloud) -> FilterResult:
        """Run the filter and build the output cloud."""
        kept, removed = self.filter_all_indices(cloud)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("[%s] kept %d/%d points", type(self).__name__, kept.size, len(cloud))
        return FilterResult(cloud=cloud.select(kept), indices=kept, removed_indices=removed)

    def __call__(self, cloud: PointCloud) -> PointCloud:
        return self.apply(cloud).cloud
