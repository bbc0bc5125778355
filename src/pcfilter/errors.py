"""Exception taxonomy for point cloud filtering.

Every failure is deterministic: the same inputs fail the same way, so
nothing in the package retries. Fix the input instead.
"""

from __future__ import annotations


class PointCloudError(Exception):
    """Base class for all pcfilter errors."""


class InvalidParameterError(PointCloudError, ValueError):
    """A filter or index parameter is out of range (leaf size, sample count, ...)."""


class InsufficientNeighborsError(PointCloudError):
    """Fewer than three neighbours were supplied, so no plane can be fit.

    Attributes:
        index: Index of the query point, if known
        count: Number of neighbours actually supplied
    """

    def __init__(self, count: int, index: int | None = None):
        self.index = index
        self.count = count
        where = f" for point {index}" if index is not None else ""
        super().__init__(f"need at least 3 neighbours{where}, got {count}")


class DegenerateGeometryError(PointCloudError, ValueError):
    """Geometry cannot be used as given (zero-area polygon, zero-length ray)."""
