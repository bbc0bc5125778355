"""
Geometry - hull containment and local normal estimation.

Example:
    >>> from pcfilter.geometry import Hull, contains_points, NormalEstimation
    >>>
    >>> hull = Hull.box((-1, -1, -1), (1, 1, 1))
    >>> mask = contains_points(hull, cloud.points)
    >>> cloud = NormalEstimation(k=10).compute(cloud)
"""

from pcfilter.geometry.hull import RAY_DIRECTIONS, Hull, contains, contains_points
from pcfilter.geometry.normals import (
    NormalEstimation,
    compute_centroid_and_covariance,
    estimate_normal,
    orient_normal,
    orient_normals,
)

__all__ = [
    "Hull",
    "RAY_DIRECTIONS",
    "contains",
    "contains_points",
    "NormalEstimation",
    "compute_centroid_and_covariance",
    "estimate_normal",
    "orient_normal",
    "orient_normals",
]
