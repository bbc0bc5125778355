"""Local surface normal estimation.

The normal at a point is the direction of least variance of its
neighbourhood: the eigenvector belonging to the smallest eigenvalue of the
neighbourhood covariance. Normals are flipped to face a viewpoint, and the
surface variation ``lambda_min / (lambda_0 + lambda_1 + lambda_2)`` is
reported as curvature.

Example:
    >>> from pcfilter.geometry import NormalEstimation
    >>>
    >>> with_normals = NormalEstimation(k=12, viewpoint=(0, 0, 10)).compute(cloud)
    >>> with_normals.normals.shape
    (N, 3)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.errors import InsufficientNeighborsError, InvalidParameterError
from pcfilter.linalg import NumpyEigenSolver
from pcfilter.protocols import EigenSolver, SearchFactory
from pcfilter.search import KDTreeSearch
from pcfilter.types import InsufficientPolicy, Vector3

logger = logging.getLogger(__name__)

MIN_NEIGHBORS = 3


def compute_centroid_and_covariance(points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Centroid and covariance (normalized by the point count) of a neighbourhood.

    :param points: Neighbourhood coordinates [K, 3]
    :returns: (centroid [3], covariance [3, 3])
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    centroid = pts.mean(axis=0)
    centered = pts - centroid
    cov = centered.T @ centered / pts.shape[0]
    return centroid, cov


def orient_normal(normal: np.ndarray, point: np.ndarray, viewpoint: np.ndarray) -> np.ndarray:
    """Flip ``normal`` so that ``dot(normal, viewpoint - point) >= 0``."""
    if float(np.dot(normal, np.asarray(viewpoint) - np.asarray(point))) < 0.0:
        return -normal
    return normal


def orient_normals(normals: np.ndarray, points: np.ndarray, viewpoint: np.ndarray) -> np.ndarray:
    """Vectorized :func:`orient_normal` over [N, 3] arrays."""
    facing = np.einsum("ij,ij->i", normals, np.asarray(viewpoint) - points)
    return np.where((facing < 0.0)[:, None], -normals, normals)


def _curvature(eigenvalues: np.ndarray) -> np.ndarray:
    values = np.maximum(eigenvalues, 0.0)
    total = values.sum(axis=-1)
    with np.errstate(invalid="ignore", divide="ignore"):
        curv = np.where(total > 0.0, values[..., 0] / total, 0.0)
    return np.clip(curv, 0.0, 1.0)


def estimate_normal(
    cloud: PointCloud,
    index: int,
    neighbors: Sequence[int] | np.ndarray,
    viewpoint: Vector3 = (0.0, 0.0, 0.0),
    solver: EigenSolver | None = None,
) -> tuple[np.ndarray, float]:
    """
    Estimate the normal and curvature of one point from its neighbours.

    :param cloud: Cloud holding the point and its neighbours
    :param index: Index of the query point (used for orientation)
    :param neighbors: Neighbour indices into ``cloud`` (may include ``index``)
    :param viewpoint: Normal is oriented to face this position
    :param solver: Eigen-solver, defaults to :class:`NumpyEigenSolver`
    :returns: (unit normal [3], curvature in [0, 1])
    :raises InsufficientNeighborsError: Fewer than 3 neighbours
    """
    nbrs = np.asarray(neighbors, dtype=np.int64).reshape(-1)
    if nbrs.size < MIN_NEIGHBORS:
        raise InsufficientNeighborsError(int(nbrs.size), index=index)
    solver = solver or NumpyEigenSolver()

    _, cov = compute_centroid_and_covariance(cloud.points[nbrs])
    values, vectors = solver.eigh(cov)
    normal = np.asarray(vectors)[:, 0]
    normal = normal / np.linalg.norm(normal)
    normal = orient_normal(normal, cloud.points[index], np.asarray(viewpoint, dtype=np.float64))
    return normal, float(_curvature(np.asarray(values)))


class NormalEstimation:
    """
    Normal estimation for a whole cloud.

    Exactly one of ``k`` and ``radius`` selects the neighbourhood. Points
    with fewer than 3 neighbours (including non-finite points) either get
    NaN normal and curvature (``on_insufficient="skip"``) or abort the run
    (``"raise"``).

    :param k: Number of nearest neighbours, including the point itself
    :param radius: Neighbour search radius
    :param viewpoint: Orientation viewpoint [x, y, z]
    :param solver: Eigen-solver, defaults to :class:`NumpyEigenSolver`
    :param search_factory: Builds the neighbour search for a cloud
    :param on_insufficient: "skip" or "raise"
    """

    def __init__(
        self,
        k: int | None = 10,
        radius: float | None = None,
        viewpoint: Vector3 = (0.0, 0.0, 0.0),
        solver: EigenSolver | None = None,
        search_factory: SearchFactory = KDTreeSearch,
        on_insufficient: InsufficientPolicy = "skip",
    ):
        from pcfilter.config.values import NormalEstimationValues

        values = NormalEstimationValues(
            k=k, radius=radius, viewpoint=viewpoint, on_insufficient=on_insufficient
        )
        self.k = values.k
        self.radius = values.radius
        self.viewpoint = np.asarray(values.viewpoint, dtype=np.float64)
        self.on_insufficient = values.on_insufficient
        self.solver = solver or NumpyEigenSolver()
        self.search_factory = search_factory

    @classmethod
    def from_values(cls, values, **kwargs) -> NormalEstimation:
        """Build from :class:`~pcfilter.config.values.NormalEstimationValues`."""
        return cls(
            k=values.k,
            radius=values.radius,
            viewpoint=values.viewpoint,
            on_insufficient=values.on_insufficient,
            **kwargs,
        )

    def __repr__(self) -> str:
        hood = f"k={self.k}" if self.k is not None else f"radius={self.radius}"
        return f"NormalEstimation({hood}, on_insufficient={self.on_insufficient!r})"

    def neighbors(self, search, index: int) -> np.ndarray:
        if self.k is not None:
            return search.k_nearest(index, self.k)
        return search.radius_search(index, self.radius)

    def estimate(self, cloud: PointCloud) -> tuple[np.ndarray, np.ndarray]:
        """
        Normals and curvature for every point.

        :param cloud: Input cloud
        :returns: (normals [N, 3], curvature [N]); NaN rows for skipped points
        :raises InsufficientNeighborsError: A point lacks neighbours and the policy is "raise"
        """
        n = len(cloud)
        normals = np.full((n, 3), np.nan)
        curvature = np.full(n, np.nan)
        if n == 0:
            return normals, curvature

        search = self.search_factory(cloud)
        points = cloud.points

        valid = []
        covariances = []
        skipped = 0
        for i in range(n):
            nbrs = self.neighbors(search, i)
            if nbrs.size < MIN_NEIGHBORS:
                if self.on_insufficient == "raise":
                    raise InsufficientNeighborsError(int(nbrs.size), index=i)
                skipped += 1
                continue
            _, cov = compute_centroid_and_covariance(points[nbrs])
            valid.append(i)
            covariances.append(cov)

        if valid:
            idx = np.asarray(valid, dtype=np.int64)
            values, vectors = self.solver.eigh(np.stack(covariances))
            est = np.asarray(vectors)[:, :, 0]
            est = est / np.linalg.norm(est, axis=1, keepdims=True)
            normals[idx] = orient_normals(est, points[idx], self.viewpoint)
            curvature[idx] = _curvature(np.asarray(values))

        if skipped:
            logger.debug("[NormalEstimation] Skipped %d/%d points with < 3 neighbours", skipped, n)
        return normals, curvature

    def compute(self, cloud: PointCloud) -> PointCloud:
        """Copy of ``cloud`` carrying estimated normals and curvature."""
        normals, curvature = self.estimate(cloud)
        return cloud.with_normals(normals, curvature)


def require_normals(cloud: PointCloud, who: str) -> np.ndarray:
    """Return the cloud's normals or raise InvalidParameterError naming the caller."""
    if cloud.normals is None:
        raise InvalidParameterError(f"{who} requires a cloud with normals")
    return cloud.normals
