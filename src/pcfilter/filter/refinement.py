"""Iterative normal refinement.

Each pass replaces every normal by the proximity-weighted mean of its
neighbours' normals. Neighbour normals are first flipped onto the current
normal's hemisphere so that opposite orientations reinforce instead of
cancel. Weights are Gaussian in neighbour distance, with the bandwidth set
to the mean neighbour distance of the point. Passes repeat until no normal
turns by more than ``convergence_threshold`` radians or ``max_iterations``
is reached; the result is then oriented towards the viewpoint.

Example:
    >>> from pcfilter import NormalRefinement
    >>>
    >>> refined = NormalRefinement(k=8, max_iterations=10).apply(cloud_with_normals)
"""

from __future__ import annotations

import logging

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import NormalRefinementValues
from pcfilter.geometry.normals import orient_normals, require_normals
from pcfilter.protocols import SearchFactory
from pcfilter.search import KDTreeSearch
from pcfilter.types import Vector3

logger = logging.getLogger(__name__)


def gaussian_weights(distances: np.ndarray, valid: np.ndarray) -> np.ndarray:
    """
    Gaussian weights per neighbour row.

    :param distances: Neighbour distances [N, K]
    :param valid: Mask of real (non-padding) neighbours [N, K]
    :returns: Weights [N, K], zero on padding
    """
    d = np.where(valid, distances, 0.0)
    counts = np.maximum(valid.sum(axis=1), 1)
    sigma = d.sum(axis=1) / counts
    sigma = np.where(sigma > 0.0, sigma, 1.0)
    w = np.exp(-(d * d) / (2.0 * sigma[:, None] ** 2))
    return np.where(valid, w, 0.0)


class NormalRefinement:
    """
    Smooth the normals of a normal-bearing cloud.

    :param k: Number of nearest neighbours (exclusive with ``radius``)
    :param radius: Neighbour search radius (exclusive with ``k``)
    :param max_iterations: Upper bound on passes
    :param convergence_threshold: Stop when the largest per-pass turn (radians) is below this
    :param viewpoint: Final orientation viewpoint
    :param search_factory: Builds the neighbour search for a cloud
    """

    def __init__(
        self,
        k: int | None = 8,
        radius: float | None = None,
        max_iterations: int = 15,
        convergence_threshold: float = 1e-4,
        viewpoint: Vector3 = (0.0, 0.0, 0.0),
        search_factory: SearchFactory = KDTreeSearch,
    ):
        self.values = NormalRefinementValues(
            k=k,
            radius=radius,
            max_iterations=max_iterations,
            convergence_threshold=convergence_threshold,
            viewpoint=viewpoint,
        )
        self.search_factory = search_factory

    @classmethod
    def from_values(cls, values: NormalRefinementValues, **kwargs) -> NormalRefinement:
        return cls(
            k=values.k,
            radius=values.radius,
            max_iterations=values.max_iterations,
            convergence_threshold=values.convergence_threshold,
            viewpoint=values.viewpoint,
            **kwargs,
        )

    def __repr__(self) -> str:
        v = self.values
        hood = f"k={v.k}" if v.k is not None else f"radius={v.radius}"
        return f"NormalRefinement({hood}, max_iterations={v.max_iterations})"

    def _neighborhoods(self, cloud: PointCloud, usable: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        search = self.search_factory(cloud)
        v = self.values
        lists = []
        for i in range(len(cloud)):
            nbrs = search.k_nearest(i, v.k) if v.k is not None else search.radius_search(i, v.radius)
            lists.append(nbrs[usable[nbrs]])
        width = max((len(n) for n in lists), default=0)
        padded = np.zeros((len(cloud), max(width, 1)), dtype=np.int64)
        valid = np.zeros(padded.shape, dtype=bool)
        for i, nbrs in enumerate(lists):
            padded[i, : len(nbrs)] = nbrs
            valid[i, : len(nbrs)] = True
        return padded, valid

    def refine(self, cloud: PointCloud) -> tuple[np.ndarray, int]:
        """
        Refined normals and the number of passes run.

        :param cloud: Cloud with normals
        :returns: (normals [N, 3], iterations)
        :raises InvalidParameterError: If the cloud has no normals
        """
        v = self.values
        normals = np.array(require_normals(cloud, "NormalRefinement"), dtype=np.float64)
        points = cloud.points
        n = len(cloud)
        if n == 0:
            return normals, 0

        lengths = np.linalg.norm(normals, axis=1)
        usable = np.isfinite(normals).all(axis=1) & (lengths > 0.0) & cloud.finite_mask()
        normals[usable] /= lengths[usable, None]

        nbr, valid = self._neighborhoods(cloud, usable)
        diff = points[nbr] - points[:, None, :]
        dist = np.sqrt(np.einsum("nkj,nkj->nk", diff, diff))
        weights = gaussian_weights(dist, valid)

        iterations = 0
        for iterations in range(1, v.max_iterations + 1):
            safe = np.where(usable[:, None], normals, 0.0)
            neighbor_normals = safe[nbr]
            cos = np.einsum("nkj,nj->nk", neighbor_normals, safe)
            sign = np.where(cos < 0.0, -1.0, 1.0)
            summed = np.einsum("nk,nkj->nj", weights * sign, neighbor_normals)
            norm = np.linalg.norm(summed, axis=1)
            update = usable & (norm > 0.0)

            refined = normals.copy()
            refined[update] = summed[update] / norm[update, None]
            turn = np.zeros(n)
            dots = np.clip(np.abs(np.einsum("nj,nj->n", refined[update], normals[update])), 0.0, 1.0)
            turn[update] = np.arccos(dots)
            normals = refined

            largest = float(turn.max()) if update.any() else 0.0
            logger.debug("[NormalRefinement] pass %d: largest turn %.3g rad", iterations, largest)
            if largest < v.convergence_threshold:
                break

        viewpoint = np.asarray(v.viewpoint, dtype=np.float64)
        normals[usable] = orient_normals(normals[usable], points[usable], viewpoint)
        return normals, iterations

    def apply(self, cloud: PointCloud) -> PointCloud:
        """Copy of ``cloud`` with refined normals (curvature carried over)."""
        normals, _ = self.refine(cloud)
        return cloud.with_normals(normals)

    def __call__(self, cloud: PointCloud) -> PointCloud:
        return self.apply(cloud)
