"""Per-voxel sampling driven by surface normals.

The cloud is partitioned by a voxel grid and each occupied cell keeps up to
``samples_per_cell`` points. With ``selection="random"`` they are a seeded
random draw. With ``selection="divergence"`` they are chosen greedily to
spread the kept normals: the first is the point deviating most from the
cell's mean normal, and each next one maximizes its smallest angle to the
points already kept.

Example:
    >>> from pcfilter import SamplingSurfaceNormal
    >>>
    >>> f = SamplingSurfaceNormal(leaf_size=0.05, samples_per_cell=2, selection="divergence")
    >>> result = f.apply(cloud_with_normals)
"""

from __future__ import annotations

import logging

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import SelectionMode, SurfaceNormalValues
from pcfilter.filter.base import FilterResult, IndexFilter
from pcfilter.geometry.normals import NormalEstimation, require_normals
from pcfilter.spatial.voxel_grid import VoxelGridIndex
from pcfilter.types import Vector3

logger = logging.getLogger(__name__)


def select_divergent(normals: np.ndarray, count: int) -> np.ndarray:
    """
    Greedy max-min angular selection.

    :param normals: Unit normals of one cell [K, 3]
    :param count: Number of rows to select
    :returns: Selected row positions, in selection order
    """
    k = normals.shape[0]
    if count >= k:
        return np.arange(k, dtype=np.int64)
    mean = normals.mean(axis=0)
    norm = np.linalg.norm(mean)
    if norm > 0.0:
        first = int(np.argmin(normals @ (mean / norm)))
    else:
        first = 0
    chosen = [first]
    # Largest cosine to any chosen normal, i.e. smallest angle
    closest = normals @ normals[first]
    closest[first] = np.inf
    while len(chosen) < count:
        nxt = int(np.argmin(closest))
        chosen.append(nxt)
        closest = np.maximum(closest, normals @ normals[nxt])
        closest[chosen] = np.inf
    return np.asarray(chosen, dtype=np.int64)


class SamplingSurfaceNormal(IndexFilter):
    """
    Keep up to ``samples_per_cell`` points in every occupied voxel.

    :param leaf_size: Cell edge length, > 0
    :param samples_per_cell: Maximum points kept per cell
    :param selection: "random" or "divergence"
    :param seed: Seed for the random draw
    :param compute_normals: Estimate normals (k nearest) when the cloud has none
    :param normal_k: Neighbours for computed normals
    :param viewpoint: Orientation viewpoint for computed normals
    :raises InvalidParameterError: Bad parameters, or no normals and ``compute_normals`` is False
    """

    def __init__(
        self,
        leaf_size: float,
        samples_per_cell: int = 1,
        selection: SelectionMode = "random",
        seed: int | None = 0,
        compute_normals: bool = False,
        normal_k: int = 10,
        viewpoint: Vector3 = (0.0, 0.0, 0.0),
    ):
        values = SurfaceNormalValues(
            leaf_size=leaf_size,
            samples_per_cell=samples_per_cell,
            selection=selection,
            seed=seed,
            compute_normals=compute_normals,
            normal_k=normal_k,
            viewpoint=viewpoint,
        )
        self.values = values

    @classmethod
    def from_values(cls, values: SurfaceNormalValues) -> SamplingSurfaceNormal:
        return cls(
            values.leaf_size,
            samples_per_cell=values.samples_per_cell,
            selection=values.selection,
            seed=values.seed,
            compute_normals=values.compute_normals,
            normal_k=values.normal_k,
            viewpoint=values.viewpoint,
        )

    def __repr__(self) -> str:
        v = self.values
        return (
            f"SamplingSurfaceNormal(leaf_size={v.leaf_size}, samples_per_cell={v.samples_per_cell}, "
            f"selection={v.selection!r})"
        )

    def prepare(self, cloud: PointCloud) -> PointCloud:
        """Return ``cloud`` with normals, computing them if allowed."""
        if cloud.has_normals or not self.values.compute_normals:
            require_normals(cloud, "SamplingSurfaceNormal")
            return cloud
        estimator = NormalEstimation(k=self.values.normal_k, viewpoint=self.values.viewpoint)
        return estimator.compute(cloud)

    def _select(self, cloud: PointCloud) -> np.ndarray:
        v = self.values
        normals = cloud.normals
        if not cloud.finite_mask().any():
            return np.empty(0, dtype=np.int64)
        index = VoxelGridIndex.build(cloud, v.leaf_size)
        rng = np.random.default_rng(v.seed)

        kept = []
        for _, members in index.cells():
            if members.size <= v.samples_per_cell:
                kept.append(members)
                continue
            if v.selection == "random":
                kept.append(rng.choice(members, size=v.samples_per_cell, replace=False))
                continue
            cell_normals = normals[members]
            usable = np.isfinite(cell_normals).all(axis=1)
            chosen = members[usable][select_divergent(cell_normals[usable], v.samples_per_cell)]
            if chosen.size < v.samples_per_cell:
                # Too few finite normals; fill the cap from the rest in index order
                spare = np.sort(members[~usable])[: v.samples_per_cell - chosen.size]
                chosen = np.concatenate([chosen, spare])
            kept.append(chosen)

        if not kept:
            return np.empty(0, dtype=np.int64)
        out = np.sort(np.concatenate(kept)).astype(np.int64)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[SamplingSurfaceNormal] %d points from %d cells", out.size, index.num_cells
            )
        return out

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        return self._select(self.prepare(cloud))

    def apply(self, cloud: PointCloud) -> FilterResult:
        """Like :meth:`IndexFilter.apply`, but computed normals are carried into the output."""
        prepared = self.prepare(cloud)
        return super().apply(prepared)
