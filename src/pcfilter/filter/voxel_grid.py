"""Voxel downsampling.

:class:`VoxelGrid` replaces the points of each occupied cell by their
centroid. :class:`UniformSampling` keeps, per cell, the input point nearest
the cell centre, so its output is a true subset of the input.

Example:
    >>> from pcfilter import UniformSampling, VoxelGrid
    >>>
    >>> centroids = VoxelGrid(leaf_size=0.05).apply(cloud)
    >>> subset = UniformSampling(leaf_size=0.05).apply(cloud)
"""

from __future__ import annotations

import logging

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import VoxelGridValues
from pcfilter.filter.base import IndexFilter
from pcfilter.spatial.voxel_grid import VoxelGridIndex, segment_mean
from pcfilter.types import Vector3

logger = logging.getLogger(__name__)


class VoxelGrid:
    """
    Centroid downsampling.

    Output point ``i`` is the centroid of occupied cell ``i`` (ascending key
    order). Normals are averaged and renormalized, curvature is averaged;
    other attributes are dropped.

    :param leaf_size: Cell edge length, > 0
    :param bounds: Optional (min_corner, max_corner) fixing the grid region
    """

    def __init__(self, leaf_size: float, bounds: tuple[Vector3, Vector3] | None = None):
        self.values = VoxelGridValues(leaf_size=leaf_size, bounds=bounds)

    @classmethod
    def from_values(cls, values: VoxelGridValues) -> VoxelGrid:
        return cls(values.leaf_size, values.bounds)

    def __repr__(self) -> str:
        return f"VoxelGrid(leaf_size={self.values.leaf_size})"

    def apply(self, cloud: PointCloud) -> PointCloud:
        if not cloud.finite_mask().any():
            return PointCloud(np.empty((0, 3)))
        index = VoxelGridIndex.build(cloud, self.values.leaf_size, self.values.bounds)
        order = np.concatenate([members for _, members in index.cells()])
        offsets = np.concatenate([[0], np.cumsum(index.cell_sizes)]).astype(np.int64)

        points = index.cell_centroids(cloud)
        normals = None
        if cloud.normals is not None:
            summed = segment_mean(np.nan_to_num(cloud.normals[order]), offsets)
            length = np.linalg.norm(summed, axis=1, keepdims=True)
            with np.errstate(invalid="ignore", divide="ignore"):
                normals = np.where(length > 0.0, summed / length, np.nan)
        curvature = None
        if cloud.curvature is not None:
            with np.errstate(invalid="ignore"):
                curvature = segment_mean(cloud.curvature[order], offsets)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("[VoxelGrid] %d points -> %d centroids", len(cloud), index.num_cells)
        return PointCloud(points, normals=normals, curvature=curvature)

    def __call__(self, cloud: PointCloud) -> PointCloud:
        return self.apply(cloud)


class UniformSampling(IndexFilter):
    """
    Keep the point nearest each occupied cell's centre.

    Ties go to the lower index. Non-finite points are always removed.

    :param leaf_size: Cell edge length, > 0
    :param bounds: Optional (min_corner, max_corner) fixing the grid region
    """

    def __init__(self, leaf_size: float, bounds: tuple[Vector3, Vector3] | None = None):
        self.values = VoxelGridValues(leaf_size=leaf_size, bounds=bounds)

    @classmethod
    def from_values(cls, values: VoxelGridValues) -> UniformSampling:
        return cls(values.leaf_size, values.bounds)

    def __repr__(self) -> str:
        return f"UniformSampling(leaf_size={self.values.leaf_size})"

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        if not cloud.finite_mask().any():
            return np.empty(0, dtype=np.int64)
        index = VoxelGridIndex.build(cloud, self.values.leaf_size, self.values.bounds)
        keys = index.cell_keys
        kept = np.empty(index.num_cells, dtype=np.int64)
        for slot in range(index.num_cells):
            members = index.slot_points(slot)
            diff = cloud.points[members] - index.cell_center(keys[slot])
            # argmin returns the first minimum; members are ascending
            kept[slot] = members[int(np.argmin(np.einsum("ij,ij->i", diff, diff)))]
        return np.sort(kept)
