"""Voxel-based occlusion estimation.

Every cell of a voxel grid goes through two phases. Occupancy marks it
``OCCUPIED`` or ``EMPTY``. Visibility then walks a ray from the viewpoint
to the cell centre: if an occupied cell other than the target is reached
first, the target is ``OCCLUDED``; otherwise it is ``VISIBLE``. Cells are
classified independently and in parallel, each exactly once.

Example:
    >>> from pcfilter import VoxelGridOcclusionEstimation
    >>>
    >>> f = VoxelGridOcclusionEstimation(leaf_size=0.1, viewpoint=(0, 0, 5))
    >>> visible = f.apply(cloud)
    >>> estimate = f.estimate(cloud)
    >>> estimate.cell_state((3, 4, 0))
    <CellState.OCCLUDED: 3>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import KeepMode, OcclusionValues
from pcfilter.errors import InvalidParameterError
from pcfilter.filter.base import IndexFilter
from pcfilter.spatial.kernels import (
    STATE_EMPTY,
    STATE_OCCLUDED,
    STATE_OCCUPIED,
    STATE_UNVISITED,
    STATE_VISIBLE,
    classify_cells_numba,
)
from pcfilter.spatial.voxel_grid import VoxelGridIndex
from pcfilter.types import Vector3, VoxelKey

logger = logging.getLogger(__name__)


class CellState(IntEnum):
    UNVISITED = STATE_UNVISITED
    EMPTY = STATE_EMPTY
    OCCUPIED = STATE_OCCUPIED
    OCCLUDED = STATE_OCCLUDED
    VISIBLE = STATE_VISIBLE


def classify_cells(
    index: VoxelGridIndex, targets: np.ndarray, viewpoint: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """
    Resolve visibility for the given cells.

    :param index: Built voxel index
    :param targets: Cell keys [M, 3]
    :param viewpoint: Sensor position [3]
    :returns: (state [M] int8, occluder [M] linearized key or -1)
    """
    targets = np.ascontiguousarray(targets, dtype=np.int64).reshape(-1, 3)
    state = np.full(targets.shape[0], STATE_UNVISITED, dtype=np.int8)
    occluder = np.full(targets.shape[0], -1, dtype=np.int64)
    if targets.shape[0] == 0:
        return state, occluder
    classify_cells_numba(
        targets,
        np.ascontiguousarray(viewpoint, dtype=np.float64),
        index.grid_min,
        index.leaf_size,
        index.dims,
        index.cell_linear,
        state,
        occluder,
    )
    return state, occluder


@dataclass(frozen=True, eq=False)
class OcclusionEstimate:
    """
    Classified occupied cells of one cloud.

    Attributes:
        index: Voxel index the estimate was computed on
        viewpoint: Sensor position [3]
        visibility: OCCLUDED or VISIBLE per occupied cell slot [M]
        occluders: Linearized key of the first blocking cell per slot [M], -1 if visible
    """

    index: VoxelGridIndex
    viewpoint: np.ndarray
    visibility: np.ndarray
    occluders: np.ndarray

    def cell_state(self, key: VoxelKey | np.ndarray) -> CellState:
        """
        State of one cell: OCCLUDED / VISIBLE when occupied, EMPTY otherwise.

        :raises InvalidParameterError: If ``key`` lies outside the grid
        """
        if not self.index.in_grid(key):
            raise InvalidParameterError(f"voxel key {tuple(key)} is outside the grid")
        slot = self.index.cell_slot(key)
        if slot < 0:
            return CellState.EMPTY
        return CellState(int(self.visibility[slot]))

    def occluder(self, key: VoxelKey | np.ndarray) -> VoxelKey | None:
        """Key of the cell blocking ``key``, or None if it is visible or empty."""
        slot = self.index.cell_slot(key)
        if slot < 0 or self.occluders[slot] < 0:
            return None
        k = self.index.delinearize(int(self.occluders[slot]))
        return int(k[0]), int(k[1]), int(k[2])

    def occluded_cells(self) -> np.ndarray:
        """Keys of occupied cells that are occluded [K, 3], ascending."""
        return self.index.cell_keys[self.visibility == STATE_OCCLUDED]

    def point_states(self) -> np.ndarray:
        """Per-point state [N] int8; non-finite points stay UNVISITED."""
        cell = self.index.point_cell
        states = np.full(cell.shape[0], STATE_UNVISITED, dtype=np.int8)
        indexed = cell >= 0
        states[indexed] = self.visibility[cell[indexed]]
        return states


class VoxelGridOcclusionEstimation(IndexFilter):
    """
    Keep points whose voxel is visible (or occluded) from a viewpoint.

    :param leaf_size: Cell edge length, > 0
    :param viewpoint: Sensor position [x, y, z]
    :param keep: "visible" keeps points in visible cells, "occluded" the opposite
    """

    def __init__(
        self,
        leaf_size: float,
        viewpoint: Vector3 = (0.0, 0.0, 0.0),
        keep: KeepMode = "visible",
    ):
        values = OcclusionValues(leaf_size=leaf_size, viewpoint=viewpoint, keep=keep)
        self.leaf_size = values.leaf_size
        self.viewpoint = np.asarray(values.viewpoint, dtype=np.float64)
        self.keep = values.keep

    @classmethod
    def from_values(cls, values: OcclusionValues) -> VoxelGridOcclusionEstimation:
        return cls(values.leaf_size, values.viewpoint, values.keep)

    def __repr__(self) -> str:
        return (
            f"VoxelGridOcclusionEstimation(leaf_size={self.leaf_size}, "
            f"viewpoint={tuple(self.viewpoint)}, keep={self.keep!r})"
        )

    # ========================================================================
    # Estimation
    # ========================================================================

    def build_index(self, cloud: PointCloud) -> VoxelGridIndex:
        return VoxelGridIndex.build(cloud, self.leaf_size)

    def occupancy(self, index: VoxelGridIndex) -> np.ndarray:
        """OCCUPIED / EMPTY state over the full grid [dx * dy * dz], by linearized key."""
        grid = np.full(index.num_grid_cells, STATE_EMPTY, dtype=np.int8)
        grid[index.cell_linear] = STATE_OCCUPIED
        return grid

    def estimate(self, cloud: PointCloud) -> OcclusionEstimate:
        """Classify every occupied cell of ``cloud``."""
        index = self.build_index(cloud)
        visibility, occluders = classify_cells(index, index.cell_keys, self.viewpoint)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[VoxelGridOcclusionEstimation] %d/%d occupied cells occluded",
                int(np.count_nonzero(visibility == STATE_OCCLUDED)),
                index.num_cells,
            )
        for arr in (visibility, occluders):
            arr.flags.writeable = False
        return OcclusionEstimate(index, self.viewpoint, visibility, occluders)

    def occlusion_grid(self, cloud: PointCloud) -> tuple[VoxelGridIndex, np.ndarray]:
        """
        Classify every cell of the grid, empty cells included.

        :param cloud: Input cloud
        :returns: (index, state [dx * dy * dz] int8 indexed by linearized key),
            each entry OCCLUDED or VISIBLE
        """
        index = self.build_index(cloud)
        all_keys = index.delinearize(np.arange(index.num_grid_cells, dtype=np.int64))
        state, _ = classify_cells(index, all_keys, self.viewpoint)
        return index, state

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        if not cloud.finite_mask().any():
            return np.empty(0, dtype=np.int64)
        states = self.estimate(cloud).point_states()
        wanted = STATE_VISIBLE if self.keep == "visible" else STATE_OCCLUDED
        return np.flatnonzero(states == wanted).astype(np.int64)
