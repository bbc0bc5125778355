"""Uniform voxel grid index.

Partitions space into cubic cells of edge ``leaf_size`` anchored at the
minimum of the cloud bounds (or at explicit bounds). Each finite point is
keyed by ``floor((p - origin) / leaf_size)``; cells are stored CSR-style,
sorted by linearized key, so enumeration is always in ascending key order.

Example:
    >>> from pcfilter import PointCloud, VoxelGridIndex
    >>>
    >>> index = VoxelGridIndex.build(cloud, leaf_size=0.1)
    >>> for key, members in index.cells():
    ...     print(key, members)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.errors import InvalidParameterError
from pcfilter.types import Vector3, VoxelKey

logger = logging.getLogger(__name__)

# Largest per-axis cell count accepted before linearization would get unsafe
_MAX_AXIS_CELLS = 2**31
_MAX_TOTAL_CELLS = 2**62


def validate_leaf_size(leaf_size: float) -> float:
    """Return ``leaf_size`` as float, raising if it is not finite and > 0."""
    try:
        leaf = float(leaf_size)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"leaf_size must be a number, got {leaf_size!r}") from e
    if not math.isfinite(leaf) or leaf <= 0.0:
        raise InvalidParameterError(f"leaf_size must be positive, got {leaf_size}")
    return leaf


class VoxelGridIndex:
    """Immutable point -> cell index over a single cloud.

    Use :meth:`build` to construct.

    Attributes:
        origin: Grid minimum corner [3]
        leaf_size: Cell edge length
        dims: Number of cells per axis [3]
        point_keys: Voxel key per point [N, 3] (-1 rows for non-finite points)
        point_cell: Cell slot per point [N] (-1 for non-finite points)
        cell_linear: Sorted linearized keys of occupied cells [M]
    """

    def __init__(
        self,
        origin: np.ndarray,
        leaf_size: float,
        dims: np.ndarray,
        point_keys: np.ndarray,
        point_order: np.ndarray,
        cell_linear: np.ndarray,
        cell_offsets: np.ndarray,
    ):
        self.origin = origin
        self.leaf_size = leaf_size
        self.dims = dims
        self.point_keys = point_keys
        self.cell_linear = cell_linear
        self._point_order = point_order
        self._cell_offsets = cell_offsets

        counts = np.diff(cell_offsets)
        self.point_cell = np.full(point_keys.shape[0], -1, dtype=np.int64)
        self.point_cell[point_order] = np.repeat(np.arange(cell_linear.shape[0]), counts)

        for arr in (origin, dims, point_keys, point_order, cell_linear, cell_offsets, self.point_cell):
            arr.flags.writeable = False

    # ========================================================================
    # Construction
    # ========================================================================

    @classmethod
    def build(
        cls,
        cloud: PointCloud,
        leaf_size: float,
        bounds: tuple[Vector3, Vector3] | None = None,
    ) -> VoxelGridIndex:
        """Build the index for ``cloud``.

        :param cloud: Input cloud (non-finite points are left out of every cell)
        :param leaf_size: Cell edge length, must be > 0
        :param bounds: Optional (min_corner, max_corner) fixing the grid region;
            every finite point must lie inside it
        :returns: Built index
        :raises InvalidParameterError: Bad leaf size, empty cloud, points outside
            ``bounds`` or a grid too large to linearize
        """
        leaf = validate_leaf_size(leaf_size)

        points = cloud.points
        valid_idx = np.flatnonzero(cloud.finite_mask())
        if valid_idx.size == 0:
            raise InvalidParameterError("cannot build a voxel index over an empty cloud")
        valid = points[valid_idx]

        if bounds is None:
            origin = valid.min(axis=0)
            span = (valid.max(axis=0) - origin) / leaf
            _check_span(span)
            keys = np.floor((valid - origin) / leaf).astype(np.int64)
            dims = keys.max(axis=0) + 1
        else:
            lo = np.asarray(bounds[0], dtype=np.float64).reshape(3)
            hi = np.asarray(bounds[1], dtype=np.float64).reshape(3)
            if not (np.isfinite(lo).all() and np.isfinite(hi).all()) or np.any(hi < lo):
                raise InvalidParameterError(f"invalid bounds: min={lo}, max={hi}")
            outside = ((valid < lo) | (valid > hi)).any(axis=1)
            if outside.any():
                raise InvalidParameterError(
                    f"{int(outside.sum())} points lie outside the requested bounds"
                )
            origin = lo
            span = (hi - lo) / leaf
            _check_span(span)
            dims = np.maximum(np.ceil(span).astype(np.int64), 1)
            keys = np.clip(np.floor((valid - origin) / leaf).astype(np.int64), 0, dims - 1)

        total = int(dims[0]) * int(dims[1]) * int(dims[2])
        if total >= _MAX_TOTAL_CELLS:
            raise InvalidParameterError(
                f"leaf_size {leaf} is too small for the cloud extent ({total} cells)"
            )

        linear = _linearize(keys, dims)
        order = np.argsort(linear, kind="stable")
        sorted_linear = linear[order]
        cell_linear, starts = np.unique(sorted_linear, return_index=True)
        cell_offsets = np.append(starts, sorted_linear.shape[0]).astype(np.int64)

        point_keys = np.full((points.shape[0], 3), -1, dtype=np.int64)
        point_keys[valid_idx] = keys

        index = cls(
            origin=origin.astype(np.float64),
            leaf_size=leaf,
            dims=dims.astype(np.int64),
            point_keys=point_keys,
            point_order=valid_idx[order].astype(np.int64),
            cell_linear=cell_linear.astype(np.int64),
            cell_offsets=cell_offsets,
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[VoxelGridIndex] %d points -> %d cells (dims=%s, leaf=%g)",
                valid_idx.size,
                index.num_cells,
                tuple(int(d) for d in dims),
                leaf,
            )
        return index

    # ========================================================================
    # Geometry
    # ========================================================================

    @property
    def num_cells(self) -> int:
        """Number of occupied cells."""
        return int(self.cell_linear.shape[0])

    @property
    def num_grid_cells(self) -> int:
        """Number of cells in the full grid (occupied or not)."""
        return int(self.dims[0]) * int(self.dims[1]) * int(self.dims[2])

    @property
    def num_points(self) -> int:
        """Number of indexed (finite) points."""
        return int(self._point_order.shape[0])

    @property
    def grid_min(self) -> np.ndarray:
        return self.origin

    @property
    def grid_max(self) -> np.ndarray:
        return self.origin + self.dims * self.leaf_size

    def __len__(self) -> int:
        return self.num_cells

    def __repr__(self) -> str:
        return (
            f"VoxelGridIndex(cells={self.num_cells}, dims={tuple(int(d) for d in self.dims)}, "
            f"leaf_size={self.leaf_size})"
        )

    def key_of(self, point: Vector3) -> VoxelKey:
        """Voxel key of an arbitrary point (may lie outside the grid)."""
        p = np.asarray(point, dtype=np.float64).reshape(3)
        k = np.floor((p - self.origin) / self.leaf_size).astype(np.int64)
        return int(k[0]), int(k[1]), int(k[2])

    def in_grid(self, key: VoxelKey | np.ndarray) -> bool:
        k = np.asarray(key, dtype=np.int64).reshape(3)
        return bool(np.all(k >= 0) and np.all(k < self.dims))

    def cell_center(self, key: VoxelKey | np.ndarray) -> np.ndarray:
        k = np.asarray(key, dtype=np.float64)
        return self.origin + (k + 0.5) * self.leaf_size

    def linearize(self, keys: VoxelKey | np.ndarray) -> int | np.ndarray:
        """Flat index of key(s); ascending flat order equals ascending key order."""
        k = np.asarray(keys, dtype=np.int64)
        if k.ndim == 1:
            return int(_linearize(k.reshape(1, 3), self.dims)[0])
        return _linearize(k, self.dims)

    def delinearize(self, linear: int | np.ndarray) -> np.ndarray:
        """Inverse of :meth:`linearize`; returns keys [3] or [M, 3]."""
        lin = np.asarray(linear, dtype=np.int64)
        dy, dz = int(self.dims[1]), int(self.dims[2])
        keys = np.stack([lin // (dy * dz), (lin // dz) % dy, lin % dz], axis=-1)
        return keys

    # ========================================================================
    # Cell queries
    # ========================================================================

    @property
    def cell_keys(self) -> np.ndarray:
        """Keys of occupied cells [M, 3] in ascending order."""
        return self.delinearize(self.cell_linear)

    @property
    def cell_sizes(self) -> np.ndarray:
        return np.diff(self._cell_offsets)

    def cell_slot(self, key: VoxelKey | np.ndarray) -> int:
        """Position of the cell in the occupied-cell arrays, or -1 if empty."""
        if not self.in_grid(key):
            return -1
        lin = self.linearize(np.asarray(key, dtype=np.int64).reshape(3))
        pos = int(np.searchsorted(self.cell_linear, lin))
        if pos < self.cell_linear.shape[0] and self.cell_linear[pos] == lin:
            return pos
        return -1

    def is_occupied(self, key: VoxelKey | np.ndarray) -> bool:
        return self.cell_slot(key) >= 0

    def slot_points(self, slot: int) -> np.ndarray:
        """Point indices of the occupied cell at ``slot`` (ascending)."""
        return self._point_order[self._cell_offsets[slot] : self._cell_offsets[slot + 1]]

    def cell_points(self, key: VoxelKey | np.ndarray) -> np.ndarray:
        """Point indices in the cell at ``key`` (empty array if none)."""
        slot = self.cell_slot(key)
        if slot < 0:
            return np.empty(0, dtype=np.int64)
        return self.slot_points(slot)

    def cells(self) -> Iterator[tuple[VoxelKey, np.ndarray]]:
        """Iterate ``(key, point_indices)`` over occupied cells in ascending key order."""
        keys = self.cell_keys
        for slot in range(self.num_cells):
            k = keys[slot]
            yield (int(k[0]), int(k[1]), int(k[2])), self.slot_points(slot)

    def cell_centroids(self, cloud: PointCloud) -> np.ndarray:
        """Centroid of each occupied cell [M, 3] for the cloud this index was built on."""
        return segment_mean(cloud.points[self._point_order], self._cell_offsets)


def _check_span(span: np.ndarray) -> None:
    if not np.isfinite(span).all() or np.any(span >= _MAX_AXIS_CELLS):
        raise InvalidParameterError("leaf_size is too small for the cloud extent")


def _linearize(keys: np.ndarray, dims: np.ndarray) -> np.ndarray:
    dy = np.int64(dims[1])
    dz = np.int64(dims[2])
    return (keys[:, 0] * dy + keys[:, 1]) * dz + keys[:, 2]


def segment_mean(values: np.ndarray, offsets: np.ndarray) -> np.ndarray:
    """Mean of consecutive row segments delimited by ``offsets``."""
    sums = np.add.reduceat(values, offsets[:-1], axis=0)
    counts = np.diff(offsets).reshape(-1, *([1] * (values.ndim - 1)))
    return sums / counts
