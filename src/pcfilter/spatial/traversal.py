"""Ray-voxel traversal over a :class:`VoxelGridIndex`.

Rays are walked cell by cell (3D DDA): at each step the nearest of the
three axis-boundary crossings decides which axis advances by one cell.
Keys come out in order of increasing distance from the ray origin; the
walk starts where the ray enters the grid and stops where it leaves.

Example:
    >>> ray = traverse(index, origin=(-1, 0.5, 0.5), direction=(1, 0, 0))
    >>> keys = list(ray)          # can be iterated again, restarts each time
    >>> hit = first_occupied(index, (-1, 0.5, 0.5), (1, 0, 0))
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from pcfilter.errors import DegenerateGeometryError
from pcfilter.spatial.kernels import DIRECTION_EPS, traverse_numba
from pcfilter.spatial.voxel_grid import VoxelGridIndex
from pcfilter.types import Vector3, VoxelKey


def unit_direction(direction: Vector3) -> np.ndarray:
    """Normalize a ray direction, raising on zero length."""
    d = np.asarray(direction, dtype=np.float64).reshape(3)
    norm = float(np.linalg.norm(d))
    if not math.isfinite(norm) or norm < 1e-12:
        raise DegenerateGeometryError(f"ray direction must be non-zero, got {tuple(d)}")
    return d / norm


def ray_box_intersection(
    origin: np.ndarray, direction: np.ndarray, box_min: np.ndarray, box_max: np.ndarray
) -> tuple[float, float]:
    """Slab test; returns (t_enter, t_exit), a miss when t_exit < max(t_enter, 0)."""
    t0, t1 = -math.inf, math.inf
    for a in range(3):
        d = direction[a]
        if abs(d) < DIRECTION_EPS:
            if origin[a] < box_min[a] or origin[a] > box_max[a]:
                return math.inf, -math.inf
            continue
        ta = (box_min[a] - origin[a]) / d
        tb = (box_max[a] - origin[a]) / d
        if ta > tb:
            ta, tb = tb, ta
        t0 = max(t0, ta)
        t1 = min(t1, tb)
    return float(t0), float(t1)


@dataclass(frozen=True, eq=False)
class RayTraversal:
    """Lazy, restartable sequence of voxel keys along a ray.

    Attributes:
        index: Grid being walked
        origin: Ray origin [3]
        direction: Unit direction [3]
        max_distance: Optional cut-off distance along the ray
    """

    index: VoxelGridIndex
    origin: np.ndarray
    direction: np.ndarray
    max_distance: float | None = None

    def __iter__(self) -> Iterator[VoxelKey]:
        idx = self.index
        grid_min = idx.grid_min
        leaf = idx.leaf_size
        dims = idx.dims
        o = self.origin
        d = self.direction

        t_enter, t_exit = ray_box_intersection(o, d, grid_min, idx.grid_max)
        if self.max_distance is not None:
            t_exit = min(t_exit, self.max_distance)
        t = max(t_enter, 0.0)
        if t_exit < t:
            return

        key = [0, 0, 0]
        step = [0, 0, 0]
        t_next = [math.inf] * 3
        t_delta = [math.inf] * 3
        for a in range(3):
            p = o[a] + t * d[a]
            k = int(math.floor((p - grid_min[a]) / leaf))
            k = min(max(k, 0), int(dims[a]) - 1)
            key[a] = k
            if d[a] > DIRECTION_EPS:
                step[a] = 1
                t_next[a] = (grid_min[a] + (k + 1) * leaf - o[a]) / d[a]
                t_delta[a] = leaf / d[a]
            elif d[a] < -DIRECTION_EPS:
                step[a] = -1
                t_next[a] = (grid_min[a] + k * leaf - o[a]) / d[a]
                t_delta[a] = -leaf / d[a]

        while True:
            yield key[0], key[1], key[2]
            axis = min(range(3), key=t_next.__getitem__)
            if t_next[axis] > t_exit:
                return
            key[axis] += step[axis]
            if not 0 <= key[axis] < dims[axis]:
                return
            t_next[axis] += t_delta[axis]

    def keys(self) -> np.ndarray:
        """All visited keys [K, 3], computed by the compiled kernel."""
        dims = self.index.dims
        out = np.empty((int(dims.sum()) + 3, 3), dtype=np.int64)
        max_distance = math.inf if self.max_distance is None else float(self.max_distance)
        n = traverse_numba(
            self.origin,
            self.direction,
            self.index.grid_min,
            self.index.leaf_size,
            dims,
            max_distance,
            out,
        )
        return out[:n].copy()

    def first_occupied(self) -> VoxelKey | None:
        """First visited key whose cell holds at least one point."""
        for key in self:
            if self.index.is_occupied(key):
                return key
        return None


def traverse(
    index: VoxelGridIndex,
    origin: Vector3,
    direction: Vector3,
    max_distance: float | None = None,
) -> RayTraversal:
    """Create a traversal of ``index`` along the ray ``origin + t * direction``.

    :param index: Built voxel index
    :param origin: Ray origin (inside or outside the grid)
    :param direction: Ray direction, any non-zero length
    :param max_distance: Optional cut-off distance along the ray
    :returns: Restartable iterable of voxel keys
    :raises DegenerateGeometryError: If ``direction`` has zero length
    """
    o = np.asarray(origin, dtype=np.float64).reshape(3).copy()
    o.flags.writeable = False
    d = unit_direction(direction)
    d.flags.writeable = False
    return RayTraversal(index, o, d, max_distance)


def first_occupied(
    index: VoxelGridIndex, origin: Vector3, direction: Vector3
) -> VoxelKey | None:
    """First occupied cell along a ray, or None if the ray hits nothing."""
    return traverse(index, origin, direction).first_occupied()
