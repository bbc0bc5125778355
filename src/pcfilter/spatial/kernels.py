"""
Numba-optimized kernels for voxel ray traversal.

Implements 3D DDA (Amanatides & Woo) stepping over a voxel grid whose
occupied cells are given as a sorted array of linearized keys.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange
from numpy.typing import NDArray

# Direction components below this magnitude (unit direction) never cross their axis
DIRECTION_EPS = 1e-12

STATE_UNVISITED = 0
STATE_EMPTY = 1
STATE_OCCUPIED = 2
STATE_OCCLUDED = 3
STATE_VISIBLE = 4


@njit(cache=True, nogil=True)
def ray_box_numba(
    origin: NDArray[np.float64],
    direction: NDArray[np.float64],
    box_min: NDArray[np.float64],
    box_max: NDArray[np.float64],
) -> tuple[float, float]:
    """
    Slab test of a ray against an axis-aligned box.

    Args:
        origin: Ray origin [3]
        direction: Unit ray direction [3]
        box_min: Box minimum [3]
        box_max: Box maximum [3]

    Returns:
        (t_enter, t_exit); the ray misses when t_exit < max(t_enter, 0)
    """
    t0 = -np.inf
    t1 = np.inf
    for a in range(3):
        d = direction[a]
        if abs(d) < DIRECTION_EPS:
            # Parallel to this slab: inside it or a miss
            if origin[a] < box_min[a] or origin[a] > box_max[a]:
                return np.inf, -np.inf
            continue
        ta = (box_min[a] - origin[a]) / d
        tb = (box_max[a] - origin[a]) / d
        if ta > tb:
            ta, tb = tb, ta
        if ta > t0:
            t0 = ta
        if tb < t1:
            t1 = tb
    return t0, t1


@njit(cache=True, nogil=True)
def is_occupied_numba(cell_linear: NDArray[np.int64], linear: int) -> bool:
    """Binary search for ``linear`` in the sorted occupied-cell keys."""
    pos = np.searchsorted(cell_linear, linear)
    return pos < cell_linear.shape[0] and cell_linear[pos] == linear


@njit(cache=True, nogil=True)
def traverse_numba(
    origin: NDArray[np.float64],
    direction: NDArray[np.float64],
    grid_min: NDArray[np.float64],
    leaf_size: float,
    dims: NDArray[np.int64],
    max_distance: float,
    out_keys: NDArray[np.int64],
) -> int:
    """
    Walk a ray through the grid, writing visited keys in order.

    Args:
        origin: Ray origin [3]
        direction: Unit ray direction [3]
        grid_min: Grid minimum corner [3]
        leaf_size: Cell edge length
        dims: Cells per axis [3]
        max_distance: Stop once the ray passes this distance (np.inf for none)
        out_keys: Output keys [dims.sum(), 3] (modified in-place)

    Returns:
        Number of keys written
    """
    box_max = np.empty(3)
    for a in range(3):
        box_max[a] = grid_min[a] + dims[a] * leaf_size

    t_enter, t_exit = ray_box_numba(origin, direction, grid_min, box_max)
    t = max(t_enter, 0.0)
    if max_distance < t_exit:
        t_exit = max_distance
    if t_exit < t:
        return 0

    key = np.empty(3, dtype=np.int64)
    step = np.zeros(3, dtype=np.int64)
    t_next = np.empty(3)
    t_delta = np.empty(3)

    for a in range(3):
        p = origin[a] + t * direction[a]
        k = int(np.floor((p - grid_min[a]) / leaf_size))
        if k < 0:
            k = 0
        if k > dims[a] - 1:
            k = dims[a] - 1
        key[a] = k

        d = direction[a]
        if d > DIRECTION_EPS:
            step[a] = 1
            t_next[a] = (grid_min[a] + (k + 1) * leaf_size - origin[a]) / d
            t_delta[a] = leaf_size / d
        elif d < -DIRECTION_EPS:
            step[a] = -1
            t_next[a] = (grid_min[a] + k * leaf_size - origin[a]) / d
            t_delta[a] = -leaf_size / d
        else:
            t_next[a] = np.inf
            t_delta[a] = np.inf

    count = 0
    capacity = out_keys.shape[0]
    while count < capacity:
        out_keys[count, 0] = key[0]
        out_keys[count, 1] = key[1]
        out_keys[count, 2] = key[2]
        count += 1

        axis = 0
        if t_next[1] < t_next[axis]:
            axis = 1
        if t_next[2] < t_next[axis]:
            axis = 2
        if t_next[axis] > t_exit:
            break
        key[axis] += step[axis]
        if key[axis] < 0 or key[axis] >= dims[axis]:
            break
        t_next[axis] += t_delta[axis]

    return count


@njit(cache=True, nogil=True)
def occluder_numba(
    viewpoint: NDArray[np.float64],
    target: NDArray[np.int64],
    grid_min: NDArray[np.float64],
    leaf_size: float,
    dims: NDArray[np.int64],
    cell_linear: NDArray[np.int64],
) -> int:
    """
    Find the occupied cell blocking the line of sight to ``target``.

    Walks from ``viewpoint`` towards the centre of ``target``. The cell that
    contains the viewpoint itself never counts as an occluder.

    Returns:
        Linearized key of the first occupied cell strictly before the target,
        or -1 if the target is visible
    """
    dy = dims[1]
    dz = dims[2]
    target_linear = (target[0] * dy + target[1]) * dz + target[2]

    direction = np.empty(3)
    dist_sq = 0.0
    for a in range(3):
        c = grid_min[a] + (target[a] + 0.5) * leaf_size
        direction[a] = c - viewpoint[a]
        dist_sq += direction[a] * direction[a]
    dist = np.sqrt(dist_sq)
    if dist == 0.0:
        return -1
    for a in range(3):
        direction[a] /= dist

    n_max = dims[0] + dims[1] + dims[2] + 3
    keys = np.empty((n_max, 3), dtype=np.int64)
    n = traverse_numba(viewpoint, direction, grid_min, leaf_size, dims, dist, keys)

    start = 0
    inside = True
    for a in range(3):
        if viewpoint[a] < grid_min[a] or viewpoint[a] >= grid_min[a] + dims[a] * leaf_size:
            inside = False
    if inside:
        start = 1

    for s in range(start, n):
        lin = (keys[s, 0] * dy + keys[s, 1]) * dz + keys[s, 2]
        if lin == target_linear:
            return -1
        if is_occupied_numba(cell_linear, lin):
            return lin
    return -1


@njit(parallel=True, cache=True, nogil=True)
def classify_cells_numba(
    targets: NDArray[np.int64],
    viewpoint: NDArray[np.float64],
    grid_min: NDArray[np.float64],
    leaf_size: float,
    dims: NDArray[np.int64],
    cell_linear: NDArray[np.int64],
    out_state: NDArray[np.int8],
    out_occluder: NDArray[np.int64],
) -> None:
    """
    Classify each target cell as occluded or visible from ``viewpoint``.

    Args:
        targets: Cell keys to classify [M, 3]
        viewpoint: Sensor position [3]
        grid_min: Grid minimum corner [3]
        leaf_size: Cell edge length
        dims: Cells per axis [3]
        cell_linear: Sorted linearized keys of occupied cells [K]
        out_state: Output state per target [M] (modified in-place)
        out_occluder: Output occluding cell (linearized) per target [M], -1 if none
    """
    m = targets.shape[0]
    for i in prange(m):
        occ = occluder_numba(viewpoint, targets[i], grid_min, leaf_size, dims, cell_linear)
        out_occluder[i] = occ
        if occ >= 0:
            out_state[i] = STATE_OCCLUDED
        else:
            out_state[i] = STATE_VISIBLE
