"""
Numba-optimized kernels for point-in-hull tests.

A hull is passed as flat arrays: vertices [V, 3], polygon vertex indices
concatenated in ``poly_indices`` with ``poly_offsets`` [P + 1] delimiting
each polygon, unit plane normals [P, 3], plane offsets [P] (n . x = d)
and the dominant normal axis [P] that is dropped when projecting to 2D.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange
from numpy.typing import NDArray

# Ray/plane denominators below this count as parallel
PARALLEL_EPS = 1e-12

POLY_OUTSIDE = 0
POLY_INSIDE = 1
POLY_EDGE = 2


@njit(cache=True, nogil=True)
def _point_segment_dist_sq(
    u: float, v: float, au: float, av: float, bu: float, bv: float
) -> float:
    eu = bu - au
    ev = bv - av
    len_sq = eu * eu + ev * ev
    if len_sq == 0.0:
        du = u - au
        dv = v - av
        return du * du + dv * dv
    s = ((u - au) * eu + (v - av) * ev) / len_sq
    if s < 0.0:
        s = 0.0
    elif s > 1.0:
        s = 1.0
    du = u - (au + s * eu)
    dv = v - (av + s * ev)
    return du * du + dv * dv


@njit(cache=True, nogil=True)
def polygon_test_numba(
    x: float,
    y: float,
    z: float,
    poly: int,
    vertices: NDArray[np.float64],
    poly_offsets: NDArray[np.int64],
    poly_indices: NDArray[np.int64],
    drop_axis: NDArray[np.int64],
    eps: float,
) -> int:
    """
    Crossing-number test of a point (already in the polygon plane).

    Returns:
        POLY_INSIDE, POLY_OUTSIDE, or POLY_EDGE when within ``eps`` of an edge
    """
    drop = drop_axis[poly]
    ua = 1 if drop == 0 else 0
    va = 1 if drop == 2 else 2
    if drop == 1:
        ua = 0
        va = 2

    p = np.empty(3)
    p[0] = x
    p[1] = y
    p[2] = z
    u = p[ua]
    v = p[va]

    start = poly_offsets[poly]
    end = poly_offsets[poly + 1]
    n = end - start
    eps_sq = eps * eps

    inside = False
    j = n - 1
    for i in range(n):
        vi = poly_indices[start + i]
        vj = poly_indices[start + j]
        ui = vertices[vi, ua]
        wi = vertices[vi, va]
        uj = vertices[vj, ua]
        wj = vertices[vj, va]

        if _point_segment_dist_sq(u, v, uj, wj, ui, wi) <= eps_sq:
            return POLY_EDGE

        if (wi > v) != (wj > v):
            u_cross = (uj - ui) * (v - wi) / (wj - wi) + ui
            if u < u_cross:
                inside = not inside
        j = i

    if inside:
        return POLY_INSIDE
    return POLY_OUTSIDE


@njit(cache=True, nogil=True)
def count_crossings_numba(
    x: float,
    y: float,
    z: float,
    dx: float,
    dy: float,
    dz: float,
    vertices: NDArray[np.float64],
    poly_offsets: NDArray[np.int64],
    poly_indices: NDArray[np.int64],
    normals: NDArray[np.float64],
    plane_d: NDArray[np.float64],
    drop_axis: NDArray[np.int64],
    eps: float,
) -> tuple[int, bool, bool]:
    """
    Count hull polygons crossed by the ray ``p + t * d`` (t > 0).

    Returns:
        (crossings, degenerate, on_surface). ``degenerate`` is set when the
        ray grazes an edge/vertex or runs inside a polygon plane;
        ``on_surface`` when the point itself lies on a polygon.
    """
    n_poly = poly_offsets.shape[0] - 1
    count = 0
    for poly in range(n_poly):
        nx = normals[poly, 0]
        ny = normals[poly, 1]
        nz = normals[poly, 2]
        dist = nx * x + ny * y + nz * z - plane_d[poly]
        denom = nx * dx + ny * dy + nz * dz

        if abs(dist) <= eps:
            r = polygon_test_numba(
                x, y, z, poly, vertices, poly_offsets, poly_indices, drop_axis, eps
            )
            if r != POLY_OUTSIDE:
                return count, False, True
            if abs(denom) <= PARALLEL_EPS:
                return count, True, False
            continue

        if abs(denom) <= PARALLEL_EPS:
            continue

        t = -dist / denom
        if t <= 0.0:
            continue

        hx = x + t * dx
        hy = y + t * dy
        hz = z + t * dz
        r = polygon_test_numba(
            hx, hy, hz, poly, vertices, poly_offsets, poly_indices, drop_axis, eps
        )
        if r == POLY_EDGE:
            return count, True, False
        if r == POLY_INSIDE:
            count += 1

    return count, False, False


@njit(cache=True, nogil=True)
def contains_point_numba(
    x: float,
    y: float,
    z: float,
    directions: NDArray[np.float64],
    vertices: NDArray[np.float64],
    poly_offsets: NDArray[np.int64],
    poly_indices: NDArray[np.int64],
    normals: NDArray[np.float64],
    plane_d: NDArray[np.float64],
    drop_axis: NDArray[np.int64],
    bbox_min: NDArray[np.float64],
    bbox_max: NDArray[np.float64],
    eps: float,
) -> bool:
    """
    Parity test for a single point, retrying perturbed directions on grazing hits.
    """
    if (
        x < bbox_min[0] - eps
        or y < bbox_min[1] - eps
        or z < bbox_min[2] - eps
        or x > bbox_max[0] + eps
        or y > bbox_max[1] + eps
        or z > bbox_max[2] + eps
    ):
        return False

    count = 0
    for k in range(directions.shape[0]):
        count, degenerate, on_surface = count_crossings_numba(
            x,
            y,
            z,
            directions[k, 0],
            directions[k, 1],
            directions[k, 2],
            vertices,
            poly_offsets,
            poly_indices,
            normals,
            plane_d,
            drop_axis,
            eps,
        )
        if on_surface:
            return True
        if not degenerate:
            return count % 2 == 1
    # Every direction grazed; fall back on the last count
    return count % 2 == 1


@njit(parallel=True, cache=True, nogil=True)
def hull_contains_numba(
    points: NDArray[np.float64],
    directions: NDArray[np.float64],
    vertices: NDArray[np.float64],
    poly_offsets: NDArray[np.int64],
    poly_indices: NDArray[np.int64],
    normals: NDArray[np.float64],
    plane_d: NDArray[np.float64],
    drop_axis: NDArray[np.int64],
    bbox_min: NDArray[np.float64],
    bbox_max: NDArray[np.float64],
    eps: float,
    out: NDArray[np.bool_],
) -> None:
    """
    Evaluate hull containment for every point.

    Args:
        points: Query points [N, 3]
        directions: Unit ray directions to try in order [K, 3]
        vertices: Hull vertices [V, 3]
        poly_offsets: Polygon delimiters [P + 1]
        poly_indices: Concatenated polygon vertex indices
        normals: Unit polygon normals [P, 3]
        plane_d: Plane offsets [P]
        drop_axis: Axis dropped for 2D projection [P]
        bbox_min: Hull bounding box minimum [3]
        bbox_max: Hull bounding box maximum [3]
        eps: Absolute tolerance for plane and edge proximity
        out: Output mask [N] (modified in-place); non-finite points are False
    """
    n = points.shape[0]
    for i in prange(n):
        x = points[i, 0]
        y = points[i, 1]
        z = points[i, 2]
        if not (np.isfinite(x) and np.isfinite(y) and np.isfinite(z)):
            out[i] = False
            continue
        out[i] = contains_point_numba(
            x,
            y,
            z,
            directions,
            vertices,
            poly_offsets,
            poly_indices,
            normals,
            plane_d,
            drop_axis,
            bbox_min,
            bbox_max,
            eps,
        )
