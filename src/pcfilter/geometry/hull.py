"""Closed polygonal hulls and point containment.

A hull is plain data: a vertex array plus polygons given as vertex index
lists. Together the polygons must bound a closed volume; it does not have
to be convex, and polygon winding is irrelevant.

Containment uses the parity rule: a ray is cast from the query point in a
fixed direction and the polygon crossings are counted, odd meaning inside.
Each crossing is a ray/plane intersection followed by a 2D crossing-number
test in the plane obtained by dropping the polygon's dominant normal axis.
If the ray grazes an edge or vertex (or runs inside a polygon plane) the
direction is perturbed by a fixed offset and the count repeated. Points on
the hull surface are inside.

Example:
    >>> from pcfilter.geometry import Hull, contains
    >>>
    >>> hull = Hull.box((-1, -1, -1), (1, 1, 1))
    >>> contains(hull, (0.2, 0.1, 0.0))
    True
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from pcfilter.errors import DegenerateGeometryError, InvalidParameterError
from pcfilter.geometry.kernels import hull_contains_numba
from pcfilter.shared.rotation import axis_angle_to_rotation_matrix
from pcfilter.types import Vector3

logger = logging.getLogger(__name__)

# Base ray direction: not parallel to any axis plane or axis diagonal plane
_BASE_DIRECTION = np.array([0.7071067811865476, 0.5477225575051661, 0.4472135954999579])
# Fixed perturbation applied k times for the k-th retry
_PERTURBATION = np.array([1.3e-3, -2.9e-3, 2.3e-3])
_MAX_ATTEMPTS = 8
# Edge and plane proximity tolerance as a fraction of the hull diagonal
_RELATIVE_EPS = 1e-9
# Twice-area below this fraction of a polygon's squared bbox diagonal is zero area
_AREA_RTOL = 1e-12


def _ray_directions() -> np.ndarray:
    dirs = _BASE_DIRECTION[None, :] + np.arange(_MAX_ATTEMPTS)[:, None] * _PERTURBATION[None, :]
    return dirs / np.linalg.norm(dirs, axis=1, keepdims=True)


RAY_DIRECTIONS = _ray_directions()
RAY_DIRECTIONS.flags.writeable = False


def _newell_normal(poly: np.ndarray) -> np.ndarray:
    """Area-weighted normal of a (possibly non-planar) polygon [K, 3]."""
    nxt = np.roll(poly, -1, axis=0)
    return np.array(
        [
            np.sum((poly[:, 1] - nxt[:, 1]) * (poly[:, 2] + nxt[:, 2])),
            np.sum((poly[:, 2] - nxt[:, 2]) * (poly[:, 0] + nxt[:, 0])),
            np.sum((poly[:, 0] - nxt[:, 0]) * (poly[:, 1] + nxt[:, 1])),
        ]
    )


class Hull:
    """Closed polygonal hull.

    :param vertices: Vertex coordinates [V, 3]
    :param polygons: Sequence of polygons, each a sequence of >= 3 vertex indices
    :raises InvalidParameterError: No polygons, no vertices or out-of-range indices
    :raises DegenerateGeometryError: Polygon with < 3 vertices or zero area
    """

    def __init__(self, vertices: np.ndarray | Sequence[Vector3], polygons: Sequence[Sequence[int]]):
        verts = np.array(vertices, dtype=np.float64, copy=True)
        if verts.size == 0 or verts.ndim != 2 or verts.shape[1] != 3:
            raise InvalidParameterError(f"hull vertices must have shape [V, 3], got {verts.shape}")
        if not np.isfinite(verts).all():
            raise InvalidParameterError("hull vertices must be finite")
        if len(polygons) == 0:
            raise InvalidParameterError("hull must contain at least one polygon")

        extent = float(np.linalg.norm(verts.max(axis=0) - verts.min(axis=0)))
        if extent == 0.0:
            raise DegenerateGeometryError("hull vertices all coincide")
        # Plane and edge tolerance, relative to the hull size
        self.eps = extent * _RELATIVE_EPS

        polys = []
        normals = np.empty((len(polygons), 3))
        plane_d = np.empty(len(polygons))
        for i, poly in enumerate(polygons):
            idx = np.asarray(poly, dtype=np.int64).reshape(-1)
            if idx.size < 3:
                raise DegenerateGeometryError(
                    f"polygon {i} has {idx.size} vertices, at least 3 are required"
                )
            if idx.min() < 0 or idx.max() >= verts.shape[0]:
                raise InvalidParameterError(f"polygon {i} references a missing vertex")
            pts = verts[idx]
            n = _newell_normal(pts)
            norm = float(np.linalg.norm(n))
            # |n| is twice the polygon area; compare it with the polygon's own size
            diag_sq = float(np.sum((pts.max(axis=0) - pts.min(axis=0)) ** 2))
            if norm <= _AREA_RTOL * diag_sq:
                raise DegenerateGeometryError(f"polygon {i} has zero area")
            n /= norm
            normals[i] = n
            plane_d[i] = float(n @ pts.mean(axis=0))
            polys.append(tuple(int(v) for v in idx))

        self.vertices = verts
        self.polygons: tuple[tuple[int, ...], ...] = tuple(polys)
        self.normals = normals
        self.plane_d = plane_d
        self.drop_axis = np.argmax(np.abs(normals), axis=1).astype(np.int64)
        self.poly_offsets = np.concatenate([[0], np.cumsum([len(p) for p in polys])]).astype(
            np.int64
        )
        self.poly_indices = np.concatenate([np.asarray(p, dtype=np.int64) for p in polys])
        self.bbox_min = verts.min(axis=0)
        self.bbox_max = verts.max(axis=0)

        for arr in (
            self.vertices,
            self.normals,
            self.plane_d,
            self.drop_axis,
            self.poly_offsets,
            self.poly_indices,
            self.bbox_min,
            self.bbox_max,
        ):
            arr.flags.writeable = False

    # ========================================================================
    # Factory methods
    # ========================================================================

    @classmethod
    def box(
        cls,
        min_corner: Vector3,
        max_corner: Vector3,
        rotation: Vector3 | None = None,
    ) -> Hull:
        """Axis-aligned (or rotated about its centre) box hull with 6 quads.

        :param min_corner: Box minimum corner [x, y, z]
        :param max_corner: Box maximum corner [x, y, z]
        :param rotation: Optional axis-angle rotation (radians) about the box centre
        """
        lo = np.asarray(min_corner, dtype=np.float64).reshape(3)
        hi = np.asarray(max_corner, dtype=np.float64).reshape(3)
        if np.any(hi <= lo):
            raise DegenerateGeometryError(f"box has no volume: min={lo}, max={hi}")
        corners = np.array(
            [[(hi if (c >> a) & 1 else lo)[a] for a in range(3)] for c in range(8)]
        )
        faces = [
            (0, 2, 6, 4),  # x = min
            (1, 5, 7, 3),  # x = max
            (0, 4, 5, 1),  # y = min
            (2, 3, 7, 6),  # y = max
            (0, 1, 3, 2),  # z = min
            (4, 6, 7, 5),  # z = max
        ]
        if rotation is not None:
            center = (lo + hi) / 2
            R = axis_angle_to_rotation_matrix(rotation)
            corners = (corners - center) @ R.T + center
        return cls(corners, faces)

    @classmethod
    def from_convex_points(cls, points: np.ndarray | Sequence[Vector3]) -> Hull:
        """Triangulated convex hull of a point set (via SciPy/Qhull)."""
        from scipy.spatial import ConvexHull, QhullError

        pts = np.asarray(points, dtype=np.float64)
        try:
            qhull = ConvexHull(pts)
        except QhullError as e:
            raise DegenerateGeometryError(f"points do not span a volume: {e}") from e
        used = np.unique(qhull.simplices)
        remap = np.full(pts.shape[0], -1, dtype=np.int64)
        remap[used] = np.arange(used.size)
        return cls(pts[used], [tuple(remap[s]) for s in qhull.simplices])

    # ========================================================================
    # Queries
    # ========================================================================

    def __len__(self) -> int:
        return len(self.polygons)

    def __repr__(self) -> str:
        return f"Hull(vertices={self.vertices.shape[0]}, polygons={len(self.polygons)})"

    def transform(self, rotation: np.ndarray, translation: Vector3 | None = None) -> Hull:
        """Rigidly transformed copy: ``v' = R @ v + t``."""
        R = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
        t = np.zeros(3) if translation is None else np.asarray(translation, dtype=np.float64)
        return Hull(self.vertices @ R.T + t, self.polygons)

    def contains(self, point: Vector3) -> bool:
        return contains(self, point)

    def contains_points(self, points: np.ndarray) -> np.ndarray:
        return contains_points(self, points)


def contains_points(hull: Hull, points: np.ndarray | Sequence[Vector3]) -> np.ndarray:
    """Containment mask [N] for many points; non-finite points are outside.

    :param hull: Closed hull
    :param points: Query points [N, 3]
    :returns: Boolean mask, True where the point is inside or on the hull
    """
    pts = np.ascontiguousarray(points, dtype=np.float64).reshape(-1, 3)
    out = np.empty(pts.shape[0], dtype=np.bool_)
    if pts.shape[0] == 0:
        return out
    hull_contains_numba(
        pts,
        RAY_DIRECTIONS,
        hull.vertices,
        hull.poly_offsets,
        hull.poly_indices,
        hull.normals,
        hull.plane_d,
        hull.drop_axis,
        hull.bbox_min,
        hull.bbox_max,
        hull.eps,
        out,
    )
    return out


def contains(hull: Hull, point: Vector3) -> bool:
    """Whether a single point lies inside (or on) the hull."""
    return bool(contains_points(hull, np.asarray(point, dtype=np.float64).reshape(1, 3))[0])
