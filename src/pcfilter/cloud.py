"""Point cloud container shared by every filter.

A cloud is a set of parallel arrays: ``points`` [N, 3] plus optional
``normals`` [N, 3], ``curvature`` [N] and named per-point attributes.
Filters read a cloud and return a new one; they never write into the
caller's arrays.

Example:
    >>> import numpy as np
    >>> from pcfilter import PointCloud
    >>>
    >>> cloud = PointCloud(np.random.rand(100, 3))
    >>> sub = cloud.select([0, 5, 7])
    >>> len(sub)
    3
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import NamedTuple

import numpy as np

from pcfilter.errors import InvalidParameterError

logger = logging.getLogger(__name__)


class Point(NamedTuple):
    """Read-only view of a single point."""

    x: float
    y: float
    z: float
    normal: tuple[float, float, float] | None = None
    curvature: float | None = None

    @property
    def xyz(self) -> np.ndarray:
        return np.array((self.x, self.y, self.z), dtype=np.float64)


class PointCloud:
    """Ordered point cloud with optional normals, curvature and attributes.

    :param points: Coordinates [N, 3]
    :param normals: Optional normals [N, 3]
    :param curvature: Optional curvature [N]
    :param attributes: Optional mapping name -> array with leading dimension N
    :param width: Row width for organized clouds (1 means unorganized)
    """

    __slots__ = ("_points", "_normals", "_curvature", "_attributes", "_width")

    def __init__(
        self,
        points: np.ndarray | Sequence[Sequence[float]],
        normals: np.ndarray | None = None,
        curvature: np.ndarray | None = None,
        attributes: dict[str, np.ndarray] | None = None,
        width: int = 1,
    ):
        pts = np.array(points, dtype=np.float64, copy=True)
        if pts.size == 0:
            pts = pts.reshape(0, 3)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise InvalidParameterError(f"points must have shape [N, 3], got {pts.shape}")
        n = pts.shape[0]

        if normals is not None:
            normals = np.array(normals, dtype=np.float64, copy=True).reshape(-1, 3)
            if normals.shape[0] != n:
                raise InvalidParameterError(
                    f"normals length {normals.shape[0]} does not match {n} points"
                )
        if curvature is not None:
            curvature = np.array(curvature, dtype=np.float64, copy=True).reshape(-1)
            if curvature.shape[0] != n:
                raise InvalidParameterError(
                    f"curvature length {curvature.shape[0]} does not match {n} points"
                )

        attrs = {}
        for name, values in (attributes or {}).items():
            arr = np.array(values, copy=True)
            if arr.shape[:1] != (n,):
                raise InvalidParameterError(f"attribute '{name}' must have leading dimension {n}")
            attrs[name] = arr

        if width < 1 or (n > 0 and n % width != 0):
            raise InvalidParameterError(f"width {width} does not divide {n} points")

        for arr in (pts, normals, curvature, *attrs.values()):
            if arr is not None:
                arr.flags.writeable = False

        self._points = pts
        self._normals = normals
        self._curvature = curvature
        self._attributes = attrs
        self._width = width

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def points(self) -> np.ndarray:
        """Coordinates [N, 3] (read-only)."""
        return self._points

    @property
    def normals(self) -> np.ndarray | None:
        return self._normals

    @property
    def curvature(self) -> np.ndarray | None:
        return self._curvature

    @property
    def attributes(self) -> dict[str, np.ndarray]:
        return dict(self._attributes)

    @property
    def has_normals(self) -> bool:
        return self._normals is not None

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return len(self) // self._width if len(self) else 0

    @property
    def is_organized(self) -> bool:
        return self._width > 1

    @property
    def is_dense(self) -> bool:
        """True if every coordinate is finite."""
        return bool(np.isfinite(self._points).all())

    def __len__(self) -> int:
        return self._points.shape[0]

    def __getitem__(self, index: int) -> Point:
        x, y, z = (float(v) for v in self._points[index])
        normal = None
        if self._normals is not None:
            normal = tuple(float(v) for v in self._normals[index])
        curvature = float(self._curvature[index]) if self._curvature is not None else None
        return Point(x, y, z, normal, curvature)

    def __iter__(self) -> Iterator[Point]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        fields = ["xyz"]
        if self._normals is not None:
            fields.append("normal")
        if self._curvature is not None:
            fields.append("curvature")
        fields.extend(self._attributes)
        return f"PointCloud(n={len(self)}, width={self._width}, fields={fields})"

    # ========================================================================
    # Queries
    # ========================================================================

    def finite_mask(self) -> np.ndarray:
        """Boolean mask [N] of points whose coordinates are all finite."""
        return np.isfinite(self._points).all(axis=1)

    def bounds(self) -> tuple[np.ndarray, np.ndarray] | None:
        """Axis-aligned bounds over finite points, or None if there are none."""
        finite = self._points[self.finite_mask()]
        if finite.shape[0] == 0:
            return None
        return finite.min(axis=0), finite.max(axis=0)

    # ========================================================================
    # Derived clouds
    # ========================================================================

    def select(self, indices: np.ndarray | Sequence[int], width: int = 1) -> PointCloud:
        """Create a new cloud from the given point indices (in the given order)."""
        idx = np.asarray(indices, dtype=np.int64).reshape(-1)
        return PointCloud(
            self._points[idx],
            normals=self._normals[idx] if self._normals is not None else None,
            curvature=self._curvature[idx] if self._curvature is not None else None,
            attributes={k: v[idx] for k, v in self._attributes.items()},
            width=width,
        )

    def with_normals(self, normals: np.ndarray, curvature: np.ndarray | None = None) -> PointCloud:
        """Copy of this cloud carrying the given normals (and curvature)."""
        return PointCloud(
            self._points,
            normals=normals,
            curvature=curvature if curvature is not None else self._curvature,
            attributes=self._attributes,
            width=self._width,
        )

    def transform(self, rotation: np.ndarray, translation: np.ndarray | None = None) -> PointCloud:
        """Apply a rigid transform ``p' = R @ p + t``; normals are rotated.

        :param rotation: Rotation matrix [3, 3]
        :param translation: Translation [3], defaults to zero
        :returns: New transformed cloud
        """
        R = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
        t = np.zeros(3) if translation is None else np.asarray(translation, dtype=np.float64)
        normals = self._normals @ R.T if self._normals is not None else None
        return PointCloud(
            self._points @ R.T + t,
            normals=normals,
            curvature=self._curvature,
            attributes=self._attributes,
            width=self._width,
        )

    def copy(self) -> PointCloud:
        return PointCloud(
            self._points,
            normals=self._normals,
            curvature=self._curvature,
            attributes=self._attributes,
            width=self._width,
        )
