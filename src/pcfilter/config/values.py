"""Configuration value dataclasses for each filter.

Values validate themselves in ``__post_init__`` and raise
:class:`~pcfilter.errors.InvalidParameterError` for out-of-range input, so
a filter built from a values object never starts with a bad parameter.

Example:
    >>> values = OcclusionValues(leaf_size=0.1, viewpoint=(0, 0, 5))
    >>> f = VoxelGridOcclusionEstimation.from_values(values)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

import numpy as np

from pcfilter.errors import InvalidParameterError
from pcfilter.geometry.hull import Hull
from pcfilter.spatial.voxel_grid import validate_leaf_size

KeepMode = Literal["visible", "occluded"]
SelectionMode = Literal["random", "divergence"]


def _vector3(name: str, value) -> tuple[float, float, float]:
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,) or not np.isfinite(arr).all():
        raise InvalidParameterError(f"{name} must be 3 finite numbers, got {value!r}")
    return float(arr[0]), float(arr[1]), float(arr[2])


def _positive_int(name: str, value) -> int:
    if isinstance(value, bool) or int(value) != value or int(value) < 1:
        raise InvalidParameterError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _positive_float(name: str, value) -> float:
    v = float(value)
    if not math.isfinite(v) or v <= 0.0:
        raise InvalidParameterError(f"{name} must be positive, got {value!r}")
    return v


def _neighborhood(k: int | None, radius: float | None) -> tuple[int | None, float | None]:
    if (k is None) == (radius is None):
        raise InvalidParameterError("exactly one of k or radius must be set")
    if k is not None:
        return _positive_int("k", k), None
    return None, _positive_float("radius", radius)


@dataclass
class VoxelGridValues:
    """
    Voxel grid parameters shared by VoxelGrid and UniformSampling.

    Attributes:
        leaf_size: Cell edge length in world units
        bounds: Optional (min_corner, max_corner) fixing the grid region
    """

    leaf_size: float = 0.01
    bounds: tuple[tuple[float, float, float], tuple[float, float, float]] | None = None

    def __post_init__(self):
        self.leaf_size = validate_leaf_size(self.leaf_size)
        if self.bounds is not None:
            lo = _vector3("bounds[0]", self.bounds[0])
            hi = _vector3("bounds[1]", self.bounds[1])
            if any(h < l for l, h in zip(lo, hi)):
                raise InvalidParameterError(f"bounds max {hi} is below min {lo}")
            self.bounds = (lo, hi)


@dataclass
class CropHullValues:
    """
    Hull cropping parameters.

    Attributes:
        hull: Closed hull to crop against
        inside_is_kept: Keep points inside (True) or outside (False) the hull
    """

    hull: Hull | None = None
    inside_is_kept: bool = True

    def __post_init__(self):
        if self.hull is None:
            raise InvalidParameterError("CropHull requires a hull")
        if not isinstance(self.hull, Hull):
            raise InvalidParameterError(f"hull must be a Hull, got {type(self.hull).__name__}")
        self.inside_is_kept = bool(self.inside_is_kept)


@dataclass
class OcclusionValues:
    """
    Voxel occlusion estimation parameters.

    Attributes:
        leaf_size: Cell edge length in world units
        viewpoint: Sensor position [x, y, z]
        keep: Keep points in "visible" cells or in "occluded" cells
    """

    leaf_size: float = 0.01
    viewpoint: tuple[float, float, float] = (0.0, 0.0, 0.0)
    keep: KeepMode = "visible"

    def __post_init__(self):
        self.leaf_size = validate_leaf_size(self.leaf_size)
        self.viewpoint = _vector3("viewpoint", self.viewpoint)
        if self.keep not in ("visible", "occluded"):
            raise InvalidParameterError(f"keep must be 'visible' or 'occluded', got {self.keep!r}")


@dataclass
class NormalSpaceValues:
    """
    Normal-space sampling parameters.

    Attributes:
        sample: Target number of output points (> 0)
        bins_per_axis: Histogram bins per normal component (bins_per_axis**3 in total)
        seed: Random seed; None draws fresh entropy
    """

    sample: int = 1000
    bins_per_axis: int = 4
    seed: int | None = 0

    def __post_init__(self):
        self.sample = _positive_int("sample", self.sample)
        self.bins_per_axis = _positive_int("bins_per_axis", self.bins_per_axis)


@dataclass
class SurfaceNormalValues:
    """
    Surface-normal sampling parameters.

    Attributes:
        leaf_size: Cell edge length of the partitioning grid
        samples_per_cell: Maximum points kept per cell
        selection: "random" draw or greedy normal "divergence"
        seed: Random seed for the random draw
        compute_normals: Estimate normals when the input has none
        normal_k: Neighbours used when computing normals
        viewpoint: Orientation viewpoint for computed normals
    """

    leaf_size: float = 0.05
    samples_per_cell: int = 1
    selection: SelectionMode = "random"
    seed: int | None = 0
    compute_normals: bool = False
    normal_k: int = 10
    viewpoint: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        self.leaf_size = validate_leaf_size(self.leaf_size)
        self.samples_per_cell = _positive_int("samples_per_cell", self.samples_per_cell)
        if self.selection not in ("random", "divergence"):
            raise InvalidParameterError(
                f"selection must be 'random' or 'divergence', got {self.selection!r}"
            )
        self.normal_k = _positive_int("normal_k", self.normal_k)
        self.viewpoint = _vector3("viewpoint", self.viewpoint)


@dataclass
class NormalEstimationValues:
    """
    Normal estimation parameters.

    Attributes:
        k: Number of nearest neighbours (exclusive with radius)
        radius: Neighbour search radius (exclusive with k)
        viewpoint: Normals are flipped to face this point
        on_insufficient: "skip" leaves NaN for points with < 3 neighbours, "raise" aborts
    """

    k: int | None = 10
    radius: float | None = None
    viewpoint: tuple[float, float, float] = (0.0, 0.0, 0.0)
    on_insufficient: Literal["skip", "raise"] = "skip"

    def __post_init__(self):
        self.k, self.radius = _neighborhood(self.k, self.radius)
        self.viewpoint = _vector3("viewpoint", self.viewpoint)
        if self.on_insufficient not in ("skip", "raise"):
            raise InvalidParameterError(
                f"on_insufficient must be 'skip' or 'raise', got {self.on_insufficient!r}"
            )


@dataclass
class NormalRefinementValues:
    """
    Normal refinement parameters.

    Attributes:
        k: Number of nearest neighbours (exclusive with radius)
        radius: Neighbour search radius (exclusive with k)
        max_iterations: Upper bound on smoothing passes
        convergence_threshold: Stop once no normal turns more than this (radians)
        viewpoint: Final orientation viewpoint
    """

    k: int | None = 8
    radius: float | None = None
    max_iterations: int = 15
    convergence_threshold: float = 1e-4
    viewpoint: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        self.k, self.radius = _neighborhood(self.k, self.radius)
        self.max_iterations = _positive_int("max_iterations", self.max_iterations)
        if not float(self.convergence_threshold) >= 0.0:
            raise InvalidParameterError(
                f"convergence_threshold must be >= 0, got {self.convergence_threshold!r}"
            )
        self.convergence_threshold = float(self.convergence_threshold)
        self.viewpoint = _vector3("viewpoint", self.viewpoint)


@dataclass
class StatisticalOutlierValues:
    """
    Statistical outlier removal parameters.

    Attributes:
        mean_k: Neighbours (excluding the point) averaged per point
        stddev_mul: Threshold is mean + stddev_mul * stddev of the mean distances
        negative: Keep the outliers instead of the inliers
    """

    mean_k: int = 8
    stddev_mul: float = 1.0
    negative: bool = False

    def __post_init__(self):
        self.mean_k = _positive_int("mean_k", self.mean_k)
        if not math.isfinite(float(self.stddev_mul)):
            raise InvalidParameterError(f"stddev_mul must be finite, got {self.stddev_mul!r}")
        self.stddev_mul = float(self.stddev_mul)
        self.negative = bool(self.negative)


@dataclass
class RadiusOutlierValues:
    """
    Radius outlier removal parameters.

    Attributes:
        radius: Search radius
        min_neighbors: Other points required within ``radius`` to be an inlier
        negative: Keep the outliers instead of the inliers
    """

    radius: float = 0.05
    min_neighbors: int = 2
    negative: bool = False

    def __post_init__(self):
        self.radius = _positive_float("radius", self.radius)
        self.min_neighbors = _positive_int("min_neighbors", self.min_neighbors)
        self.negative = bool(self.negative)


@dataclass
class RandomSamplingValues:
    """
    Random sampling parameters.

    Attributes:
        sample: Number of points to keep (> 0)
        seed: Random seed; None draws fresh entropy
    """

    sample: int = 1000
    seed: int | None = 0

    def __post_init__(self):
        self.sample = _positive_int("sample", self.sample)
