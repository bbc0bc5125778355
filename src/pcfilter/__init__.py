"""
pcfilter - Point cloud spatial filtering

Geometric filters that select, thin or reclassify the points of a 3D cloud
by spatial, geometric or surface-normal criteria, built on a shared voxel
grid index and Numba kernels.

Features:
- Voxel grid index with 3D DDA ray traversal
- Hull cropping against closed, possibly non-convex polygonal hulls
- Voxel occlusion estimation from a sensor viewpoint
- Normal estimation, refinement and normal-driven sampling
- Voxel centroid downsampling and uniform sampling

Example - Cropping and occlusion:
    >>> import numpy as np
    >>> from pcfilter import CropHull, Hull, PointCloud, VoxelGridOcclusionEstimation
    >>>
    >>> cloud = PointCloud(np.random.rand(10_000, 3))
    >>> inside = CropHull(Hull.box((0.25, 0.25, 0.25), (0.75, 0.75, 0.75))).apply(cloud)
    >>> visible = VoxelGridOcclusionEstimation(leaf_size=0.05, viewpoint=(0.5, 0.5, 3.0))(cloud)

Example - Normals:
    >>> from pcfilter import NormalEstimation, NormalRefinement, NormalSpaceSampling
    >>>
    >>> cloud = NormalEstimation(k=12, viewpoint=(0, 0, 10)).compute(cloud)
    >>> cloud = NormalRefinement(k=8)(cloud)
    >>> sampled = NormalSpaceSampling(sample=1000, seed=3).apply(cloud)
"""

__version__ = "0.1.0"

from pcfilter.cloud import Point, PointCloud
from pcfilter.config.values import (
    CropHullValues,
    NormalEstimationValues,
    NormalRefinementValues,
    NormalSpaceValues,
    OcclusionValues,
    RadiusOutlierValues,
    RandomSamplingValues,
    StatisticalOutlierValues,
    SurfaceNormalValues,
    VoxelGridValues,
)
from pcfilter.errors import (
    DegenerateGeometryError,
    InsufficientNeighborsError,
    InvalidParameterError,
    PointCloudError,
)
from pcfilter.filter import (
    CellState,
    CropHull,
    FilterResult,
    IndexFilter,
    NormalRefinement,
    NormalSpaceSampling,
    OcclusionEstimate,
    RadiusOutlierRemoval,
    RandomSampling,
    SamplingSurfaceNormal,
    StatisticalOutlierRemoval,
    UniformSampling,
    VoxelGrid,
    VoxelGridOcclusionEstimation,
)
from pcfilter.geometry import Hull, NormalEstimation, contains, contains_points, estimate_normal
from pcfilter.linalg import ClosedFormEigenSolver, NumpyEigenSolver
from pcfilter.protocols import CloudFilter, EigenSolver, NeighborSearch
from pcfilter.search import BruteForceSearch, KDTreeSearch
from pcfilter.spatial import RayTraversal, VoxelGridIndex, first_occupied, traverse

__all__ = [
    "__version__",
    # Data
    "Point",
    "PointCloud",
    # Errors
    "PointCloudError",
    "InvalidParameterError",
    "InsufficientNeighborsError",
    "DegenerateGeometryError",
    # Spatial
    "VoxelGridIndex",
    "RayTraversal",
    "traverse",
    "first_occupied",
    # Geometry
    "Hull",
    "contains",
    "contains_points",
    "estimate_normal",
    "NormalEstimation",
    # Filters
    "FilterResult",
    "IndexFilter",
    "CropHull",
    "VoxelGridOcclusionEstimation",
    "OcclusionEstimate",
    "CellState",
    "NormalSpaceSampling",
    "SamplingSurfaceNormal",
    "NormalRefinement",
    "VoxelGrid",
    "UniformSampling",
    "StatisticalOutlierRemoval",
    "RadiusOutlierRemoval",
    "RandomSampling",
    # Collaborators
    "NeighborSearch",
    "EigenSolver",
    "CloudFilter",
    "BruteForceSearch",
    "KDTreeSearch",
    "NumpyEigenSolver",
    "ClosedFormEigenSolver",
    # Config
    "VoxelGridValues",
    "CropHullValues",
    "OcclusionValues",
    "NormalSpaceValues",
    "SurfaceNormalValues",
    "NormalEstimationValues",
    "NormalRefinementValues",
    "StatisticalOutlierValues",
    "RadiusOutlierValues",
    "RandomSamplingValues",
]
