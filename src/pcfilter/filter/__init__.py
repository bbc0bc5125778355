"""
Point cloud filters.

Index filters (subclasses of :class:`IndexFilter`) keep a subset of the
input and report kept and removed indices. :class:`VoxelGrid` and
:class:`NormalRefinement` produce new point data instead.

Example:
    >>> from pcfilter.filter import CropHull, NormalSpaceSampling
    >>>
    >>> result = CropHull(hull).apply(cloud)
    >>> sampled = NormalSpaceSampling(sample=100)(result.cloud)
"""

from pcfilter.filter.base import FilterResult, IndexFilter
from pcfilter.filter.crop_hull import CropHull
from pcfilter.filter.normal_space import NormalSpaceHistogram, NormalSpaceSampling
from pcfilter.filter.occlusion import CellState, OcclusionEstimate, VoxelGridOcclusionEstimation
from pcfilter.filter.outlier import RadiusOutlierRemoval, StatisticalOutlierRemoval
from pcfilter.filter.random_sampling import RandomSampling
from pcfilter.filter.refinement import NormalRefinement
from pcfilter.filter.surface_normal import SamplingSurfaceNormal
from pcfilter.filter.voxel_grid import UniformSampling, VoxelGrid

__all__ = [
    "FilterResult",
    "IndexFilter",
    "CropHull",
    "VoxelGridOcclusionEstimation",
    "OcclusionEstimate",
    "CellState",
    "NormalSpaceSampling",
    "NormalSpaceHistogram",
    "SamplingSurfaceNormal",
    "NormalRefinement",
    "VoxelGrid",
    "UniformSampling",
    "StatisticalOutlierRemoval",
    "RadiusOutlierRemoval",
    "RandomSampling",
]
