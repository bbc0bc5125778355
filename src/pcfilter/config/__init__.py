"""Configuration values and dict/JSON loading for pcfilter filters.

Usage:
    from pcfilter.config import OcclusionValues, load_occlusion_json
    values = load_occlusion_json("occlusion.json")
    f = VoxelGridOcclusionEstimation.from_values(values)
"""

from pcfilter.config.presets import (
    crop_hull_from_dict,
    crop_hull_to_dict,
    load_crop_hull_json,
    load_normal_estimation_json,
    load_normal_refinement_json,
    load_normal_space_json,
    load_occlusion_json,
    load_radius_outlier_json,
    load_random_sampling_json,
    load_statistical_outlier_json,
    load_surface_normal_json,
    load_voxel_grid_json,
    normal_estimation_from_dict,
    normal_refinement_from_dict,
    normal_space_from_dict,
    occlusion_from_dict,
    occlusion_to_dict,
    radius_outlier_from_dict,
    random_sampling_from_dict,
    save_crop_hull_json,
    save_occlusion_json,
    statistical_outlier_from_dict,
    surface_normal_from_dict,
    voxel_grid_from_dict,
)
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

__all__ = [
    # Values
    "CropHullValues",
    "NormalEstimationValues",
    "NormalRefinementValues",
    "NormalSpaceValues",
    "OcclusionValues",
    "RadiusOutlierValues",
    "RandomSamplingValues",
    "StatisticalOutlierValues",
    "SurfaceNormalValues",
    "VoxelGridValues",
    # Dict/JSON
    "crop_hull_from_dict",
    "crop_hull_to_dict",
    "load_crop_hull_json",
    "load_normal_estimation_json",
    "load_normal_refinement_json",
    "load_normal_space_json",
    "load_occlusion_json",
    "load_radius_outlier_json",
    "load_random_sampling_json",
    "load_statistical_outlier_json",
    "load_surface_normal_json",
    "load_voxel_grid_json",
    "normal_estimation_from_dict",
    "normal_refinement_from_dict",
    "normal_space_from_dict",
    "occlusion_from_dict",
    "occlusion_to_dict",
    "radius_outlier_from_dict",
    "random_sampling_from_dict",
    "save_crop_hull_json",
    "save_occlusion_json",
    "statistical_outlier_from_dict",
    "surface_normal_from_dict",
    "voxel_grid_from_dict",
]
