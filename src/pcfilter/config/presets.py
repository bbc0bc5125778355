"""Dict and JSON loading for filter values.

Each ``*_from_dict`` helper picks the keys it knows and ignores the rest,
so one JSON document can hold settings for several filters. Validation
happens in the value dataclasses themselves.

Example:
    >>> values = occlusion_from_dict({"leaf_size": 0.1, "viewpoint": [0, 0, 5]})
    >>> values = load_crop_hull_json("crop.json")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

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
from pcfilter.errors import InvalidParameterError
from pcfilter.geometry.hull import Hull

logger = logging.getLogger(__name__)

_VECTOR_FIELDS = ("viewpoint",)


def _pick(d: dict, valid_fields: set[str]) -> dict:
    if not isinstance(d, dict):
        raise InvalidParameterError(f"expected a mapping of settings, got {type(d).__name__}")
    kwargs = {}
    for k, v in d.items():
        if k not in valid_fields:
            logger.debug("Ignoring unknown setting '%s'", k)
            continue
        if k in _VECTOR_FIELDS and v is not None:
            kwargs[k] = tuple(v)
        else:
            kwargs[k] = v
    return kwargs


def _read_json(path: str | Path) -> dict:
    with open(path) as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidParameterError(f"malformed JSON in {path}: {e}") from e


# ============================================================================
# Dict Loading
# ============================================================================


def voxel_grid_from_dict(d: dict) -> VoxelGridValues:
    """Create VoxelGridValues from dictionary.

    Example:
        >>> voxel_grid_from_dict({"leaf_size": 0.05, "bounds": [[0, 0, 0], [1, 1, 1]]})
    """
    kwargs = _pick(d, {"leaf_size", "bounds"})
    if kwargs.get("bounds") is not None:
        lo, hi = kwargs["bounds"]
        kwargs["bounds"] = (tuple(lo), tuple(hi))
    return VoxelGridValues(**kwargs)


def crop_hull_from_dict(d: dict) -> CropHullValues:
    """Create CropHullValues from dictionary.

    The hull is given either as ``vertices`` + ``polygons`` or as an
    axis-aligned box ``box_min`` + ``box_max`` (optional ``box_rotation``,
    axis-angle radians).

    Example:
        >>> crop_hull_from_dict({"box_min": [-1, -1, -1], "box_max": [1, 1, 1]})
    """
    kwargs = _pick(d, {"inside_is_kept"})
    if "vertices" in d and "polygons" in d:
        hull = Hull(d["vertices"], d["polygons"])
    elif "box_min" in d and "box_max" in d:
        hull = Hull.box(d["box_min"], d["box_max"], rotation=d.get("box_rotation"))
    else:
        raise InvalidParameterError("crop hull settings need vertices/polygons or box_min/box_max")
    return CropHullValues(hull=hull, **kwargs)


def occlusion_from_dict(d: dict) -> OcclusionValues:
    """Create OcclusionValues from dictionary."""
    return OcclusionValues(**_pick(d, {"leaf_size", "viewpoint", "keep"}))


def normal_space_from_dict(d: dict) -> NormalSpaceValues:
    """Create NormalSpaceValues from dictionary."""
    return NormalSpaceValues(**_pick(d, {"sample", "bins_per_axis", "seed"}))


def surface_normal_from_dict(d: dict) -> SurfaceNormalValues:
    """Create SurfaceNormalValues from dictionary."""
    valid_fields = {
        "leaf_size",
        "samples_per_cell",
        "selection",
        "seed",
        "compute_normals",
        "normal_k",
        "viewpoint",
    }
    return SurfaceNormalValues(**_pick(d, valid_fields))


def normal_estimation_from_dict(d: dict) -> NormalEstimationValues:
    """Create NormalEstimationValues from dictionary.

    Giving ``radius`` without ``k`` selects a radius neighbourhood.
    """
    kwargs = _pick(d, {"k", "radius", "viewpoint", "on_insufficient"})
    if kwargs.get("radius") is not None and "k" not in kwargs:
        kwargs["k"] = None
    return NormalEstimationValues(**kwargs)


def normal_refinement_from_dict(d: dict) -> NormalRefinementValues:
    """Create NormalRefinementValues from dictionary."""
    valid_fields = {"k", "radius", "max_iterations", "convergence_threshold", "viewpoint"}
    kwargs = _pick(d, valid_fields)
    if kwargs.get("radius") is not None and "k" not in kwargs:
        kwargs["k"] = None
    return NormalRefinementValues(**kwargs)


def statistical_outlier_from_dict(d: dict) -> StatisticalOutlierValues:
    """Create StatisticalOutlierValues from dictionary.

    Example:
        >>> statistical_outlier_from_dict({"mean_k": 16, "stddev_mul": 2.0})
    """
    return StatisticalOutlierValues(**_pick(d, {"mean_k", "stddev_mul", "negative"}))


def radius_outlier_from_dict(d: dict) -> RadiusOutlierValues:
    """Create RadiusOutlierValues from dictionary."""
    return RadiusOutlierValues(**_pick(d, {"radius", "min_neighbors", "negative"}))


def random_sampling_from_dict(d: dict) -> RandomSamplingValues:
    """Create RandomSamplingValues from dictionary."""
    return RandomSamplingValues(**_pick(d, {"sample", "seed"}))


# ============================================================================
# JSON Loading
# ============================================================================


def load_voxel_grid_json(path: str | Path) -> VoxelGridValues:
    """Load VoxelGridValues from JSON file.

    :param path: Path to JSON file
    :returns: VoxelGridValues instance
    """
    return voxel_grid_from_dict(_read_json(path))


def load_crop_hull_json(path: str | Path) -> CropHullValues:
    return crop_hull_from_dict(_read_json(path))


def load_occlusion_json(path: str | Path) -> OcclusionValues:
    return occlusion_from_dict(_read_json(path))


def load_normal_space_json(path: str | Path) -> NormalSpaceValues:
    return normal_space_from_dict(_read_json(path))


def load_surface_normal_json(path: str | Path) -> SurfaceNormalValues:
    return surface_normal_from_dict(_read_json(path))


def load_normal_estimation_json(path: str | Path) -> NormalEstimationValues:
    return normal_estimation_from_dict(_read_json(path))


def load_normal_refinement_json(path: str | Path) -> NormalRefinementValues:
    return normal_refinement_from_dict(_read_json(path))


def load_statistical_outlier_json(path: str | Path) -> StatisticalOutlierValues:
    return statistical_outlier_from_dict(_read_json(path))


def load_radius_outlier_json(path: str | Path) -> RadiusOutlierValues:
    return radius_outlier_from_dict(_read_json(path))


def load_random_sampling_json(path: str | Path) -> RandomSamplingValues:
    return random_sampling_from_dict(_read_json(path))


# ============================================================================
# Saving Functions
# ============================================================================


def occlusion_to_dict(values: OcclusionValues) -> dict:
    """Convert OcclusionValues to dictionary."""
    return {
        "leaf_size": values.leaf_size,
        "viewpoint": list(values.viewpoint),
        "keep": values.keep,
    }


def crop_hull_to_dict(values: CropHullValues) -> dict:
    """Convert CropHullValues to dictionary (hull as vertices and polygons)."""
    return {
        "vertices": values.hull.vertices.tolist(),
        "polygons": [list(p) for p in values.hull.polygons],
        "inside_is_kept": values.inside_is_kept,
    }


def save_occlusion_json(values: OcclusionValues, path: str | Path) -> None:
    with open(path, "w") as f:
        json.dump(occlusion_to_dict(values), f, indent=2)


def save_crop_hull_json(values: CropHullValues, path: str | Path) -> None:
    with open(path, "w") as f:
        json.dump(crop_hull_to_dict(values), f, indent=2)
