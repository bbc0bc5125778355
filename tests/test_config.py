"""Tests for filter value classes and dict/JSON loading."""

import json

import numpy as np
import pytest

from pcfilter import CropHull, InvalidParameterError, PointCloud, VoxelGridOcclusionEstimation
from pcfilter.config import (
    CropHullValues,
    NormalEstimationValues,
    NormalRefinementValues,
    NormalSpaceValues,
    OcclusionValues,
    SurfaceNormalValues,
    VoxelGridValues,
    crop_hull_from_dict,
    load_crop_hull_json,
    load_normal_estimation_json,
    load_occlusion_json,
    load_radius_outlier_json,
    load_random_sampling_json,
    load_statistical_outlier_json,
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
from pcfilter.geometry import Hull


class TestValuesValidation:
    """Test __post_init__ validation of value classes."""

    @pytest.mark.parametrize("leaf", [0.0, -1.0, float("nan"), float("inf")])
    def test_bad_leaf_size(self, leaf):
        with pytest.raises(InvalidParameterError):
            VoxelGridValues(leaf_size=leaf)
        with pytest.raises(InvalidParameterError):
            OcclusionValues(leaf_size=leaf)

    def test_bounds_normalized(self):
        values = VoxelGridValues(leaf_size=1, bounds=([0, 0, 0], [1, 2, 3]))
        assert values.bounds == ((0.0, 0.0, 0.0), (1.0, 2.0, 3.0))
        with pytest.raises(InvalidParameterError):
            VoxelGridValues(bounds=((1, 0, 0), (0, 1, 1)))

    def test_viewpoint(self):
        assert OcclusionValues(viewpoint=[1, 2, 3]).viewpoint == (1.0, 2.0, 3.0)
        with pytest.raises(InvalidParameterError):
            OcclusionValues(viewpoint=(0, 0))
        with pytest.raises(InvalidParameterError):
            OcclusionValues(viewpoint=(0, 0, np.nan))

    def test_keep_mode(self):
        with pytest.raises(InvalidParameterError):
            OcclusionValues(keep="hidden")

    def test_crop_hull_needs_hull(self):
        with pytest.raises(InvalidParameterError):
            CropHullValues()
        with pytest.raises(InvalidParameterError):
            CropHullValues(hull=[[0, 0, 0]])

    @pytest.mark.parametrize("kwargs", [{"sample": 0}, {"sample": 2.5}, {"bins_per_axis": -1}])
    def test_normal_space(self, kwargs):
        with pytest.raises(InvalidParameterError):
            NormalSpaceValues(**kwargs)

    def test_surface_normal(self):
        with pytest.raises(InvalidParameterError):
            SurfaceNormalValues(selection="nearest")
        with pytest.raises(InvalidParameterError):
            SurfaceNormalValues(samples_per_cell=0)

    def test_neighborhood_exclusive(self):
        assert NormalEstimationValues(k=None, radius=0.5).radius == 0.5
        with pytest.raises(InvalidParameterError):
            NormalEstimationValues(k=5, radius=0.5)
        with pytest.raises(InvalidParameterError):
            NormalRefinementValues(k=None, radius=None)

    def test_refinement_threshold(self):
        assert NormalRefinementValues(convergence_threshold=0).convergence_threshold == 0.0
        with pytest.raises(InvalidParameterError):
            NormalRefinementValues(convergence_threshold=-0.1)


class TestDictLoading:
    """Test *_from_dict helpers."""

    def test_unknown_keys_ignored(self):
        values = occlusion_from_dict({"leaf_size": 0.2, "viewpoint": [0, 0, 5], "comment": "lidar"})
        assert values.leaf_size == 0.2
        assert values.viewpoint == (0.0, 0.0, 5.0)
        assert values.keep == "visible"

    def test_not_a_mapping(self):
        with pytest.raises(InvalidParameterError):
            occlusion_from_dict([0.1, 0.2])

    def test_voxel_grid(self):
        values = voxel_grid_from_dict({"leaf_size": 0.5, "bounds": [[0, 0, 0], [1, 1, 1]]})
        assert values.bounds == ((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))

    def test_samplers(self):
        ns = normal_space_from_dict({"sample": 50, "seed": 7})
        assert (ns.sample, ns.bins_per_axis, ns.seed) == (50, 4, 7)
        sn = surface_normal_from_dict({"leaf_size": 0.1, "selection": "divergence"})
        assert sn.selection == "divergence"

    def test_radius_only_neighborhood(self):
        est = normal_estimation_from_dict({"radius": 0.3})
        assert est.k is None and est.radius == 0.3
        ref = normal_refinement_from_dict({"radius": 0.3, "max_iterations": 4})
        assert ref.k is None and ref.max_iterations == 4

    def test_crop_hull_box(self):
        values = crop_hull_from_dict({"box_min": [-1, -1, -1], "box_max": [1, 1, 1], "inside_is_kept": False})
        assert len(values.hull) == 6
        assert values.inside_is_kept is False

    def test_crop_hull_polygons(self):
        d = {
            "vertices": [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]],
            "polygons": [[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]],
        }
        values = crop_hull_from_dict(d)
        assert values.hull.contains((0.1, 0.1, 0.1))
        assert not values.hull.contains((1, 1, 1))

    def test_crop_hull_missing_geometry(self):
        with pytest.raises(InvalidParameterError):
            crop_hull_from_dict({"inside_is_kept": True})

    def test_outlier_removal(self):
        stat = statistical_outlier_from_dict({"mean_k": 16, "stddev_mul": 2.0})
        assert (stat.mean_k, stat.stddev_mul, stat.negative) == (16, 2.0, False)
        rad = radius_outlier_from_dict({"radius": 0.2, "negative": True})
        assert (rad.radius, rad.min_neighbors, rad.negative) == (0.2, 2, True)
        with pytest.raises(InvalidParameterError):
            statistical_outlier_from_dict({"stddev_mul": float("nan")})
        with pytest.raises(InvalidParameterError):
            radius_outlier_from_dict({"radius": -1.0})

    def test_random_sampling(self):
        values = random_sampling_from_dict({"sample": 25})
        assert (values.sample, values.seed) == (25, 0)
        with pytest.raises(InvalidParameterError):
            random_sampling_from_dict({"sample": 0})


class TestJson:
    """Test JSON loading and saving."""

    def test_load_occlusion(self, tmp_path):
        path = tmp_path / "occlusion.json"
        path.write_text(json.dumps({"leaf_size": 0.25, "viewpoint": [1, 0, 0], "keep": "occluded"}))
        f = VoxelGridOcclusionEstimation.from_values(load_occlusion_json(path))
        assert f.leaf_size == 0.25
        assert f.keep == "occluded"

    def test_occlusion_round_trip(self, tmp_path):
        values = OcclusionValues(leaf_size=0.5, viewpoint=(1, 2, 3), keep="occluded")
        path = tmp_path / "occ.json"
        save_occlusion_json(values, path)
        assert load_occlusion_json(path) == values
        assert occlusion_to_dict(values)["viewpoint"] == [1.0, 2.0, 3.0]

    def test_crop_hull_file_drives_filter(self, tmp_path):
        path = tmp_path / "crop.json"
        save_crop_hull_json(CropHullValues(hull=Hull.box((0, 0, 0), (1, 1, 1))), path)
        f = CropHull.from_values(load_crop_hull_json(path))
        cloud = PointCloud([[0.5, 0.5, 0.5], [2.0, 0.5, 0.5]])
        np.testing.assert_array_equal(f.filter_indices(cloud), [0])

    def test_other_loaders(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"leaf_size": 0.1, "k": 12}))
        assert load_voxel_grid_json(path).leaf_size == 0.1
        assert load_normal_estimation_json(path).k == 12

    def test_outlier_and_random_loaders(self, tmp_path):
        path = tmp_path / "outliers.json"
        path.write_text(json.dumps({"mean_k": 6, "radius": 0.4, "min_neighbors": 5, "sample": 9, "seed": 3}))
        assert load_statistical_outlier_json(path).mean_k == 6
        assert load_radius_outlier_json(path).min_neighbors == 5
        assert load_random_sampling_json(path).seed == 3

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{leaf_size: ")
        with pytest.raises(InvalidParameterError):
            load_occlusion_json(path)
