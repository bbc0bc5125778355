"""Tests for CropHull."""

import numpy as np
import pytest

from pcfilter import CropHull, CropHullValues, FilterResult, Hull, InvalidParameterError, PointCloud
from pcfilter.protocols import CloudFilter


@pytest.fixture
def cube_cloud():
    rng = np.random.default_rng(1234)
    return PointCloud(rng.uniform(-0.5, 0.5, size=(1000, 3)))


@pytest.fixture
def small_box():
    return Hull.box((-0.25, -0.25, -0.25), (0.25, 0.25, 0.25))


class TestCropHull:
    def test_sub_cube_keeps_about_an_eighth(self, cube_cloud, small_box):
        result = CropHull(small_box).apply(cube_cloud)
        assert isinstance(result, FilterResult)
        assert 90 <= len(result.indices) <= 160
        kept = cube_cloud.points[result.indices]
        assert np.all(np.abs(kept) <= 0.25)
        np.testing.assert_array_equal(result.cloud.points, kept)

    def test_polarities_partition_cloud(self, cube_cloud, small_box):
        inside = CropHull(small_box, inside_is_kept=True).filter_indices(cube_cloud)
        outside = CropHull(small_box, inside_is_kept=False).filter_indices(cube_cloud)
        assert np.intersect1d(inside, outside).size == 0
        np.testing.assert_array_equal(np.union1d(inside, outside), np.arange(len(cube_cloud)))

    def test_removed_indices_complement(self, cube_cloud, small_box):
        result = CropHull(small_box).apply(cube_cloud)
        assert len(result.indices) + len(result.removed_indices) == len(cube_cloud)
        np.testing.assert_array_equal(np.flatnonzero(result.mask), result.indices)

    def test_non_finite_points(self, small_box):
        cloud = PointCloud([[0.0, 0.0, 0.0], [np.nan, 0.0, 0.0], [1.0, 1.0, 1.0]])
        np.testing.assert_array_equal(CropHull(small_box).filter_indices(cloud), [0])
        np.testing.assert_array_equal(
            CropHull(small_box, inside_is_kept=False).filter_indices(cloud), [1, 2]
        )

    def test_call_returns_cloud(self, cube_cloud, small_box):
        out = CropHull(small_box)(cube_cloud)
        assert isinstance(out, PointCloud)
        assert len(out) == len(CropHull(small_box).filter_indices(cube_cloud))

    def test_input_unchanged(self, cube_cloud, small_box):
        before = cube_cloud.points.copy()
        CropHull(small_box).apply(cube_cloud)
        np.testing.assert_array_equal(cube_cloud.points, before)

    def test_missing_hull(self):
        with pytest.raises(InvalidParameterError):
            CropHull(None)

    def test_from_values(self, cube_cloud, small_box):
        f = CropHull.from_values(CropHullValues(hull=small_box, inside_is_kept=False))
        assert not f.inside_is_kept
        assert isinstance(f, CloudFilter)
