"""Tests for RandomSampling."""

import numpy as np
import pytest

from pcfilter import InvalidParameterError, PointCloud, RandomSampling, RandomSamplingValues


@pytest.fixture
def cloud():
    return PointCloud(np.random.default_rng(2).uniform(size=(200, 3)))


class TestRandomSampling:
    def test_sample_size(self, cloud):
        idx = RandomSampling(sample=50).filter_indices(cloud)
        assert idx.size == 50
        assert np.unique(idx).size == 50
        assert np.all(np.diff(idx) > 0)
        assert idx.min() >= 0 and idx.max() < len(cloud)

    def test_small_cloud_kept_whole(self, cloud):
        np.testing.assert_array_equal(RandomSampling(sample=500).filter_indices(cloud), np.arange(200))

    def test_seeded(self, cloud):
        a = RandomSampling(sample=20, seed=8).filter_indices(cloud)
        b = RandomSampling(sample=20, seed=8).filter_indices(cloud)
        c = RandomSampling(sample=20, seed=9).filter_indices(cloud)
        np.testing.assert_array_equal(a, b)
        assert not np.array_equal(a, c)

    def test_partition(self, cloud):
        result = RandomSampling(sample=30).apply(cloud)
        assert len(result) == 30
        assert len(result.removed_indices) == 170
        np.testing.assert_array_equal(result.cloud.points, cloud.points[result.indices])

    def test_from_values(self):
        f = RandomSampling.from_values(RandomSamplingValues(sample=7, seed=None))
        assert (f.sample, f.seed) == (7, None)

    def test_bad_sample(self):
        with pytest.raises(InvalidParameterError):
            RandomSampling(sample=0)
