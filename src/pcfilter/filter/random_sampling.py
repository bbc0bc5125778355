"""Seeded uniform random subsampling."""

from __future__ import annotations

import logging

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import RandomSamplingValues
from pcfilter.filter.base import IndexFilter

logger = logging.getLogger(__name__)


class RandomSampling(IndexFilter):
    """
    Keep ``sample`` points drawn uniformly without replacement.

    Clouds with at most ``sample`` points are kept whole. Every point is a
    candidate, finite or not.

    :param sample: Number of points to keep, > 0
    :param seed: Seed for ``numpy.random.default_rng``; fixed seed, fixed output
    """

    def __init__(self, sample: int, seed: int | None = 0):
        values = RandomSamplingValues(sample=sample, seed=seed)
        self.sample = values.sample
        self.seed = values.seed

    @classmethod
    def from_values(cls, values: RandomSamplingValues) -> RandomSampling:
        return cls(values.sample, values.seed)

    def __repr__(self) -> str:
        return f"RandomSampling(sample={self.sample}, seed={self.seed})"

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        n = len(cloud)
        if n <= self.sample:
            return np.arange(n, dtype=np.int64)
        rng = np.random.default_rng(self.seed)
        drawn = rng.choice(n, size=self.sample, replace=False)
        logger.debug("[RandomSampling] %d of %d points", self.sample, n)
        return np.sort(drawn).astype(np.int64)
