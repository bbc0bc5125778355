"""Normal-space stratified sampling.

Points are bucketed by normal direction: each normal component in
[-1, 1] is split into ``bins_per_axis`` equal ranges, giving
``bins_per_axis ** 3`` bins. Sampling then draws round-robin across the
non-empty bins so that every normal direction present is represented as
evenly as the population allows.

Example:
    >>> from pcfilter import NormalSpaceSampling
    >>>
    >>> sampler = NormalSpaceSampling(sample=500, bins_per_axis=4, seed=7)
    >>> result = sampler.apply(cloud_with_normals)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from pcfilter.cloud import PointCloud
from pcfilter.config.values import NormalSpaceValues
from pcfilter.filter.base import IndexFilter
from pcfilter.geometry.normals import require_normals

logger = logging.getLogger(__name__)


def normal_bins(normals: np.ndarray, bins_per_axis: int) -> np.ndarray:
    """
    Linearized bin per normal [N]; -1 where the normal is not finite.

    :param normals: Normals [N, 3], components expected in [-1, 1]
    :param bins_per_axis: Ranges per component
    """
    n = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    finite = np.isfinite(n).all(axis=1)
    comp = np.zeros(n.shape, dtype=np.int64)
    scaled = (np.clip(n[finite], -1.0, 1.0) + 1.0) * 0.5 * bins_per_axis
    comp[finite] = np.minimum(np.floor(scaled).astype(np.int64), bins_per_axis - 1)
    b = bins_per_axis
    bins = (comp[:, 0] * b + comp[:, 1]) * b + comp[:, 2]
    bins[~finite] = -1
    return bins


@dataclass(frozen=True)
class NormalSpaceHistogram:
    """
    Point indices bucketed by normal direction.

    Attributes:
        bins_per_axis: Ranges per normal component
        point_bin: Bin of every point [N], -1 for non-finite normals
    """

    bins_per_axis: int
    point_bin: np.ndarray

    @classmethod
    def from_normals(cls, normals: np.ndarray, bins_per_axis: int) -> NormalSpaceHistogram:
        point_bin = normal_bins(normals, bins_per_axis)
        point_bin.flags.writeable = False
        return cls(bins_per_axis, point_bin)

    @property
    def num_bins(self) -> int:
        return self.bins_per_axis**3

    def counts(self) -> np.ndarray:
        """Population per bin [num_bins]."""
        valid = self.point_bin[self.point_bin >= 0]
        return np.bincount(valid, minlength=self.num_bins)

    def members(self, b: int) -> np.ndarray:
        """Point indices in bin ``b`` (ascending)."""
        return np.flatnonzero(self.point_bin == b).astype(np.int64)

    def occupied_bins(self) -> np.ndarray:
        return np.flatnonzero(self.counts()).astype(np.int64)


def round_robin_draw(buckets: list[np.ndarray], sample: int) -> np.ndarray:
    """
    Take one element per non-empty bucket per round until ``sample`` are drawn.

    :param buckets: Pre-shuffled buckets, visited in list order each round
    :param sample: Number of elements wanted
    :returns: Drawn elements in draw order
    """
    total = sum(len(b) for b in buckets)
    want = min(sample, total)
    drawn = []
    depth = 0
    while len(drawn) < want:
        for bucket in buckets:
            if depth < len(bucket):
                drawn.append(int(bucket[depth]))
                if len(drawn) == want:
                    break
        depth += 1
    return np.asarray(drawn, dtype=np.int64)


class NormalSpaceSampling(IndexFilter):
    """
    Sample points evenly across normal directions.

    :param sample: Target number of points (> 0); the output holds at most
        ``min(sample, N)`` points
    :param bins_per_axis: Ranges per normal component
    :param seed: Seed for ``numpy.random.default_rng``; fixed seed, fixed output
    :raises InvalidParameterError: Zero sample, zero bins or a cloud without normals
    """

    def __init__(self, sample: int, bins_per_axis: int = 4, seed: int | None = 0):
        values = NormalSpaceValues(sample=sample, bins_per_axis=bins_per_axis, seed=seed)
        self.sample = values.sample
        self.bins_per_axis = values.bins_per_axis
        self.seed = values.seed

    @classmethod
    def from_values(cls, values: NormalSpaceValues) -> NormalSpaceSampling:
        return cls(values.sample, values.bins_per_axis, values.seed)

    def __repr__(self) -> str:
        return (
            f"NormalSpaceSampling(sample={self.sample}, bins_per_axis={self.bins_per_axis}, "
            f"seed={self.seed})"
        )

    def histogram(self, cloud: PointCloud) -> NormalSpaceHistogram:
        return NormalSpaceHistogram.from_normals(
            require_normals(cloud, "NormalSpaceSampling"), self.bins_per_axis
        )

    def filter_indices(self, cloud: PointCloud) -> np.ndarray:
        hist = self.histogram(cloud)
        rng = np.random.default_rng(self.seed)

        occupied = hist.occupied_bins()
        buckets = []
        for b in occupied:
            members = hist.members(int(b))
            rng.shuffle(members)
            buckets.append(members)
        order = rng.permutation(len(buckets))
        drawn = round_robin_draw([buckets[i] for i in order], self.sample)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[NormalSpaceSampling] %d points from %d/%d bins",
                drawn.size,
                occupied.size,
                hist.num_bins,
            )
        return np.sort(drawn)
