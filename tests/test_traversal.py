"""Tests for ray-voxel traversal."""

import numpy as np
import pytest

from pcfilter import DegenerateGeometryError, PointCloud, VoxelGridIndex, first_occupied, traverse
from pcfilter.spatial import ray_box_intersection

BOUNDS = ((0.0, 0.0, 0.0), (3.0, 3.0, 3.0))


@pytest.fixture
def grid():
    """3x3x3 unit grid with only the centre cell occupied."""
    return VoxelGridIndex.build(PointCloud([[1.5, 1.5, 1.5]]), 1.0, bounds=BOUNDS)


class TestTraverse:
    def test_straight_ray_through_centre_row(self, grid):
        keys = list(traverse(grid, (-1.0, 1.5, 1.5), (1.0, 0.0, 0.0)))
        assert keys == [(0, 1, 1), (1, 1, 1), (2, 1, 1)]

    def test_first_occupied_is_centre(self, grid):
        assert first_occupied(grid, (-1.0, 1.5, 1.5), (1.0, 0.0, 0.0)) == (1, 1, 1)

    def test_miss_returns_none(self, grid):
        assert first_occupied(grid, (-1.0, 0.5, 0.5), (1.0, 0.0, 0.0)) is None
        assert list(traverse(grid, (-1.0, 5.0, 5.0), (1.0, 0.0, 0.0))) == []

    def test_restartable(self, grid):
        ray = traverse(grid, (-1.0, 1.5, 1.5), (2.0, 0.0, 0.0))
        assert list(ray) == list(ray)

    def test_reverse_direction(self, grid):
        keys = list(traverse(grid, (4.0, 0.5, 2.5), (-1.0, 0.0, 0.0)))
        assert keys == [(2, 0, 2), (1, 0, 2), (0, 0, 2)]

    def test_origin_inside_grid(self, grid):
        keys = list(traverse(grid, (0.5, 0.5, 0.5), (0.0, 0.0, 1.0)))
        assert keys == [(0, 0, 0), (0, 0, 1), (0, 0, 2)]

    def test_max_distance(self, grid):
        keys = list(traverse(grid, (-1.0, 1.5, 1.5), (1.0, 0.0, 0.0), max_distance=2.5))
        assert keys == [(0, 1, 1), (1, 1, 1)]

    def test_diagonal_steps_one_axis_at_a_time(self, grid):
        keys = list(traverse(grid, (0.1, 0.2, 0.3), (1.0, 1.1, 1.2)))
        assert keys[0] == (0, 0, 0)
        for a, b in zip(keys, keys[1:]):
            assert sum(abs(x - y) for x, y in zip(a, b)) == 1

    def test_distance_increases(self, grid):
        origin = np.array([-0.7, 0.4, 2.9])
        direction = np.array([1.0, 0.8, -0.6])
        keys = list(traverse(grid, origin, direction))
        centres = np.array([grid.cell_center(k) for k in keys])
        along = (centres - origin) @ (direction / np.linalg.norm(direction))
        assert np.all(np.diff(along) > 0)

    def test_zero_direction_raises(self, grid):
        with pytest.raises(DegenerateGeometryError):
            traverse(grid, (0, 0, 0), (0, 0, 0))


class TestCompiledTraversal:
    @pytest.mark.parametrize(
        "origin,direction",
        [
            ((-1.0, 1.5, 1.5), (1.0, 0.0, 0.0)),
            ((0.1, 0.2, 0.3), (1.0, 1.1, 1.2)),
            ((4.0, 0.5, 2.5), (-1.0, 0.0, 0.0)),
            ((-0.7, 0.4, 2.9), (1.0, 0.8, -0.6)),
            ((1.2, -2.0, 1.7), (0.1, 1.0, 0.05)),
        ],
    )
    def test_matches_python_walk(self, grid, origin, direction):
        ray = traverse(grid, origin, direction)
        expected = np.array(list(ray), dtype=np.int64).reshape(-1, 3)
        np.testing.assert_array_equal(ray.keys(), expected)


class TestRayBox:
    def test_hit_and_miss(self):
        lo, hi = np.zeros(3), np.ones(3)
        t0, t1 = ray_box_intersection(np.array([-1.0, 0.5, 0.5]), np.array([1.0, 0.0, 0.0]), lo, hi)
        assert (t0, t1) == (1.0, 2.0)
        t0, t1 = ray_box_intersection(np.array([-1.0, 2.0, 0.5]), np.array([1.0, 0.0, 0.0]), lo, hi)
        assert t1 < max(t0, 0.0)
