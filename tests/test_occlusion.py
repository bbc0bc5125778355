"""Tests for voxel occlusion estimation."""

import numpy as np
import pytest

from pcfilter import (
    CellState,
    InvalidParameterError,
    OcclusionValues,
    PointCloud,
    VoxelGridOcclusionEstimation,
)


@pytest.fixture
def row_cloud():
    """Two occupied cells on the x axis with an empty cell between them."""
    return PointCloud([[0.5, 0.5, 0.5], [2.5, 0.5, 0.5], [2.6, 0.6, 0.6]])


@pytest.fixture
def wall_cloud():
    """A 5x5 wall at x = 0 and a small cluster hidden behind it at x = 3."""
    ys, zs = np.meshgrid(np.arange(5) + 0.5, np.arange(5) + 0.5, indexing="ij")
    wall = np.column_stack([np.full(25, 0.5), ys.ravel(), zs.ravel()])
    hidden = np.array([[3.5, 2.5, 2.5], [3.6, 2.4, 2.6]])
    return PointCloud(np.vstack([wall, hidden]))


class TestCellStates:
    def test_cell_behind_occupied_cell_is_occluded(self, row_cloud):
        f = VoxelGridOcclusionEstimation(leaf_size=1.0, viewpoint=(-5.0, 1.0, 1.0))
        est = f.estimate(row_cloud)
        assert est.cell_state((0, 0, 0)) == CellState.VISIBLE
        assert est.cell_state((2, 0, 0)) == CellState.OCCLUDED
        assert est.cell_state((1, 0, 0)) == CellState.EMPTY
        assert est.occluder((2, 0, 0)) == (0, 0, 0)
        assert est.occluder((0, 0, 0)) is None
        np.testing.assert_array_equal(est.occluded_cells(), [[2, 0, 0]])

    def test_viewpoint_on_other_side(self, row_cloud):
        est = VoxelGridOcclusionEstimation(1.0, viewpoint=(10.0, 1.0, 1.0)).estimate(row_cloud)
        assert est.cell_state((0, 0, 0)) == CellState.OCCLUDED
        assert est.cell_state((2, 0, 0)) == CellState.VISIBLE

    def test_viewpoint_inside_occupied_cell(self, row_cloud):
        est = VoxelGridOcclusionEstimation(1.0, viewpoint=(1.0, 1.0, 1.0)).estimate(row_cloud)
        assert est.cell_state((0, 0, 0)) == CellState.VISIBLE
        assert est.cell_state((2, 0, 0)) == CellState.VISIBLE

    def test_key_outside_grid(self, row_cloud):
        est = VoxelGridOcclusionEstimation(1.0, viewpoint=(-5.0, 1.0, 1.0)).estimate(row_cloud)
        with pytest.raises(InvalidParameterError):
            est.cell_state((7, 0, 0))

    def test_point_states(self, row_cloud):
        est = VoxelGridOcclusionEstimation(1.0, viewpoint=(-5.0, 1.0, 1.0)).estimate(row_cloud)
        np.testing.assert_array_equal(
            est.point_states(), [CellState.VISIBLE, CellState.OCCLUDED, CellState.OCCLUDED]
        )


class TestFilter:
    def test_keep_visible_and_occluded(self, wall_cloud):
        viewpoint = (-10.0, 3.0, 3.0)
        visible = VoxelGridOcclusionEstimation(1.0, viewpoint).filter_indices(wall_cloud)
        hidden = VoxelGridOcclusionEstimation(1.0, viewpoint, keep="occluded").filter_indices(
            wall_cloud
        )
        np.testing.assert_array_equal(visible, np.arange(25))
        np.testing.assert_array_equal(hidden, [25, 26])

    def test_nothing_hidden_from_front(self, wall_cloud):
        result = VoxelGridOcclusionEstimation(1.0, viewpoint=(20.0, 3.0, 3.0)).apply(wall_cloud)
        assert 25 in result.indices and 26 in result.indices
        assert len(result.indices) + len(result.removed_indices) == len(wall_cloud)

    def test_occupancy_phase(self, row_cloud):
        f = VoxelGridOcclusionEstimation(1.0)
        index = f.build_index(row_cloud)
        occupancy = f.occupancy(index)
        np.testing.assert_array_equal(
            occupancy, [CellState.OCCUPIED, CellState.EMPTY, CellState.OCCUPIED]
        )

    def test_occlusion_grid_classifies_every_cell(self, row_cloud):
        f = VoxelGridOcclusionEstimation(1.0, viewpoint=(-5.0, 1.0, 1.0))
        index, grid = f.occlusion_grid(row_cloud)
        assert grid.shape == (index.num_grid_cells,)
        np.testing.assert_array_equal(
            grid, [CellState.VISIBLE, CellState.OCCLUDED, CellState.OCCLUDED]
        )

    def test_non_finite_points_never_kept(self):
        cloud = PointCloud([[0.5, 0.5, 0.5], [np.nan, 0.0, 0.0]])
        f = VoxelGridOcclusionEstimation(1.0, viewpoint=(-5.0, 1.0, 1.0))
        np.testing.assert_array_equal(f.filter_indices(cloud), [0])

    def test_empty_cloud(self):
        f = VoxelGridOcclusionEstimation(1.0)
        assert f.filter_indices(PointCloud(np.empty((0, 3)))).size == 0

    @pytest.mark.parametrize("leaf", [0.0, -0.5])
    def test_bad_leaf(self, leaf):
        with pytest.raises(InvalidParameterError):
            VoxelGridOcclusionEstimation(leaf)

    def test_bad_keep(self):
        with pytest.raises(InvalidParameterError):
            VoxelGridOcclusionEstimation(1.0, keep="both")

    def test_from_values(self, row_cloud):
        f = VoxelGridOcclusionEstimation.from_values(
            OcclusionValues(leaf_size=1.0, viewpoint=(-5, 1, 1), keep="occluded")
        )
        np.testing.assert_array_equal(f.filter_indices(row_cloud), [1, 2])
