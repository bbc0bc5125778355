"""Tests for hull construction and point containment."""

import numpy as np
import pytest

from pcfilter import DegenerateGeometryError, Hull, InvalidParameterError, contains, contains_points
from pcfilter.shared import axis_angle_to_rotation_matrix


def l_prism() -> Hull:
    """L-shaped prism: the unit square (1..2, 1..2) notch is missing from a 2x2 footprint."""
    outline = [(0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2)]
    vertices = [(x, y, 0.0) for x, y in outline] + [(x, y, 1.0) for x, y in outline]
    polygons = [tuple(range(6)), tuple(range(6, 12))]
    for i in range(6):
        j = (i + 1) % 6
        polygons.append((i, j, j + 6, i + 6))
    return Hull(vertices, polygons)


@pytest.fixture
def cube():
    return Hull.box((-1, -1, -1), (1, 1, 1))


class TestConstruction:
    def test_box_layout(self, cube):
        assert len(cube) == 6
        assert cube.vertices.shape == (8, 3)
        np.testing.assert_allclose(np.abs(cube.normals).sum(axis=1), 1.0)

    def test_empty_hull(self):
        with pytest.raises(InvalidParameterError):
            Hull(np.zeros((3, 3)), [])
        with pytest.raises(InvalidParameterError):
            Hull(np.empty((0, 3)), [(0, 1, 2)])

    def test_missing_vertex(self):
        with pytest.raises(InvalidParameterError):
            Hull([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [(0, 1, 5)])

    def test_too_few_vertices(self):
        with pytest.raises(DegenerateGeometryError):
            Hull([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [(0, 1)])

    def test_zero_area_polygon(self):
        with pytest.raises(DegenerateGeometryError):
            Hull([(0, 0, 0), (1, 0, 0), (2, 0, 0)], [(0, 1, 2)])

    def test_degenerate_box(self):
        with pytest.raises(DegenerateGeometryError):
            Hull.box((0, 0, 0), (1, 0, 1))

    def test_read_only(self, cube):
        with pytest.raises(ValueError):
            cube.vertices[0, 0] = 3.0


class TestContainment:
    def test_box_inside_outside(self, cube):
        assert contains(cube, (0.0, 0.0, 0.0))
        assert contains(cube, (0.9, -0.9, 0.5))
        assert not contains(cube, (1.1, 0.0, 0.0))
        assert not contains(cube, (0.0, 0.0, -3.0))

    def test_surface_counts_as_inside(self, cube):
        assert contains(cube, (1.0, 0.0, 0.0))
        assert contains(cube, (0.3, -1.0, 0.2))
        assert contains(cube, (1.0, 1.0, 1.0))

    def test_non_finite_is_outside(self, cube):
        mask = contains_points(cube, [[np.nan, 0, 0], [0, 0, 0], [np.inf, 0, 0]])
        np.testing.assert_array_equal(mask, [False, True, False])

    def test_non_convex(self):
        hull = l_prism()
        assert contains(hull, (0.5, 0.5, 0.5))
        assert contains(hull, (1.5, 0.5, 0.5))
        assert contains(hull, (0.5, 1.5, 0.5))
        assert not contains(hull, (1.5, 1.5, 0.5))
        assert not contains(hull, (0.5, 0.5, 1.5))

    def test_matches_box_test(self, cube):
        rng = np.random.default_rng(3)
        pts = rng.uniform(-1.5, 1.5, size=(2000, 3))
        expected = np.all(np.abs(pts) <= 1.0, axis=1)
        np.testing.assert_array_equal(contains_points(cube, pts), expected)

    def test_ray_through_vertex_line(self, cube):
        # Points lined up with edges and vertices along many axis directions
        pts = np.array([[0.0, 0.0, 0.0], [0.5, 0.5, 0.5], [-0.5, 0.5, -0.5], [1.5, 1.0, 1.0]])
        np.testing.assert_array_equal(contains_points(cube, pts), [True, True, True, False])

    def test_rotated_box(self):
        hull = Hull.box((-1, -1, -1), (1, 1, 1), rotation=(0.0, 0.0, np.pi / 4))
        assert contains(hull, (1.3, 0.0, 0.0))
        assert not contains(hull, (1.0, 1.0, 0.0))

    def test_empty_query(self, cube):
        assert contains_points(cube, np.empty((0, 3))).shape == (0,)


class TestRotationInvariance:
    @pytest.mark.parametrize("axis_angle", [(0.3, -0.7, 1.1), (np.pi / 2, 0.0, 0.0), (1.0, 2.0, 3.0)])
    def test_rotating_hull_and_points_together(self, axis_angle):
        hull = l_prism()
        R = axis_angle_to_rotation_matrix(axis_angle)
        t = np.array([0.5, -2.0, 3.0])
        rng = np.random.default_rng(11)
        pts = rng.uniform(-0.5, 2.5, size=(1500, 3))

        before = contains_points(hull, pts)
        after = contains_points(hull.transform(R, t), pts @ R.T + t)
        np.testing.assert_array_equal(before, after)
        assert before.any() and not before.all()


class TestScale:
    @pytest.mark.parametrize("size", [2e-5, 1e-4, 1e3])
    def test_scaled_box_matches_unit_box(self, size):
        rng = np.random.default_rng(12)
        pts = rng.uniform(-0.5, 1.5, size=(500, 3))
        unit = contains_points(Hull.box((0, 0, 0), (1, 1, 1)), pts)
        scaled = contains_points(Hull.box((0, 0, 0), (size,) * 3), pts * size)
        np.testing.assert_array_equal(scaled, unit)

    def test_long_corridor(self):
        hull = Hull.box((0, 0, 0), (1e4, 0.3, 0.3))
        assert len(hull) == 6
        assert contains(hull, (5000.0, 0.15, 0.15))
        assert contains(hull, (9999.9, 0.01, 0.29))
        assert not contains(hull, (5000.0, 0.35, 0.15))
        assert not contains(hull, (10000.1, 0.15, 0.15))

    def test_coincident_vertices(self):
        with pytest.raises(DegenerateGeometryError):
            Hull([(1, 1, 1)] * 3, [(0, 1, 2)])


class TestConvexPoints:
    def test_cube_from_points(self):
        rng = np.random.default_rng(5)
        corners = np.array([[x, y, z] for x in (-1, 1) for y in (-1, 1) for z in (-1, 1)], float)
        interior = rng.uniform(-0.9, 0.9, size=(50, 3))
        hull = Hull.from_convex_points(np.vstack([corners, interior]))
        assert hull.vertices.shape[0] == 8

        pts = rng.uniform(-1.5, 1.5, size=(1000, 3))
        expected = np.all(np.abs(pts) <= 1.0, axis=1)
        np.testing.assert_array_equal(contains_points(hull, pts), expected)

    def test_flat_points(self):
        flat = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], float)
        with pytest.raises(DegenerateGeometryError):
            Hull.from_convex_points(flat)
