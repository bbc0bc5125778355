"""Tests for local normal estimation."""

import numpy as np
import pytest

from pcfilter import (
    BruteForceSearch,
    ClosedFormEigenSolver,
    InsufficientNeighborsError,
    InvalidParameterError,
    NormalEstimation,
    PointCloud,
    estimate_normal,
)
from pcfilter.geometry import compute_centroid_and_covariance, orient_normal


@pytest.fixture
def plane_cloud():
    """Noise-free grid on the plane z = 0."""
    xs, ys = np.meshgrid(np.linspace(-1, 1, 11), np.linspace(-1, 1, 11))
    return PointCloud(np.column_stack([xs.ravel(), ys.ravel(), np.zeros(xs.size)]))


@pytest.fixture
def sphere_cloud():
    rng = np.random.default_rng(8)
    v = rng.normal(size=(400, 3))
    return PointCloud(v / np.linalg.norm(v, axis=1, keepdims=True))


class TestEstimateNormal:
    def test_plane_normal_faces_viewpoint(self, plane_cloud):
        nbrs = np.arange(len(plane_cloud))
        normal, curvature = estimate_normal(plane_cloud, 60, nbrs, viewpoint=(0, 0, 5))
        np.testing.assert_allclose(normal, [0, 0, 1], atol=1e-9)
        assert curvature == pytest.approx(0.0, abs=1e-12)

        normal, _ = estimate_normal(plane_cloud, 60, nbrs, viewpoint=(0, 0, -5))
        np.testing.assert_allclose(normal, [0, 0, -1], atol=1e-9)

    def test_closed_form_solver(self, plane_cloud):
        nbrs = np.arange(len(plane_cloud))
        normal, _ = estimate_normal(
            plane_cloud, 0, nbrs, viewpoint=(0, 0, 1), solver=ClosedFormEigenSolver()
        )
        np.testing.assert_allclose(normal, [0, 0, 1], atol=1e-9)

    def test_curvature_range(self):
        rng = np.random.default_rng(2)
        cloud = PointCloud(rng.normal(size=(50, 3)))
        _, curvature = estimate_normal(cloud, 0, np.arange(50))
        assert 0.0 < curvature <= 1.0 / 3.0 + 1e-12

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_insufficient_neighbors(self, plane_cloud, count):
        with pytest.raises(InsufficientNeighborsError) as exc:
            estimate_normal(plane_cloud, 4, np.arange(count))
        assert exc.value.count == count
        assert exc.value.index == 4

    def test_orientation_rule(self):
        n = orient_normal(np.array([0.0, 0.0, 1.0]), np.zeros(3), np.array([0.0, 0.0, -1.0]))
        np.testing.assert_array_equal(n, [0.0, 0.0, -1.0])

    def test_covariance(self):
        pts = np.array([[1.0, 0, 0], [-1.0, 0, 0]])
        centroid, cov = compute_centroid_and_covariance(pts)
        np.testing.assert_array_equal(centroid, [0, 0, 0])
        np.testing.assert_allclose(cov, np.diag([1.0, 0.0, 0.0]))


class TestNormalEstimation:
    def test_sphere_normals_radial(self, sphere_cloud):
        out = NormalEstimation(k=15, viewpoint=(0, 0, 0)).compute(sphere_cloud)
        # Facing the centre means pointing inwards
        cos = np.einsum("ij,ij->i", out.normals, -sphere_cloud.points)
        assert np.all(cos > 0.7)
        assert cos.mean() > 0.95
        assert np.all((out.curvature >= 0) & (out.curvature <= 1))

    def test_brute_force_matches_kdtree(self, sphere_cloud):
        a = NormalEstimation(k=10).compute(sphere_cloud)
        b = NormalEstimation(k=10, search_factory=BruteForceSearch).compute(sphere_cloud)
        np.testing.assert_allclose(a.normals, b.normals, atol=1e-9)

    def test_radius_neighbourhood(self, plane_cloud):
        out = NormalEstimation(k=None, radius=0.5, viewpoint=(0, 0, 1)).compute(plane_cloud)
        np.testing.assert_allclose(out.normals, np.tile([0, 0, 1.0], (len(plane_cloud), 1)), atol=1e-9)

    def test_skip_policy(self):
        cloud = PointCloud([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0], [50, 50, 50]])
        out = NormalEstimation(k=None, radius=2.0, viewpoint=(0, 0, 1)).compute(cloud)
        assert np.isnan(out.normals[4]).all()
        assert np.isnan(out.curvature[4])
        np.testing.assert_allclose(out.normals[:4], np.tile([0, 0, 1.0], (4, 1)), atol=1e-9)

    def test_raise_policy(self):
        cloud = PointCloud([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0], [50, 50, 50]])
        est = NormalEstimation(k=None, radius=2.0, on_insufficient="raise")
        with pytest.raises(InsufficientNeighborsError) as exc:
            est.compute(cloud)
        assert exc.value.index == 4

    def test_non_finite_point_skipped(self, plane_cloud):
        pts = plane_cloud.points.copy()
        pts[7] = np.nan
        out = NormalEstimation(k=8, viewpoint=(0, 0, 1)).compute(PointCloud(pts))
        assert np.isnan(out.normals[7]).all()
        assert np.isfinite(out.normals[8]).all()

    def test_input_unchanged(self, sphere_cloud):
        out = NormalEstimation(k=8).compute(sphere_cloud)
        assert not sphere_cloud.has_normals
        assert out.has_normals

    @pytest.mark.parametrize(
        "kwargs",
        [{"k": 0}, {"k": None, "radius": None}, {"k": 5, "radius": 1.0}, {"on_insufficient": "ignore"}],
    )
    def test_bad_parameters(self, kwargs):
        with pytest.raises(InvalidParameterError):
            NormalEstimation(**kwargs)
