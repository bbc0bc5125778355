"""
Example: point cloud filtering usage.

Demonstrates how to use the pcfilter filters for:
- Hull cropping
- Occlusion estimation from a viewpoint
- Normal estimation and refinement
- Normal-space and surface-normal sampling
- Voxel downsampling

Filters return a FilterResult holding the new cloud and the kept/removed indices.
"""

import logging

import numpy as np

from pcfilter import (
    CropHull,
    Hull,
    NormalEstimation,
    NormalRefinement,
    NormalSpaceSampling,
    PointCloud,
    RadiusOutlierRemoval,
    RandomSampling,
    SamplingSurfaceNormal,
    StatisticalOutlierRemoval,
    UniformSampling,
    VoxelGrid,
    VoxelGridOcclusionEstimation,
)
from pcfilter.config import occlusion_from_dict

# Configure logging to see filtering statistics
logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")


def generate_sample_cloud(n: int = 5000) -> PointCloud:
    """Noisy unit sphere plus a small wall between it and the viewpoint."""
    rng = np.random.default_rng(42)

    sphere = rng.standard_normal((n, 3))
    sphere /= np.linalg.norm(sphere, axis=1, keepdims=True)
    sphere += rng.normal(0.0, 0.01, sphere.shape)

    ys, zs = np.meshgrid(np.linspace(-0.5, 0.5, 20), np.linspace(-0.5, 0.5, 20))
    wall = np.column_stack([np.full(ys.size, 2.0), ys.ravel(), zs.ravel()])

    return PointCloud(np.vstack([sphere, wall]))


def example_1_crop_hull():
    """Example 1: Keep points inside a rotated box."""
    print("\n" + "=" * 70)
    print("EXAMPLE 1: CropHull")
    print("=" * 70)

    cloud = generate_sample_cloud()
    hull = Hull.box((-0.6, -0.6, -1.2), (0.6, 0.6, 1.2), rotation=(0.0, 0.0, np.pi / 4))

    inside = CropHull(hull).apply(cloud)
    outside = CropHull(hull, inside_is_kept=False).apply(cloud)

    print(f"Original: {len(cloud)} points")
    print(f"Inside hull: {len(inside)} points")
    print(f"Outside hull: {len(outside)} points")


def example_2_occlusion():
    """Example 2: Drop points hidden behind the wall."""
    print("\n" + "=" * 70)
    print("EXAMPLE 2: VoxelGridOcclusionEstimation")
    print("=" * 70)

    cloud = generate_sample_cloud()
    values = occlusion_from_dict({"leaf_size": 0.1, "viewpoint": [5.0, 0.0, 0.0]})
    estimator = VoxelGridOcclusionEstimation.from_values(values)

    estimate = estimator.estimate(cloud)
    print(f"Occupied cells: {estimate.index.num_cells}")
    print(f"Occluded cells: {len(estimate.occluded_cells())}")

    visible = estimator.apply(cloud)
    print(f"Visible points: {len(visible)} / {len(cloud)}")


def example_3_normals():
    """Example 3: Estimate and refine normals."""
    print("\n" + "=" * 70)
    print("EXAMPLE 3: NormalEstimation + NormalRefinement")
    print("=" * 70)

    cloud = generate_sample_cloud()
    with_normals = NormalEstimation(k=12, viewpoint=(0.0, 0.0, 0.0)).compute(cloud)
    refined = NormalRefinement(k=8, viewpoint=(0.0, 0.0, 0.0)).apply(with_normals)

    print(f"Mean curvature: {np.nanmean(with_normals.curvature):.4f}")
    turn = np.abs(np.einsum("ij,ij->i", with_normals.normals, refined.normals))
    print(f"Mean |cos| between raw and refined normals: {np.nanmean(turn):.4f}")


def example_4_sampling():
    """Example 4: Normal-driven subsampling."""
    print("\n" + "=" * 70)
    print("EXAMPLE 4: NormalSpaceSampling + SamplingSurfaceNormal")
    print("=" * 70)

    cloud = NormalEstimation(k=12).compute(generate_sample_cloud())

    nss = NormalSpaceSampling(sample=500, bins_per_axis=4, seed=1).apply(cloud)
    print(f"NormalSpaceSampling: {len(nss)} points")

    ssn = SamplingSurfaceNormal(leaf_size=0.25, samples_per_cell=2, selection="divergence").apply(cloud)
    print(f"SamplingSurfaceNormal: {len(ssn)} points")


def example_5_voxel_downsampling():
    """Example 5: Centroid and representative downsampling."""
    print("\n" + "=" * 70)
    print("EXAMPLE 5: VoxelGrid + UniformSampling")
    print("=" * 70)

    cloud = generate_sample_cloud()
    centroids = VoxelGrid(leaf_size=0.2).apply(cloud)
    representatives = UniformSampling(leaf_size=0.2).apply(cloud)

    print(f"VoxelGrid centroids: {len(centroids)} points")
    print(f"UniformSampling representatives: {len(representatives)} points")


def example_6_outliers():
    """Example 6: Outlier removal and random subsampling."""
    print("\n" + "=" * 70)
    print("EXAMPLE 6: Outlier removal + RandomSampling")
    print("=" * 70)

    cloud = generate_sample_cloud()
    noisy = PointCloud(np.vstack([cloud.points, np.random.default_rng(1).uniform(-5, 5, size=(50, 3))]))

    stat = StatisticalOutlierRemoval(mean_k=8, stddev_mul=1.0).apply(noisy)
    radius = RadiusOutlierRemoval(radius=0.1, min_neighbors=3).apply(noisy)
    sampled = RandomSampling(sample=500, seed=0).apply(stat.cloud)

    print(f"Statistical: removed {len(stat.removed_indices)} of {len(noisy)} points")
    print(f"Radius: removed {len(radius.removed_indices)} of {len(noisy)} points")
    print(f"RandomSampling: {len(sampled)} points")


def main():
    """Run all examples."""
    example_1_crop_hull()
    example_2_occlusion()
    example_3_normals()
    example_4_sampling()
    example_5_voxel_downsampling()
    example_6_outliers()

    print("\n" + "=" * 70)
    print("ALL EXAMPLES COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()
