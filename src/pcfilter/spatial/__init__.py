"""
Spatial indexing - uniform voxel grid and ray traversal.

Example:
    >>> from pcfilter.spatial import VoxelGridIndex, traverse
    >>>
    >>> index = VoxelGridIndex.build(cloud, leaf_size=0.05)
    >>> hit = traverse(index, origin=(0, 0, -1), direction=(0, 0, 1)).first_occupied()
"""

from pcfilter.spatial.traversal import (
    RayTraversal,
    first_occupied,
    ray_box_intersection,
    traverse,
    unit_direction,
)
from pcfilter.spatial.voxel_grid import VoxelGridIndex, validate_leaf_size

__all__ = [
    "VoxelGridIndex",
    "validate_leaf_size",
    "RayTraversal",
    "traverse",
    "first_occupied",
    "ray_box_intersection",
    "unit_direction",
]
