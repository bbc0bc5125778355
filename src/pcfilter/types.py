"""Type aliases for pcfilter.

Provides unified type hints for array-like parameters across all modules.
"""

from collections.abc import Sequence
from typing import Literal

import numpy as np

# 3D vector type (position, viewpoint, corner, etc.)
Vector3 = tuple[float, float, float] | Sequence[float] | np.ndarray

# General array-like type
ArrayLike = Sequence[float] | np.ndarray

# Integer voxel key (i, j, k)
VoxelKey = tuple[int, int, int]

InsufficientPolicy = Literal["skip", "raise"]
