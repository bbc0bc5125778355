"""Rotation helpers for rigid transforms of clouds and hulls."""

from __future__ import annotations

import numpy as np

from pcfilter.types import Vector3


def axis_angle_to_rotation_matrix(axis_angle: Vector3 | None) -> np.ndarray:
    """Convert axis-angle rotation to 3x3 rotation matrix.

    :param axis_angle: Rotation vector [3] where magnitude is angle in radians
    :return: Rotation matrix [3, 3] (identity for None or zero angle)
    """
    if axis_angle is None:
        return np.eye(3)

    axis_angle = np.asarray(axis_angle, dtype=np.float64).reshape(3)
    angle = np.linalg.norm(axis_angle)

    if angle < 1e-12:
        return np.eye(3)

    axis = axis_angle / angle

    # Rodrigues' rotation formula
    K = np.array([
        [0, -axis[2], axis[1]],
        [axis[2], 0, -axis[0]],
        [-axis[1], axis[0], 0]
    ])

    # R = I + sin(angle) * K + (1 - cos(angle)) * K^2
    return np.eye(3) + np.sin(angle) * K + (1 - np.cos(angle)) * (K @ K)
