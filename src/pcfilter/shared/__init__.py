"""Shared utilities for pcfilter."""

from pcfilter.shared.rotation import axis_angle_to_rotation_matrix

__all__ = ["axis_angle_to_rotation_matrix"]
