"""Symmetric 3x3 eigen-solvers for normal estimation.

Both solvers follow the :class:`pcfilter.protocols.EigenSolver` contract:
``eigh(matrices)`` takes a [3, 3] or [..., 3, 3] symmetric array and
returns ascending eigenvalues [..., 3] and column eigenvectors [..., 3, 3].

:class:`NumpyEigenSolver` defers to LAPACK. :class:`ClosedFormEigenSolver`
uses the trigonometric solution of the characteristic cubic and builds
eigenvectors from cross products of rows of ``A - lambda * I``; it needs
no LAPACK and gives reproducible results for tests.
"""

from __future__ import annotations

import math

import numpy as np

# Relative gap below which two eigenvalues are treated as equal
_DEGENERATE_GAP = 1e-7


class NumpyEigenSolver:
    """Eigen-decomposition via ``numpy.linalg.eigh``."""

    def eigh(self, matrices: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return np.linalg.eigh(np.asarray(matrices, dtype=np.float64))

    def __repr__(self) -> str:
        return "NumpyEigenSolver()"


class ClosedFormEigenSolver:
    """Analytic eigen-decomposition of symmetric 3x3 matrices."""

    def eigh(self, matrices: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        A = np.asarray(matrices, dtype=np.float64)
        if A.shape[-2:] != (3, 3):
            raise ValueError(f"expected [..., 3, 3] matrices, got {A.shape}")
        batch = A.shape[:-2]
        values = np.empty(batch + (3,))
        vectors = np.empty(batch + (3, 3))
        for idx in np.ndindex(*batch):
            values[idx], vectors[idx] = eigh3(A[idx])
        return values, vectors

    def __repr__(self) -> str:
        return "ClosedFormEigenSolver()"


def _row_cross_vector(M: np.ndarray) -> np.ndarray:
    """Unit vector spanning the null space of a rank-2 symmetric matrix."""
    candidates = (
        np.cross(M[0], M[1]),
        np.cross(M[0], M[2]),
        np.cross(M[1], M[2]),
    )
    best = max(candidates, key=lambda c: float(c @ c))
    return best / np.linalg.norm(best)


def _orthonormal_complement(v: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Two unit vectors completing ``v`` to an orthonormal basis."""
    helper = np.zeros(3)
    helper[int(np.argmin(np.abs(v)))] = 1.0
    a = helper - (helper @ v) * v
    a /= np.linalg.norm(a)
    b = np.cross(v, a)
    return a, b


def eigh3(A: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Eigen-decomposition of one symmetric 3x3 matrix.

    :param A: Symmetric matrix [3, 3]
    :returns: (eigenvalues [3] ascending, eigenvectors [3, 3] as columns)
    """
    A = np.asarray(A, dtype=np.float64)
    a00, a11, a22 = A[0, 0], A[1, 1], A[2, 2]
    a01, a02, a12 = A[0, 1], A[0, 2], A[1, 2]

    p1 = a01 * a01 + a02 * a02 + a12 * a12
    if p1 == 0.0:
        diag = np.array([a00, a11, a22])
        order = np.argsort(diag, kind="stable")
        return diag[order], np.eye(3)[:, order]

    q = (a00 + a11 + a22) / 3.0
    p2 = (a00 - q) ** 2 + (a11 - q) ** 2 + (a22 - q) ** 2 + 2.0 * p1
    p = math.sqrt(p2 / 6.0)
    B = (A - q * np.eye(3)) / p
    r = float(np.linalg.det(B)) / 2.0
    r = min(1.0, max(-1.0, r))
    phi = math.acos(r) / 3.0

    e_large = q + 2.0 * p * math.cos(phi)
    e_small = q + 2.0 * p * math.cos(phi + 2.0 * math.pi / 3.0)
    e_mid = 3.0 * q - e_large - e_small
    values = np.array([e_small, e_mid, e_large])

    gap = e_large - e_small
    eye = np.eye(3)
    if gap <= 1e-12 * max(1.0, abs(q)):
        return values, eye

    if e_mid - e_small < _DEGENERATE_GAP * gap:
        v_large = _row_cross_vector(A - e_large * eye)
        v_small, v_mid = _orthonormal_complement(v_large)
    elif e_large - e_mid < _DEGENERATE_GAP * gap:
        v_small = _row_cross_vector(A - e_small * eye)
        v_mid, v_large = _orthonormal_complement(v_small)
    else:
        v_small = _row_cross_vector(A - e_small * eye)
        v_large = _row_cross_vector(A - e_large * eye)
        v_large -= (v_large @ v_small) * v_small
        v_large /= np.linalg.norm(v_large)
        v_mid = np.cross(v_large, v_small)

    return values, np.column_stack([v_small, v_mid, v_large])
