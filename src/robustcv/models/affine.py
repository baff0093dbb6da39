# Andy Zhao
"""
2D affine transformation utilities (3x3 homogeneous form).

We estimate an affine transform T such that:

    [x', y', 1]^T  ≈  T @ [x, y, 1]^T

where:

    T = [[a, b, tx],
         [c, d, ty],
         [0, 0,  1]]

Unknowns are 6 parameters: a, b, tx, c, d, ty.
Correspondences are (N,4) rows [x, y, x', y'], same layout as homography.py.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..robust.types import FloatArray, Mat3x3, Points2D, as_homogeneous, is_valid_mat3x3
from .homography import split_pairs


# ---------- Degeneracy Check Helpers ----------
def _triangle_area2(pts: Points2D) -> float:
    """
    Return 2x the triangle area formed by the 3 points (shape (3,2)):

        area2 = |(p2 - p1) x (p3 - p1)|

    If area2 is near 0, the points are collinear (degenerate for affine minimal fit).
    """
    u = pts[1] - pts[0]
    v = pts[2] - pts[0]
    return float(abs(u[0] * v[1] - u[1] * v[0]))


# ---------- Linear system ----------
def _affine_system(pts0: Points2D, pts1: Points2D) -> tuple[FloatArray, FloatArray]:
    """
    Build A theta = b for theta = [a, b, tx, c, d, ty].

    For each correspondence (x, y) -> (x', y'):
        x' = a*x + b*y + tx      row [x, y, 1, 0, 0, 0]
        y' = c*x + d*y + ty      row [0, 0, 0, x, y, 1]
    """
    n = pts0.shape[0]
    ph = as_homogeneous(pts0)

    A = np.zeros((2 * n, 6), dtype=np.float64)
    A[0::2, 0:3] = ph
    A[1::2, 3:6] = ph

    b_vec = np.empty((2 * n,), dtype=np.float64)
    b_vec[0::2] = pts1[:, 0]
    b_vec[1::2] = pts1[:, 1]
    return A, b_vec


def _theta_to_mat3x3(theta: np.ndarray) -> Mat3x3:
    T = np.eye(3, dtype=np.float64)
    T[0, :] = theta[0:3]
    T[1, :] = theta[3:6]
    return T


# ---------- Affine Fitting ----------
def fit_affine_minimal(pairs: FloatArray, eps_area: float = 1e-6) -> Optional[Mat3x3]:
    """
    Fit affine transform from exactly 3 correspondences.

    Returns:
      3x3 affine matrix, or None if degenerate / solve fails.
    """
    pairs = np.asarray(pairs, dtype=np.float64)
    if pairs.shape != (3, 4):
        raise ValueError(f"fit_affine_minimal expects (3,4) input, got {pairs.shape}")

    pts0, pts1 = split_pairs(pairs)

    # Collinear triplets leave the affine solve undetermined
    if _triangle_area2(pts0) < eps_area or _triangle_area2(pts1) < eps_area:
        return None

    A, b_vec = _affine_system(pts0, pts1)
    try:
        theta = np.linalg.solve(A, b_vec)
    except np.linalg.LinAlgError:
        return None

    T = _theta_to_mat3x3(theta)
    return T if is_valid_mat3x3(T) else None


def fit_affine_least_squares(pairs: FloatArray) -> Optional[Mat3x3]:
    """
    Fit affine transform from N >= 3 correspondences minimizing ||A theta - b||^2.
    """
    pts0, pts1 = split_pairs(pairs)
    if pts0.shape[0] < 3:
        return None

    A, b_vec = _affine_system(pts0, pts1)
    try:
        theta, _, rank, _ = np.linalg.lstsq(A, b_vec, rcond=None)
    except np.linalg.LinAlgError:
        return None

    # Rank < 6: collinear / repeated points do not constrain all 6 parameters
    if rank < 6:
        return None

    T = _theta_to_mat3x3(theta)
    return T if is_valid_mat3x3(T) else None


# ---------- Apply transform + residuals ----------
def apply_T(T: Mat3x3, pts: Points2D) -> Points2D:
    """
    Apply a 3x3 affine transform to (N,2) points, returning (N,2) points.
    """
    if T.shape != (3, 3):
        raise ValueError(f"Expected T shape (3,3), got {T.shape}")
    return (as_homogeneous(pts) @ T.T)[:, :2].astype(np.float64)


def residuals_L2(T: Mat3x3, pairs: FloatArray) -> FloatArray:
    """
    Per-correspondence L2 residuals in pixels:

        e_i = || apply_T(T, pts0[i]) - pts1[i] ||_2

    Returns shape (N,)
    """
    pts0, pts1 = split_pairs(pairs)
    return np.linalg.norm(apply_T(T, pts0) - pts1, axis=1).astype(np.float64)


def affine_normal_matrix(pairs: FloatArray) -> FloatArray:
    """
    A^T A of the linear least-squares system, shape (6, 6).
    """
    pts0, pts1 = split_pairs(pairs)
    A, _ = _affine_system(pts0, pts1)
    return A.T @ A
