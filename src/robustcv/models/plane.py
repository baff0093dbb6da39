# Andy Zhao
"""
Plane model utilities.

A plane is stored as params = [a, b, c, d] with unit normal n = (a, b, c):

    a*x + b*y + c*z + d = 0

3 non-collinear points determine it. The residual is the (unsigned)
point-to-plane distance, which only makes sense with |n| = 1.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..robust.types import FloatArray


def _check_points3d(pts: FloatArray) -> None:
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"Expected pts shape (N,3), got {pts.shape}")


def _from_normal(normal: np.ndarray, point: np.ndarray) -> Optional[FloatArray]:
    """
    Build [a, b, c, d] from a (not necessarily unit) normal and a point on the plane.
    """
    norm = float(np.linalg.norm(normal))
    if norm == 0.0 or not np.isfinite(norm):
        return None
    n = normal / norm

    # Fix the sign so that equal planes compare equal: first non-zero component > 0
    nz = np.flatnonzero(np.abs(n) > 1e-12)
    if nz.size and n[nz[0]] < 0.0:
        n = -n
    d = -float(n @ point)
    return np.array([n[0], n[1], n[2], d], dtype=np.float64)


def fit_plane_minimal(pts: FloatArray, eps_area: float = 1e-9) -> Optional[FloatArray]:
    """
    Fit a plane through exactly 3 points.

    normal = (p2 - p1) x (p3 - p1); a near-zero normal means collinear points.
    """
    _check_points3d(pts)
    if pts.shape[0] != 3:
        raise ValueError(f"fit_plane_minimal expects (3,3) input, got {pts.shape}")

    normal = np.cross(pts[1] - pts[0], pts[2] - pts[0])
    if float(np.linalg.norm(normal)) < eps_area:
        return None
    return _from_normal(normal, pts[0])


def fit_plane_least_squares(pts: FloatArray) -> Optional[FloatArray]:
    """
    Total least squares plane through N >= 3 points: the normal is the
    direction of least variance of the centred points (last right singular vector).
    """
    _check_points3d(pts)
    if pts.shape[0] < 3:
        return None

    centroid = pts.mean(axis=0)
    try:
        _, s, vt = np.linalg.svd(pts - centroid, full_matrices=False)
    except np.linalg.LinAlgError:
        return None

    # Rank < 2: all points on a line, the plane is not determined
    if s.shape[0] < 2 or s[1] <= 1e-12 * max(s[0], 1.0):
        return None
    return _from_normal(vt[-1], centroid)


def residuals_distance(plane: FloatArray, pts: FloatArray) -> FloatArray:
    """
    Unsigned point-to-plane distance, shape (N,).
    """
    _check_points3d(pts)
    plane = np.asarray(plane, dtype=np.float64)
    n = plane[:3]
    norm = float(np.linalg.norm(n))
    if norm == 0.0:
        return np.full(pts.shape[0], np.inf)
    return np.abs(pts @ n + plane[3]) / norm


def plane_normal_matrix(pts: FloatArray) -> FloatArray:
    """
    A^T A with rows [x, y, z, 1], shape (4, 4).
    """
    _check_points3d(pts)
    A = np.hstack([pts, np.ones((pts.shape[0], 1))])
    return A.T @ A
