# Andy Zhao
"""
Conic model utilities (3x3 symmetric form).

A conic is the locus of points x = [x, y, 1]^T such that:

    x^T C x = 0

where:

    C = [[a,   b/2, d/2],
         [b/2, c,   e/2],
         [d/2, e/2, f  ]]

i.e.  a x^2 + b xy + c y^2 + d x + e y + f = 0

Unknowns are 6 homogeneous parameters (5 degrees of freedom), so 5 points in
general position determine a conic.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..robust.types import FloatArray, Mat3x3, Points2D, as_homogeneous


# ---------- Conversions ----------
def conic_matrix(params: np.ndarray) -> Mat3x3:
    """
    Convert parameter vector [a, b, c, d, e, f] into the symmetric 3x3 matrix C.
    """
    a, b, c, d, e, f = map(float, np.asarray(params, dtype=np.float64).tolist())
    C = np.array(
        [
            [a, b / 2.0, d / 2.0],
            [b / 2.0, c, e / 2.0],
            [d / 2.0, e / 2.0, f],
        ],
        dtype=np.float64,
    )
    return C


def conic_params(C: Mat3x3) -> FloatArray:
    """
    Inverse of conic_matrix: 3x3 symmetric matrix -> [a, b, c, d, e, f].
    """
    return np.array(
        [C[0, 0], 2.0 * C[0, 1], C[1, 1], 2.0 * C[0, 2], 2.0 * C[1, 2], C[2, 2]],
        dtype=np.float64,
    )


def normalize_conic(C: Mat3x3) -> Mat3x3:
    """
    Scale C to unit Frobenius norm. Conics are homogeneous, the scale is arbitrary.
    """
    norm = float(np.linalg.norm(C))
    if norm == 0.0 or not np.isfinite(norm):
        return C
    return C / norm


def conic_from_circle(center: tuple[float, float], radius: float) -> Mat3x3:
    """
    Circle (x - cx)^2 + (y - cy)^2 = r^2 as a normalized conic matrix.
    """
    cx, cy = float(center[0]), float(center[1])
    r = float(radius)
    params = np.array([1.0, 0.0, 1.0, -2.0 * cx, -2.0 * cy, cx * cx + cy * cy - r * r])
    return normalize_conic(conic_matrix(params))


# ---------- Design matrix ----------
def _design_matrix(pts: Points2D) -> FloatArray:
    """
    One row per point so that row . [a, b, c, d, e, f] = x^T C x.

    Points are normalized to unit-norm homogeneous coordinates first, the same
    normalization the residual uses, so rows are well scaled.
    """
    ph = as_homogeneous(pts)
    ph = ph / np.linalg.norm(ph, axis=1, keepdims=True)
    x, y, w = ph[:, 0], ph[:, 1], ph[:, 2]
    return np.column_stack([x * x, x * y, y * y, x * w, y * w, w * w])


# ---------- Conic Fitting ----------
def fit_conic_minimal(pts: Points2D, rank_tol: float = 1e-10) -> Optional[Mat3x3]:
    """
    Fit a conic from exactly 5 points.

    The 5x6 design matrix A has a one-dimensional null space for points in
    general position; its basis vector (last right singular vector) is the conic.

    Returns:
      normalized 3x3 conic matrix, or None if degenerate (e.g. 4 collinear points
      -> the null space is larger than one dimension).
    """
    if pts.shape != (5, 2):
        raise ValueError(f"fit_conic_minimal expects (5,2) input, got {pts.shape}")

    A = _design_matrix(pts)
    try:
        _, s, vt = np.linalg.svd(A)
    except np.linalg.LinAlgError:
        return None

    # Degeneracy check: the 5th singular value must be clearly non-zero
    if s[0] == 0.0 or s[4] / s[0] < rank_tol:
        return None

    C = normalize_conic(conic_matrix(vt[-1]))
    if not np.isfinite(C).all():
        return None
    return C


def fit_conic_least_squares(pts: Points2D) -> Optional[Mat3x3]:
    """
    Fit a conic from N >= 5 points minimizing the algebraic error ||A p||
    subject to ||p|| = 1 (smallest right singular vector).

    Used after consensus picks inliers.
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts.shape}")
    if pts.shape[0] < 5:
        return None

    A = _design_matrix(pts)
    try:
        _, _, vt = np.linalg.svd(A, full_matrices=False)
    except np.linalg.LinAlgError:
        return None

    C = normalize_conic(conic_matrix(vt[-1]))
    if not np.isfinite(C).all():
        return None
    return C


# ---------- Residuals ----------
def residuals_locus(C: Mat3x3, pts: Points2D) -> FloatArray:
    """
    Per-point locus test |x^T C x| with C of unit Frobenius norm and x the
    unit-norm homogeneous point. 0 means the point lies on the conic.

    Returns shape (N,)
    """
    if C.shape != (3, 3):
        raise ValueError(f"Expected C shape (3,3), got {C.shape}")
    Cn = normalize_conic(C)
    ph = as_homogeneous(pts)
    ph = ph / np.linalg.norm(ph, axis=1, keepdims=True)
    return np.abs(np.einsum("ni,ij,nj->n", ph, Cn, ph))


def conic_normal_matrix(pts: Points2D) -> FloatArray:
    """
    Normal-equations matrix A^T A of the algebraic fit, shape (6, 6).
    """
    A = _design_matrix(pts)
    return A.T @ A
