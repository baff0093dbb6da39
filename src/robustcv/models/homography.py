# Andy Zhao
"""
2D projective transformation (homography) utilities.

We estimate H such that:

    [x', y', w']^T  ~  H @ [x, y, 1]^T,     (x', y') = (x'/w', y'/w')

H has 9 entries but only 8 degrees of freedom (scale), so 4 point
correspondences with no 3 collinear points determine it.

Correspondences are stored as (N,4) rows [x, y, x', y'].

Both fits are a Hartley-normalized DLT in float64 (h = H flattened row-major):
    [x y 1  0 0 0  -x'x -x'y -x'] . h = 0
    [0 0 0  x y 1  -y'x -y'y -y'] . h = 0
with h the right singular vector of the smallest singular value.
cv2.perspectiveTransform maps points through the result.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from ..robust.types import FloatArray, Mat3x3, Points2D, as_homogeneous, is_valid_mat3x3
from .normalization import apply_similarity, similarity_transform

# ---------- Correspondence helpers ----------
def split_pairs(pairs: FloatArray) -> tuple[Points2D, Points2D]:
    """
    (N,4) rows [x, y, x', y'] -> source (N,2) and target (N,2) points.
    """
    pairs = np.asarray(pairs, dtype=np.float64)
    if pairs.ndim != 2 or pairs.shape[1] != 4:
        raise ValueError(f"Expected correspondences shape (N,4), got {pairs.shape}")
    return pairs[:, :2], pairs[:, 2:]


def make_pairs(pts0: Points2D, pts1: Points2D) -> FloatArray:
    """
    Stack source / target points into (N,4) correspondences.
    """
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    return np.hstack([pts0, pts1]).astype(np.float64)


# ---------- Degeneracy Check Helpers ----------
def _has_collinear_triplet(pts: Points2D, eps_area: float) -> bool:
    """
    True if any 3 of the 4 points are (nearly) collinear, which makes the
    4-point homography undetermined.
    """
    for i in range(4):
        tri = np.delete(pts, i, axis=0)
        u = tri[1] - tri[0]
        v = tri[2] - tri[0]
        if abs(u[0] * v[1] - u[1] * v[0]) < eps_area:
            return True
    return False


def _normalize_H(H: Mat3x3) -> Optional[Mat3x3]:
    """
    Scale H to unit Frobenius norm; reject invalid matrices.
    """
    if H is None or not is_valid_mat3x3(H):
        return None
    norm = float(np.linalg.norm(H))
    if norm == 0.0:
        return None
    return (H / norm).astype(np.float64)


# ---------- DLT ----------
def _dlt_matrix(pts0: Points2D, pts1: Points2D) -> FloatArray:
    n = pts0.shape[0]
    ph = as_homogeneous(pts0)
    u = pts1[:, 0:1]
    v = pts1[:, 1:2]
    zeros = np.zeros_like(ph)

    A = np.empty((2 * n, 9), dtype=np.float64)
    A[0::2] = np.hstack([ph, zeros, -u * ph])
    A[1::2] = np.hstack([zeros, ph, -v * ph])
    return A


def _solve_dlt(pts0: Points2D, pts1: Points2D, rank_tol: float) -> Optional[Mat3x3]:
    T0 = similarity_transform(pts0)
    T1 = similarity_transform(pts1)
    A = _dlt_matrix(apply_similarity(T0, pts0), apply_similarity(T1, pts1))

    try:
        _, s, vt = np.linalg.svd(A)
    except np.linalg.LinAlgError:
        return None

    # 8 independent constraints needed
    if s[0] == 0.0 or s[7] / s[0] < rank_tol:
        return None

    Hn = vt[-1].reshape(3, 3)

    # Undo normalization: H = T1^-1 Hn T0
    try:
        H = np.linalg.inv(T1) @ Hn @ T0
    except np.linalg.LinAlgError:
        return None
    return _normalize_H(H)


# ---------- Homography Fitting ----------
def fit_homography_minimal(
    pairs: FloatArray, eps_area: float = 1e-6, rank_tol: float = 1e-10
) -> Optional[Mat3x3]:
    """
    Fit a homography from exactly 4 correspondences.

    Returns:
      3x3 homography (unit Frobenius norm), or None if degenerate.
    """
    pairs = np.asarray(pairs, dtype=np.float64)
    if pairs.shape != (4, 4):
        raise ValueError(f"fit_homography_minimal expects (4,4) input, got {pairs.shape}")

    pts0, pts1 = split_pairs(pairs)
    if _has_collinear_triplet(pts0, eps_area) or _has_collinear_triplet(pts1, eps_area):
        return None
    return _solve_dlt(pts0, pts1, rank_tol)


def fit_homography_least_squares(pairs: FloatArray, rank_tol: float = 1e-10) -> Optional[Mat3x3]:
    """
    Fit a homography from N >= 4 correspondences (algebraic least squares
    over all of them, no internal outlier rejection).
    """
    pts0, pts1 = split_pairs(pairs)
    if pts0.shape[0] < 4:
        return None
    return _solve_dlt(pts0, pts1, rank_tol)


# ---------- Apply transform + residuals ----------
def apply_H(H: Mat3x3, pts: Points2D) -> Points2D:
    """
    Apply a 3x3 homography to (N,2) points, dividing by w.
    Points mapped to (numerically) infinity come back as inf.
    """
    H = np.asarray(H, dtype=np.float64)
    if H.shape != (3, 3):
        raise ValueError(f"Expected H shape (3,3), got {H.shape}")
    pts = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    if pts.shape[0] == 0:
        return np.empty((0, 2), dtype=np.float64)

    out = cv2.perspectiveTransform(pts.reshape(-1, 1, 2), H).reshape(-1, 2)

    # OpenCV writes 0 instead of dividing by a vanishing w
    w = as_homogeneous(pts) @ H[2]
    out[np.abs(w) <= np.finfo(np.float32).eps] = np.inf
    return out.astype(np.float64)


def residuals_transfer(H: Mat3x3, pairs: FloatArray) -> FloatArray:
    """
    Per-correspondence transfer error in pixels:

        e_i = || apply_H(H, pts0[i]) - pts1[i] ||_2

    Returns shape (N,)
    """
    pts0, pts1 = split_pairs(pairs)
    diff = apply_H(H, pts0) - pts1
    return np.linalg.norm(diff, axis=1).astype(np.float64)


def homography_normal_matrix(H: Mat3x3, pairs: FloatArray) -> FloatArray:
    """
    J^T J of the transfer residuals w.r.t. the 9 entries of H, shape (9, 9).

    For each point, with u = h1.x, v = h2.x, w = h3.x:
        d(u/w)/dh1 = x / w,  d(u/w)/dh3 = -u x / w^2  (same for v)
    """
    pts0, _ = split_pairs(pairs)
    ph = as_homogeneous(pts0)
    proj = ph @ H.T
    u, v, w = proj[:, 0:1], proj[:, 1:2], proj[:, 2:3]
    zeros = np.zeros_like(ph)

    jx = np.hstack([ph / w, zeros, -u * ph / (w * w)])
    jy = np.hstack([zeros, ph / w, -v * ph / (w * w)])
    J = np.vstack([jx, jy])
    return J.T @ J
