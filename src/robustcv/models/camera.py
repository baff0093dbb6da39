# Andy Zhao
"""
Pinhole camera model utilities (3x4 projection matrix).

A pinhole camera P maps homogeneous 3D points to image points:

    [u, v, 1]^T  ~  P @ [X, Y, Z, 1]^T

P has 12 entries and 11 degrees of freedom, so 6 point correspondences
(5.5 strictly) determine it with the Direct Linear Transform (DLT).

Correspondences are (N,5) rows [X, Y, Z, u, v].

DLT rows for each correspondence (p = P flattened row-major):
    [X Y Z 1  0 0 0 0  -uX -uY -uZ -u] . p = 0
    [0 0 0 0  X Y Z 1  -vX -vY -vZ -v] . p = 0

Both point sets are normalized (Hartley) before solving, otherwise the
design matrix is badly conditioned for pixel / metric coordinates.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..robust.types import FloatArray
from .normalization import apply_similarity, similarity_transform


def split_camera_pairs(pairs: FloatArray) -> tuple[FloatArray, FloatArray]:
    """
    (N,5) rows [X, Y, Z, u, v] -> world (N,3) and image (N,2) points.
    """
    pairs = np.asarray(pairs, dtype=np.float64)
    if pairs.ndim != 2 or pairs.shape[1] != 5:
        raise ValueError(f"Expected correspondences shape (N,5), got {pairs.shape}")
    return pairs[:, :3], pairs[:, 3:]


def project(P: FloatArray, world: FloatArray) -> FloatArray:
    """
    Project (N,3) world points with a 3x4 camera, returning (N,2) pixels.
    Points on the camera plane (w = 0) come back as inf.
    """
    if P.shape != (3, 4):
        raise ValueError(f"Expected P shape (3,4), got {P.shape}")
    wh = np.hstack([world, np.ones((world.shape[0], 1))])
    proj = wh @ P.T
    w = proj[:, 2:3]
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(np.abs(w) > 0.0, proj[:, :2] / w, np.inf)
    return out.astype(np.float64)


def _dlt_matrix(world: FloatArray, image: FloatArray) -> FloatArray:
    n = world.shape[0]
    wh = np.hstack([world, np.ones((n, 1))])
    u = image[:, 0:1]
    v = image[:, 1:2]
    zeros = np.zeros_like(wh)

    A = np.empty((2 * n, 12), dtype=np.float64)
    A[0::2] = np.hstack([wh, zeros, -u * wh])
    A[1::2] = np.hstack([zeros, wh, -v * wh])
    return A


def _solve_dlt(world: FloatArray, image: FloatArray, rank_tol: Optional[float]) -> Optional[FloatArray]:
    Tw = similarity_transform(world)
    Ti = similarity_transform(image)
    A = _dlt_matrix(apply_similarity(Tw, world), apply_similarity(Ti, image))

    try:
        _, s, vt = np.linalg.svd(A)
    except np.linalg.LinAlgError:
        return None

    # 11 constraints are needed; coplanar / too few distinct points lose rank
    if rank_tol is not None and (s[0] == 0.0 or s[10] / s[0] < rank_tol):
        return None

    Pn = vt[-1].reshape(3, 4)

    # Undo normalization: P = Ti^-1 Pn Tw
    try:
        P = np.linalg.inv(Ti) @ Pn @ Tw
    except np.linalg.LinAlgError:
        return None
    return normalize_camera(P)


def normalize_camera(P: FloatArray) -> Optional[FloatArray]:
    """
    Unit Frobenius norm, sign fixed so that P[2,3] >= 0 when non-zero.
    """
    norm = float(np.linalg.norm(P))
    if norm == 0.0 or not np.isfinite(norm):
        return None
    P = P / norm
    if P[2, 3] < 0.0:
        P = -P
    return P


# ---------- Camera Fitting ----------
def fit_camera_minimal(pairs: FloatArray, rank_tol: float = 1e-8) -> Optional[FloatArray]:
    """
    DLT from exactly 6 correspondences. None if degenerate.
    """
    world, image = split_camera_pairs(pairs)
    if world.shape[0] != 6:
        raise ValueError(f"fit_camera_minimal expects (6,5) input, got {np.shape(pairs)}")
    return _solve_dlt(world, image, rank_tol)


def fit_camera_least_squares(pairs: FloatArray, rank_tol: float = 1e-8) -> Optional[FloatArray]:
    """
    DLT from N >= 6 correspondences (algebraic least squares).
    """
    world, image = split_camera_pairs(pairs)
    if world.shape[0] < 6:
        return None
    return _solve_dlt(world, image, rank_tol)


# ---------- Residuals ----------
def residuals_reprojection(P: FloatArray, pairs: FloatArray) -> FloatArray:
    """
    Reprojection error in pixels, shape (N,).
    """
    world, image = split_camera_pairs(pairs)
    return np.linalg.norm(project(P, world) - image, axis=1).astype(np.float64)


def camera_normal_matrix(P: FloatArray, pairs: FloatArray) -> FloatArray:
    """
    J^T J of the reprojection residuals w.r.t. the 12 entries of P, shape (12, 12).
    """
    world, _ = split_camera_pairs(pairs)
    wh = np.hstack([world, np.ones((world.shape[0], 1))])
    proj = wh @ P.T
    u, v, w = proj[:, 0:1], proj[:, 1:2], proj[:, 2:3]
    zeros = np.zeros_like(wh)

    ju = np.hstack([wh / w, zeros, -u * wh / (w * w)])
    jv = np.hstack([zeros, wh / w, -v * wh / (w * w)])
    J = np.vstack([ju, jv])
    return J.T @ J
