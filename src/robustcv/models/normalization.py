# Andy Zhao
"""
Hartley normalization shared by the DLT solvers (homography, camera).

Pixel / metric coordinates make the DLT design matrix badly conditioned;
moving the centroid to the origin and scaling to mean distance sqrt(dim)
fixes that. Solve in normalized space, then undo with the inverse transforms.
"""

from __future__ import annotations

import numpy as np

from ..robust.types import FloatArray


def similarity_transform(pts: FloatArray) -> FloatArray:
    """
    Similarity moving the centroid to the origin with mean distance sqrt(dim).
    Returns a (dim+1, dim+1) homogeneous matrix.
    """
    dim = pts.shape[1]
    centroid = pts.mean(axis=0)
    mean_dist = float(np.mean(np.linalg.norm(pts - centroid, axis=1)))
    scale = np.sqrt(dim) / mean_dist if mean_dist > 0.0 else 1.0

    T = np.eye(dim + 1, dtype=np.float64)
    T[:dim, :dim] *= scale
    T[:dim, dim] = -scale * centroid
    return T


def apply_similarity(T: FloatArray, pts: FloatArray) -> FloatArray:
    ph = np.hstack([pts, np.ones((pts.shape[0], 1))])
    return (ph @ T.T)[:, :-1]
