# Andy Zhao
"""
Adapter: makes pinhole camera (DLT) functions conform to the ModelFitter Protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..robust.types import FloatArray, ModelFitter
from .camera import (
    camera_normal_matrix, fit_camera_least_squares, fit_camera_minimal, residuals_reprojection,
)


@dataclass(frozen=True)
class PinholeCameraFitter(ModelFitter[FloatArray]):
    """
    Correspondences: (N,5) rows [X, Y, Z, u, v]. Model: 3x4 camera matrix.
    Residual: reprojection error in pixels.
    """
    sample_size: int = 6
    rank_tol: float = 1e-8

    def fit_minimal(self, sample: FloatArray) -> Optional[FloatArray]:
        return fit_camera_minimal(sample, rank_tol=self.rank_tol)

    def fit_least_squares(self, inliers: FloatArray) -> Optional[FloatArray]:
        return fit_camera_least_squares(inliers, rank_tol=self.rank_tol)

    def residuals(self, model: FloatArray, data: FloatArray) -> FloatArray:
        return residuals_reprojection(model, data)

    def normal_matrix(self, model: FloatArray, inliers: FloatArray) -> FloatArray:
        return camera_normal_matrix(model, inliers)
