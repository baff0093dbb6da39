# Andy Zhao
"""
Adapter: makes homography functions conform to the ModelFitter Protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..robust.types import FloatArray, Mat3x3, ModelFitter
from .homography import (
    fit_homography_least_squares, fit_homography_minimal, homography_normal_matrix,
    residuals_transfer,
)


@dataclass(frozen=True)
class HomographyFitter(ModelFitter[Mat3x3]):
    """
    Correspondences: (N,4) rows [x, y, x', y']. Residual: transfer error in pixels.
    """
    sample_size: int = 4
    eps_area: float = 1e-6

    def fit_minimal(self, sample: FloatArray) -> Optional[Mat3x3]:
        return fit_homography_minimal(sample, eps_area=self.eps_area)

    def fit_least_squares(self, inliers: FloatArray) -> Optional[Mat3x3]:
        return fit_homography_least_squares(inliers)

    def residuals(self, model: Mat3x3, data: FloatArray) -> FloatArray:
        return residuals_transfer(model, data)

    def normal_matrix(self, model: Mat3x3, inliers: FloatArray) -> FloatArray:
        return homography_normal_matrix(model, inliers)
