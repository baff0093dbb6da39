# Andy Zhao
"""
Adapter: makes affine functions conform to the ModelFitter Protocol.

This keeps robust/core.py generic and reusable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..robust.types import FloatArray, Mat3x3, ModelFitter
from .affine import affine_normal_matrix, fit_affine_least_squares, fit_affine_minimal, residuals_L2


@dataclass(frozen=True)
class AffineFitter(ModelFitter[Mat3x3]):
    sample_size: int = 3
    eps_area: float = 1e-6

    def fit_minimal(self, sample: FloatArray) -> Optional[Mat3x3]:
        return fit_affine_minimal(sample, eps_area=self.eps_area)

    def fit_least_squares(self, inliers: FloatArray) -> Optional[Mat3x3]:
        return fit_affine_least_squares(inliers)

    def residuals(self, model: Mat3x3, data: FloatArray) -> FloatArray:
        return residuals_L2(model, data)

    def normal_matrix(self, model: Mat3x3, inliers: FloatArray) -> FloatArray:
        return affine_normal_matrix(inliers)
