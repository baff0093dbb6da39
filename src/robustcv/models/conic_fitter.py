# Andy Zhao
"""
Adapter: makes conic functions conform to the ModelFitter Protocol.

Correspondences are (N,2) points; the model is a normalized 3x3 conic matrix.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..robust.types import FloatArray, Mat3x3, ModelFitter, Points2D
from .conic import (
    conic_normal_matrix, fit_conic_least_squares, fit_conic_minimal, residuals_locus,
)


@dataclass(frozen=True)
class ConicFitter(ModelFitter[Mat3x3]):
    sample_size: int = 5
    rank_tol: float = 1e-10

    def fit_minimal(self, sample: Points2D) -> Optional[Mat3x3]:
        return fit_conic_minimal(sample, rank_tol=self.rank_tol)

    def fit_least_squares(self, inliers: Points2D) -> Optional[Mat3x3]:
        return fit_conic_least_squares(inliers)

    def residuals(self, model: Mat3x3, data: Points2D) -> FloatArray:
        return residuals_locus(model, data)

    def normal_matrix(self, model: Mat3x3, inliers: Points2D) -> FloatArray:
        return conic_normal_matrix(inliers)
