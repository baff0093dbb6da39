# Andy Zhao
"""
Adapter: makes plane functions conform to the ModelFitter Protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..robust.types import FloatArray, ModelFitter
from .plane import fit_plane_least_squares, fit_plane_minimal, plane_normal_matrix, residuals_distance


@dataclass(frozen=True)
class PlaneFitter(ModelFitter[FloatArray]):
    """
    Correspondences: (N,3) points. Model: [a, b, c, d] with unit normal.
    """
    sample_size: int = 3
    eps_area: float = 1e-9

    def fit_minimal(self, sample: FloatArray) -> Optional[FloatArray]:
        return fit_plane_minimal(sample, eps_area=self.eps_area)

    def fit_least_squares(self, inliers: FloatArray) -> Optional[FloatArray]:
        return fit_plane_least_squares(inliers)

    def residuals(self, model: FloatArray, data: FloatArray) -> FloatArray:
        return residuals_distance(model, data)

    def normal_matrix(self, model: FloatArray, inliers: FloatArray) -> FloatArray:
        return plane_normal_matrix(inliers)
