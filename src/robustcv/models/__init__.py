# Andy Zhao
"""
Geometric models package

Each model comes as plain functions (minimal fit, least-squares fit,
residuals) plus a small Fitter adapter implementing the ModelFitter protocol:

- ConicFitter:          5 points        -> 3x3 conic
- HomographyFitter:     4 point pairs   -> 3x3 projective transformation
- AffineFitter:         3 point pairs   -> 3x3 affine transformation
- PlaneFitter:          3 points (3D)   -> [a, b, c, d] plane
- PinholeCameraFitter:  6 3D-2D pairs   -> 3x4 camera matrix (DLT)
"""

from .conic import (
    conic_matrix, conic_params, normalize_conic, conic_from_circle,
    fit_conic_minimal, fit_conic_least_squares, residuals_locus,
)
from .conic_fitter import ConicFitter

from .homography import (
    split_pairs, make_pairs, fit_homography_minimal, fit_homography_least_squares,
    apply_H, residuals_transfer,
)
from .homography_fitter import HomographyFitter

from .affine import fit_affine_minimal, fit_affine_least_squares, apply_T, residuals_L2
from .affine_fitter import AffineFitter

from .plane import fit_plane_minimal, fit_plane_least_squares, residuals_distance
from .plane_fitter import PlaneFitter

from .camera import (
    split_camera_pairs, project, normalize_camera,
    fit_camera_minimal, fit_camera_least_squares, residuals_reprojection,
)
from .camera_fitter import PinholeCameraFitter

__all__ = [
    "conic_matrix", "conic_params", "normalize_conic", "conic_from_circle",
    "fit_conic_minimal", "fit_conic_least_squares", "residuals_locus",
    "ConicFitter",
    "split_pairs", "make_pairs", "fit_homography_minimal", "fit_homography_least_squares",
    "apply_H", "residuals_transfer",
    "HomographyFitter",
    "fit_affine_minimal", "fit_affine_least_squares", "apply_T", "residuals_L2",
    "AffineFitter",
    "fit_plane_minimal", "fit_plane_least_squares", "residuals_distance",
    "PlaneFitter",
    "split_camera_pairs", "project", "normalize_camera",
    "fit_camera_minimal", "fit_camera_least_squares", "residuals_reprojection",
    "PinholeCameraFitter",
]
