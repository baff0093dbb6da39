# Andy Zhao
"""
robustcv: robust fitting of geometric models from outlier-contaminated correspondences.
"""
from .robust import (
    RobustEstimator, RobustEstimatorMethod, EstimatorConfig, EstimatorListener,
    RobustResult, InliersData, robust_estimate,
    EstimatorError, LockedError, NotReadyError, RobustEstimatorError,
)
from .models import ConicFitter, HomographyFitter, AffineFitter, PlaneFitter, PinholeCameraFitter

__version__ = "0.1.0"

__all__ = [
    "RobustEstimator", "RobustEstimatorMethod", "EstimatorConfig", "EstimatorListener",
    "RobustResult", "InliersData", "robust_estimate",
    "EstimatorError", "LockedError", "NotReadyError", "RobustEstimatorError",
    "ConicFitter", "HomographyFitter", "AffineFitter", "PlaneFitter", "PinholeCameraFitter",
]
