# Andy Zhao
"""
Robust estimation package

This module provides:
- A reusable generic robust estimator (RANSAC, LMedS, MSAC, PROSAC, PROMedS)
- Samplers, consensus evaluators and the adaptive iteration controller
- Typed primitives and the model fitter protocol
- Estimator configuration, listener and error types
"""

from .types import (
    FloatArray, BoolArray, IndexArray, Points2D, PointsHomog, Mask, Mat3x3, Correspondences,
    RobustEstimatorMethod, ModelFitter, InliersData, RobustResult,
    as_homogeneous, is_valid_mat3x3, take,
)

from .errors import EstimatorError, LockedError, NotReadyError, RobustEstimatorError

from .config import EstimatorConfig

from .listener import EstimatorListener

from .sampler import UniformSampler, ProgressiveSampler

from .consensus import (
    Consensus, ConsensusEvaluator, RansacEvaluator, MsacEvaluator, LmedsEvaluator,
    ProsacEvaluator, PromedsEvaluator, ProsacStoppingRule, make_evaluator, non_random_inliers,
)

from .iterations import IterationController, required_iterations

from .core import RobustEstimator, EstimatorState, robust_estimate, DEFAULT_ROBUST_METHOD

__all__ = [
    "FloatArray", "BoolArray", "IndexArray", "Points2D", "PointsHomog", "Mask", "Mat3x3",
    "Correspondences", "RobustEstimatorMethod", "ModelFitter", "InliersData", "RobustResult",
    "as_homogeneous", "is_valid_mat3x3", "take",
    "EstimatorError", "LockedError", "NotReadyError", "RobustEstimatorError",
    "EstimatorConfig",
    "EstimatorListener",
    "UniformSampler", "ProgressiveSampler",
    "Consensus", "ConsensusEvaluator", "RansacEvaluator", "MsacEvaluator", "LmedsEvaluator",
    "ProsacEvaluator", "PromedsEvaluator", "ProsacStoppingRule", "make_evaluator",
    "non_random_inliers",
    "IterationController", "required_iterations",
    "RobustEstimator", "EstimatorState", "robust_estimate", "DEFAULT_ROBUST_METHOD",
]
