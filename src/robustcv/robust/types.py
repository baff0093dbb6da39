# Andy Zhao

"""
Shared typed primitives for the robust estimation engine.

Defines:
- Typed NumPy aliases for correspondences, masks and residuals
- The robust method enum (RANSAC, LMedS, MSAC, PROSAC, PROMedS)
- Generic model fitter protocol (minimal solver + full solver + residuals)
- Structured result containers (inliers data + final model + stats)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, Protocol, Sequence, TypeAlias, TypeVar, Union

import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
# - float64 for geometry / residuals (more stable for linear algebra)
# - bool_ for masks
# - intp for sample indices

FloatArray: TypeAlias = npt.NDArray[np.float64]
BoolArray: TypeAlias = npt.NDArray[np.bool_]
IndexArray: TypeAlias = npt.NDArray[np.intp]

# Points in 2D image coordinates, stored as float64.
Points2D: TypeAlias = FloatArray      # shape: (N, 2)

# Homogeneous points [x, y, 1].
PointsHomog: TypeAlias = FloatArray   # shape: (N, 3)

# Boolean inlier mask: True as inlier, False as outlier
Mask: TypeAlias = BoolArray           # shape: (N,)

# 3x3 homogeneous matrix (conic, affine, homography).
Mat3x3: TypeAlias = FloatArray        # shape: (3, 3)

# Correspondence set: first axis indexes correspondences.
# A numpy array is the common case, plain sequences are also accepted.
Correspondences: TypeAlias = Union[np.ndarray, Sequence[Any]]

# ---------- Generic model typing ----------
M = TypeVar("M")


class RobustEstimatorMethod(str, Enum):
    """
    Sampling / consensus strategy used by the robust estimator.

    - RANSAC:  uniform sampling, cost = -(# inliers)
    - LMEDS:   uniform sampling, cost = median residual (no threshold needed)
    - MSAC:    uniform sampling, cost = sum(min(r^2, t^2))
    - PROSAC:  quality-ordered progressive sampling, RANSAC cost
    - PROMEDS: quality-ordered progressive sampling, LMedS cost
    """
    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @classmethod
    def _missing_(cls, value: object) -> Optional["RobustEstimatorMethod"]:
        # Accept "RANSAC", "Prosac", ...
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None

    @property
    def uses_quality_scores(self) -> bool:
        return self in (RobustEstimatorMethod.PROSAC, RobustEstimatorMethod.PROMEDS)

    @property
    def uses_median(self) -> bool:
        return self in (RobustEstimatorMethod.LMEDS, RobustEstimatorMethod.PROMEDS)


class ModelFitter(Protocol[M]):
    """
    Interface a geometric model must implement to be usable by the generic
    robust estimator.

    Steps:
    1) Fit a model from a minimal sample (sample_size correspondences)
    2) Refit a better model from all inliers (over-determined solve)
    3) Score all correspondences with a per-point residual error

    Optionally, a fitter may expose `normal_matrix(model, data)` returning the
    (P, P) normal-equations matrix of its full solve, used for covariance.
    """

    sample_size: int

    def fit_minimal(self, sample: Correspondences) -> Union[Optional[M], Sequence[M]]:
        """
        Fit from exactly sample_size correspondences.
        Return None (or an empty sequence) if the sample is degenerate.
        Solvers with several exact solutions may return all of them.
        """
        ...

    def fit_least_squares(self, inliers: Correspondences) -> Optional[M]:
        """
        Refit the model using all inliers.
        Return None if the set is degenerate or the solve fails.
        """
        ...

    def residuals(self, model: M, data: Correspondences) -> FloatArray:
        """
        Return a vector of non-negative residual errors, one per correspondence.
        Shape: (N,). Smaller = better.
        """
        ...


# ---------- Output containers ----------
# frozen=True means "immutable" after construction
@dataclass(frozen=True)
class InliersData:
    inliers: Mask                # boolean inlier membership, shape (N,)
    residuals: FloatArray        # residual of every correspondence, shape (N,)
    estimated_threshold: float   # threshold actually used (derived for LMedS / PROMedS)
    num_inliers: int             # count of True values in inliers


@dataclass(frozen=True)
class RobustResult(Generic[M]):
    model: M                            # best model found (refined if requested and not worse)
    inliers_data: InliersData           # inliers / residuals under the returned model
    covariance: Optional[FloatArray]    # parameter covariance, only when requested
    iterations: int                     # how many iterations were actually run
    method: RobustEstimatorMethod       # strategy that produced this result
    rms_error: float                    # RMS residual of inliers under the returned model
    refined: bool                       # True if the full solver result was kept

    @property
    def inliers(self) -> Mask:
        return self.inliers_data.inliers

    @property
    def num_inliers(self) -> int:
        return self.inliers_data.num_inliers

    @property
    def threshold(self) -> float:
        return self.inliers_data.estimated_threshold


# ---------- Helper Functions ----------
def as_homogeneous(pts: Points2D) -> PointsHomog:
    """
    Convert (N,2) points -> (N,3) homogeneous points: [x, y, 1].
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected points shape (N, 2) but got {pts.shape}")

    ones = np.ones((pts.shape[0], 1), dtype=np.float64)
    return np.hstack([pts.astype(np.float64), ones])


def is_valid_mat3x3(T: Mat3x3) -> bool:
    """
    Verify a 3x3 matrix. Used for rejecting failed fits.
    """
    return isinstance(T, np.ndarray) and T.shape == (3, 3) and np.isfinite(T).all()


def take(data: Correspondences, idx: IndexArray) -> Correspondences:
    """
    Select correspondences by index (or boolean mask).

    numpy arrays use fancy indexing, plain sequences are rebuilt as lists.
    """
    if isinstance(data, np.ndarray):
        return data[idx]

    idx = np.asarray(idx)
    if idx.dtype == np.bool_:
        idx = np.flatnonzero(idx)
    return [data[int(i)] for i in idx]
