# Andy Zhao
"""
Consensus scoring: how well does a candidate model explain ALL correspondences?

Every evaluator computes the residual of each correspondence under the
candidate model, then reduces them to a single cost. Lower cost is always
better:

- RANSAC:  cost = -(# inliers),            inlier <=> residual < threshold
- MSAC:    cost = sum(min(r^2, t^2)),      inlier <=> residual < threshold
- LMedS:   cost = median(residuals),       threshold derived from the median
- PROSAC:  RANSAC cost (sampling differs)
- PROMedS: LMedS cost (sampling differs)

LMedS robust scale (Rousseeuw):
    sigma = 1.4826 * (1 + 5 / (N - k)) * sqrt(median)

The PROSAC / PROMedS stopping rule also lives here, since it only depends on
which correspondences are inliers of the best model.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

import numpy as np

from .config import EstimatorConfig
from .iterations import required_iterations
from .types import (
    Correspondences, FloatArray, IndexArray, Mask, ModelFitter, RobustEstimatorMethod,
)

M = TypeVar("M")

# 1.4826 = 1 / Phi^-1(3/4): makes the median absolute residual a consistent
# estimator of the standard deviation for Gaussian noise.
LMEDS_SCALE = 1.4826

# Finite-sample correction numerator in (1 + 5 / (N - k)).
LMEDS_SAMPLE_CORRECTION = 5.0

# Derived thresholds never go below machine epsilon, otherwise an exact fit
# (median == 0) would classify nothing as inlier with a strict test.
MIN_ESTIMATED_THRESHOLD = float(np.finfo(np.float64).eps)

# Chi-square quantile (1 dof, 90%) used by the PROSAC non-randomness test.
NON_RANDOM_CHI2 = 2.706


@dataclass(frozen=True)
class Consensus:
    cost: float           # method-specific cost, lower is better
    inliers: Mask         # inlier membership, shape (N,)
    residuals: FloatArray # per-correspondence residuals, shape (N,)
    threshold: float      # threshold used to classify inliers
    num_inliers: int
    rms_error: float      # RMS of inlier residuals (inf if no inliers)

    @property
    def inlier_ratio(self) -> float:
        n = self.inliers.shape[0]
        return self.num_inliers / float(n) if n > 0 else 0.0

    def is_better_than(self, other: Optional["Consensus"]) -> bool:
        """
        Total order used to pick the best model.
        Primary criterion: lower cost. If tie: lower RMS error.
        Full ties keep the earlier model.
        """
        if other is None:
            return True
        if self.cost != other.cost:
            return self.cost < other.cost
        return self.rms_error < other.rms_error


def _rms(residuals: FloatArray, inliers: Mask) -> float:
    if not inliers.any():
        return float("inf")
    r = residuals[inliers]
    return float(np.sqrt(np.mean(r * r)))


class ConsensusEvaluator(ABC, Generic[M]):
    """
    Scores candidate models against the full correspondence set.
    """

    method: RobustEstimatorMethod

    def __init__(self, fitter: ModelFitter[M], data: Correspondences) -> None:
        self.fitter = fitter
        self.data = data
        self.n = len(data)
        self.k = int(fitter.sample_size)

    def residuals(self, model: M) -> FloatArray:
        """
        Residuals of every correspondence, shape (N,).
        NaN residuals (numerically broken models) count as infinitely bad.
        """
        r = np.asarray(self.fitter.residuals(model, self.data), dtype=np.float64).reshape(-1)
        if r.shape[0] != self.n:
            raise ValueError(f"residuals() returned {r.shape[0]} values for {self.n} correspondences")
        return np.where(np.isnan(r), np.inf, np.abs(r))

    def score(self, model: M) -> Consensus:
        return self.score_residuals(self.residuals(model))

    @abstractmethod
    def score_residuals(self, residuals: FloatArray) -> Consensus:
        ...

    def is_admissible(self, consensus: Consensus) -> bool:
        """
        Threshold-based methods need at least a minimal sample worth of inliers.
        """
        return consensus.num_inliers >= self.k


# ---------- Threshold-based evaluators ----------
class RansacEvaluator(ConsensusEvaluator[M]):
    method = RobustEstimatorMethod.RANSAC

    def __init__(self, fitter: ModelFitter[M], data: Correspondences, threshold: float) -> None:
        super().__init__(fitter, data)
        self.threshold = float(threshold)

    def score_residuals(self, residuals: FloatArray) -> Consensus:
        inliers: Mask = residuals < self.threshold
        num_inliers = int(np.count_nonzero(inliers))
        return Consensus(
            cost=float(-num_inliers),
            inliers=inliers,
            residuals=residuals,
            threshold=self.threshold,
            num_inliers=num_inliers,
            rms_error=_rms(residuals, inliers),
        )


class MsacEvaluator(RansacEvaluator[M]):
    """
    Truncated quadratic loss: inliers contribute r^2, outliers a constant t^2.
    Near-threshold points count partially instead of all-or-nothing.
    """
    method = RobustEstimatorMethod.MSAC

    def score_residuals(self, residuals: FloatArray) -> Consensus:
        inliers: Mask = residuals < self.threshold
        t2 = self.threshold * self.threshold
        cost = float(np.sum(np.minimum(residuals * residuals, t2)))
        return Consensus(
            cost=cost,
            inliers=inliers,
            residuals=residuals,
            threshold=self.threshold,
            num_inliers=int(np.count_nonzero(inliers)),
            rms_error=_rms(residuals, inliers),
        )


class ProsacEvaluator(RansacEvaluator[M]):
    method = RobustEstimatorMethod.PROSAC


# ---------- Median-based evaluators ----------
class LmedsEvaluator(ConsensusEvaluator[M]):
    """
    Least median of squares: no threshold needed to score, the inlier
    threshold is derived from the median residual afterwards.
    """
    method = RobustEstimatorMethod.LMEDS

    def __init__(self, fitter: ModelFitter[M], data: Correspondences, inlier_factor: float = 1.0) -> None:
        super().__init__(fitter, data)
        self.inlier_factor = float(inlier_factor)

    def estimate_threshold(self, median: float) -> float:
        """
        inlier_factor * 1.4826 * (1 + 5 / (N - k)) * sqrt(median)
        """
        dof = max(self.n - self.k, 1)
        sigma = LMEDS_SCALE * (1.0 + LMEDS_SAMPLE_CORRECTION / dof) * math.sqrt(max(median, 0.0))
        return max(self.inlier_factor * sigma, MIN_ESTIMATED_THRESHOLD)

    def score_residuals(self, residuals: FloatArray) -> Consensus:
        median = float(np.median(residuals))
        threshold = self.estimate_threshold(median) if np.isfinite(median) else float("inf")
        inliers: Mask = residuals < threshold
        return Consensus(
            cost=median,
            inliers=inliers,
            residuals=residuals,
            threshold=threshold,
            num_inliers=int(np.count_nonzero(inliers)),
            rms_error=_rms(residuals, inliers),
        )

    def is_admissible(self, consensus: Consensus) -> bool:
        return bool(np.isfinite(consensus.cost))


class PromedsEvaluator(LmedsEvaluator[M]):
    method = RobustEstimatorMethod.PROMEDS


def make_evaluator(
        method: RobustEstimatorMethod,
        fitter: ModelFitter[M],
        data: Correspondences,
        config: EstimatorConfig,
) -> ConsensusEvaluator[M]:
    if method is RobustEstimatorMethod.RANSAC:
        return RansacEvaluator(fitter, data, config.threshold)
    if method is RobustEstimatorMethod.MSAC:
        return MsacEvaluator(fitter, data, config.threshold)
    if method is RobustEstimatorMethod.PROSAC:
        return ProsacEvaluator(fitter, data, config.threshold)
    if method is RobustEstimatorMethod.LMEDS:
        return LmedsEvaluator(fitter, data, config.inlier_factor)
    if method is RobustEstimatorMethod.PROMEDS:
        return PromedsEvaluator(fitter, data, config.inlier_factor)
    raise ValueError(f"Unknown robust method: {method!r}")


# ---------- PROSAC stopping rule ----------
def non_random_inliers(n: int | np.ndarray, k: int, beta: float) -> np.ndarray:
    """
    Minimal number of inliers I_min(n) among the first n correspondences for a
    model NOT to be supported by chance.

    Inliers of a wrong model follow Binomial(n - k, beta) (plus the k sample
    points). Using the normal approximation:
        I_min(n) = ceil(k + mu + sigma * sqrt(chi2))
        mu = (n - k) * beta, sigma = sqrt((n - k) * beta * (1 - beta))
    """
    n = np.asarray(n, dtype=np.float64)
    m = np.maximum(n - k, 0.0)
    mu = m * beta
    sigma = np.sqrt(m * beta * (1.0 - beta))
    return np.ceil(k + mu + sigma * math.sqrt(NON_RANDOM_CHI2)).astype(np.int64)


class ProsacStoppingRule:
    """
    Non-randomness + maximality termination for PROSAC / PROMedS.

    Each time the best model improves:
      - count inliers I_n among the first n quality-ordered correspondences
      - among lengths with I_n >= I_min(n), pick n* maximising I_n / n
      - k_n* = iterations needed to reach 1 - eta0 confidence with ratio I_n*/n*

    Estimation may stop once t >= k_n* and the best model passes the
    non-randomness test on the whole set.
    """

    def __init__(
            self,
            order: IndexArray,
            k: int,
            *,
            eta0: float,
            beta: float,
            max_iterations: int,
    ) -> None:
        self.order = np.asarray(order)
        self.N = int(self.order.shape[0])
        self.k = int(k)
        self.eta0 = float(eta0)
        self.max_iterations = int(max_iterations)

        self._lengths = np.arange(self.k, self.N + 1)
        self._i_min = non_random_inliers(self._lengths, self.k, beta)

        self.n_star = self.N
        self.inliers_n_star = 0
        self.k_n_star = self.max_iterations
        self.non_random = False

    def update(self, inliers: Mask) -> int:
        """
        Recompute n* and k_n* from the inliers of a new best model.
        Returns the new termination length n*.
        """
        # Inlier counts over prefixes of the quality ordering
        counts = np.cumsum(inliers[self.order].astype(np.int64))[self.k - 1:]
        valid = counts >= self._i_min

        self.non_random = bool(valid[-1])
        if not valid.any():
            self.n_star = self.N
            self.inliers_n_star = int(counts[-1])
            self.k_n_star = self.max_iterations
            return self.n_star

        ratios = np.where(valid, counts / self._lengths.astype(np.float64), -1.0)

        # Prefer the longest prefix on ties
        best = len(ratios) - 1 - int(np.argmax(ratios[::-1]))
        self.n_star = int(self._lengths[best])
        self.inliers_n_star = int(counts[best])

        needed = required_iterations(
            confidence=1.0 - self.eta0,
            inlier_ratio=self.inliers_n_star / float(self.n_star),
            sample_size=self.k,
        )
        self.k_n_star = int(min(max(needed, 1), self.max_iterations))
        return self.n_star

    def should_stop(self, iteration: int) -> bool:
        return self.non_random and iteration >= self.k_n_star
