# Andy Zhao
"""
Generic robust estimator (model-agnostic).

Robust estimation overview:
- Draw a *minimal* subset of correspondences (uniform or quality-ordered)
- Fit candidate model(s) from that subset (minimal solver)
- Score all correspondences under the candidate (method-specific cost)
- Keep the best-scoring model and tighten the adaptive iteration bound
- Stop when the bound, max_iterations or a method-specific rule is reached
- Optionally refit using all inliers (full solver) and estimate covariance

A single RobustEstimator works with every geometric model through the
ModelFitter protocol from types.py, and with every method through the
RobustEstimatorMethod enum:

    est = RobustEstimator(ConicFitter(), points, method="prosac",
                          quality_scores=scores, threshold=1e-6)
    result = est.estimate()

State machine:
    IDLE --estimate()--> RUNNING --(success | exception)--> IDLE
While RUNNING every mutator raises LockedError.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from enum import Enum
from typing import Any, Generic, Iterator, Optional, TypeVar, Union

import numpy as np

from .config import EstimatorConfig
from .consensus import Consensus, ConsensusEvaluator, ProsacStoppingRule, make_evaluator
from .errors import LockedError, NotReadyError, RobustEstimatorError
from .iterations import IterationController
from .listener import EstimatorListener
from .sampler import ProgressiveSampler, UniformSampler
from .types import (
    Correspondences, FloatArray, InliersData, ModelFitter, RobustEstimatorMethod,
    RobustResult, take,
)

M = TypeVar("M")

logger = logging.getLogger(__name__)

DEFAULT_ROBUST_METHOD = RobustEstimatorMethod.RANSAC


class EstimatorState(Enum):
    IDLE = "idle"
    RUNNING = "running"


def _config_property(name: str, doc: str) -> property:
    """
    Expose one EstimatorConfig field as a locked, validated property.
    """

    def getter(self: "RobustEstimator") -> Any:
        return getattr(self._config, name)

    def setter(self: "RobustEstimator", value: Any) -> None:
        self._check_unlocked()
        # replace() re-runs __post_init__, a bad value raises before assignment
        self._config = replace(self._config, **{name: value})

    return property(getter, setter, doc=doc)


class RobustEstimator(Generic[M]):
    """
    Robust estimator driving sample -> solve -> score -> update.

    Inputs:
    - fitter: provides sample_size, fit_minimal, fit_least_squares, residuals
      (and optionally normal_matrix for covariance)
    - data: correspondence set, first axis indexes correspondences
    - quality_scores: (N,) scores, required for PROSAC / PROMedS only
    - method: RANSAC, LMEDS, MSAC, PROSAC or PROMEDS
    - listener: optional EstimatorListener
    - config: EstimatorConfig, individual fields may be overridden by keyword
    """

    threshold = _config_property("threshold", "Inlier cutoff for RANSAC / MSAC / PROSAC.")
    confidence = _config_property("confidence", "Target confidence in (0, 1].")
    max_iterations = _config_property("max_iterations", "Hard cap on iterations.")
    progress_delta = _config_property("progress_delta", "Progress notification granularity.")
    result_refined = _config_property("result_refined", "Refit with all inliers after consensus.")
    covariance_kept = _config_property("covariance_kept", "Estimate covariance of the refined model.")
    stop_threshold = _config_property("stop_threshold", "LMedS / PROMedS early stop threshold.")
    inlier_factor = _config_property("inlier_factor", "Multiplier of the LMedS derived threshold.")
    eta0 = _config_property("eta0", "PROSAC non-randomness confidence parameter.")
    beta = _config_property("beta", "PROSAC probability of a random inlier.")
    max_degenerate_retries = _config_property("max_degenerate_retries", "Degenerate redraw cap.")
    seed = _config_property("seed", "RNG seed, None for fresh entropy.")

    def __init__(
            self,
            fitter: ModelFitter[M],
            data: Optional[Correspondences] = None,
            quality_scores: Optional[FloatArray] = None,
            *,
            method: Union[RobustEstimatorMethod, str] = DEFAULT_ROBUST_METHOD,
            listener: Optional[EstimatorListener] = None,
            config: Optional[EstimatorConfig] = None,
            **overrides: Any,
    ) -> None:
        if int(fitter.sample_size) < 1:
            raise ValueError(f"fitter.sample_size must be >= 1, got {fitter.sample_size}")

        self._fitter = fitter
        self._method = RobustEstimatorMethod(method)
        self._listener = listener

        cfg = config if config is not None else EstimatorConfig()
        if overrides:
            cfg = replace(cfg, **overrides)
        self._config = cfg

        self._data: Optional[Correspondences] = None
        self._quality_scores: Optional[FloatArray] = None
        if data is not None:
            self._data = self._validate_data(data)
        if quality_scores is not None:
            self._quality_scores = self._validate_quality_scores(quality_scores)
        if self._data is not None and self._quality_scores is not None:
            if len(self._data) != self._quality_scores.shape[0]:
                raise ValueError(
                    f"quality_scores length {self._quality_scores.shape[0]} "
                    f"does not match {len(self._data)} correspondences"
                )

        # ---------- State machine ----------
        self._state = EstimatorState.IDLE
        self._state_lock = threading.Lock()

    @classmethod
    def create(
            cls,
            fitter: ModelFitter[M],
            method: Union[RobustEstimatorMethod, str] = DEFAULT_ROBUST_METHOD,
            **kwargs: Any,
    ) -> "RobustEstimator[M]":
        return cls(fitter, method=method, **kwargs)

    # ---------- Locking ----------
    @property
    def state(self) -> EstimatorState:
        return self._state

    @property
    def is_locked(self) -> bool:
        return self._state is EstimatorState.RUNNING

    def _check_unlocked(self) -> None:
        if self.is_locked:
            raise LockedError()

    @contextmanager
    def _running(self) -> Iterator[None]:
        """
        IDLE -> RUNNING on entry, always back to IDLE on exit.
        """
        with self._state_lock:
            if self._state is EstimatorState.RUNNING:
                raise LockedError()
            self._state = EstimatorState.RUNNING
        try:
            yield
        finally:
            with self._state_lock:
                self._state = EstimatorState.IDLE

    # ---------- Inputs ----------
    @property
    def fitter(self) -> ModelFitter[M]:
        return self._fitter

    @property
    def sample_size(self) -> int:
        return int(self._fitter.sample_size)

    @property
    def method(self) -> RobustEstimatorMethod:
        return self._method

    @method.setter
    def method(self, method: Union[RobustEstimatorMethod, str]) -> None:
        self._check_unlocked()
        self._method = RobustEstimatorMethod(method)

    @property
    def config(self) -> EstimatorConfig:
        return self._config

    @config.setter
    def config(self, config: EstimatorConfig) -> None:
        self._check_unlocked()
        if not isinstance(config, EstimatorConfig):
            raise TypeError(f"Expected EstimatorConfig, got {type(config).__name__}")
        self._config = config

    @property
    def listener(self) -> Optional[EstimatorListener]:
        return self._listener

    @listener.setter
    def listener(self, listener: Optional[EstimatorListener]) -> None:
        self._check_unlocked()
        self._listener = listener

    @property
    def data(self) -> Optional[Correspondences]:
        return self._data

    @data.setter
    def data(self, data: Correspondences) -> None:
        self._check_unlocked()
        self._data = self._validate_data(data)

    @property
    def quality_scores(self) -> Optional[FloatArray]:
        return self._quality_scores

    @quality_scores.setter
    def quality_scores(self, quality_scores: Optional[FloatArray]) -> None:
        self._check_unlocked()
        self._quality_scores = (
            None if quality_scores is None else self._validate_quality_scores(quality_scores)
        )

    def _validate_data(self, data: Correspondences) -> Correspondences:
        if isinstance(data, np.ndarray) and data.ndim == 0:
            raise ValueError("data must be a sequence of correspondences, got a scalar")
        if len(data) < self.sample_size:
            raise ValueError(f"Need at least {self.sample_size} correspondences, got {len(data)}")
        return data

    def _validate_quality_scores(self, quality_scores: FloatArray) -> FloatArray:
        scores = np.array(quality_scores, dtype=np.float64)
        if scores.ndim != 1:
            raise ValueError(f"quality_scores must be 1D, got shape {scores.shape}")
        if scores.shape[0] < self.sample_size:
            raise ValueError(f"Need at least {self.sample_size} quality scores, got {scores.shape[0]}")
        if not np.isfinite(scores).all():
            raise ValueError("quality_scores must be finite")
        return scores

    @property
    def is_ready(self) -> bool:
        return self._not_ready_reason() is None

    def _not_ready_reason(self) -> Optional[str]:
        if self._data is None:
            return "no correspondences set"
        if len(self._data) < self.sample_size:
            return f"need at least {self.sample_size} correspondences, got {len(self._data)}"
        if self._method.uses_quality_scores:
            if self._quality_scores is None:
                return f"{self._method.name} requires quality scores"
            if self._quality_scores.shape[0] != len(self._data):
                return (
                    f"quality_scores length {self._quality_scores.shape[0]} "
                    f"does not match {len(self._data)} correspondences"
                )
        return None

    # ---------- Estimation ----------
    def estimate(self) -> RobustResult[M]:
        """
        Run the robust estimation.

        Raises:
        - LockedError if already running
        - NotReadyError if inputs are missing / inconsistent (before any iteration)
        - RobustEstimatorError if no admissible model was found
        """
        with self._running():
            reason = self._not_ready_reason()
            if reason is not None:
                raise NotReadyError(reason)
            return self._run()

    def _run(self) -> RobustResult[M]:
        cfg = self._config
        method = self._method
        data = self._data
        n = len(data)
        k = self.sample_size

        # RNG: reproducible sampling
        rng = np.random.default_rng(cfg.seed)

        evaluator = make_evaluator(method, self._fitter, data, cfg)

        stopping: Optional[ProsacStoppingRule] = None
        if method.uses_quality_scores:
            sampler = ProgressiveSampler(self._quality_scores, k, rng, max_samples=cfg.max_iterations)
            stopping = ProsacStoppingRule(
                sampler.order, k,
                eta0=cfg.eta0, beta=cfg.beta, max_iterations=cfg.max_iterations,
            )
        else:
            sampler = UniformSampler(n, k, rng)

        controller = IterationController(
            sample_size=k,
            confidence=cfg.confidence,
            max_iterations=cfg.max_iterations,
            progress_delta=cfg.progress_delta,
            listener=self._listener,
            estimator=self,
        )

        if self._listener is not None:
            self._listener.on_estimate_start(self)

        # Track the best hypothesis
        best_model: Optional[M] = None
        best: Optional[Consensus] = None

        # ---------- Main Loop ----------
        iteration = 0
        while controller.should_continue(iteration):
            for model in self._draw_candidates(sampler, data, cfg.max_degenerate_retries):
                consensus = evaluator.score(model)
                if not evaluator.is_admissible(consensus):
                    continue
                if not consensus.is_better_than(best):
                    continue

                best_model = model
                best = consensus
                bound = controller.next_adaptive_bound(consensus.inlier_ratio)
                if stopping is not None:
                    sampler.limit(stopping.update(consensus.inliers))
                logger.debug(
                    "[%s] better model: inliers=%d/%d, w=%.3f, cost=%.6g, bound=%d",
                    method.name, consensus.num_inliers, n, consensus.inlier_ratio, consensus.cost, bound,
                )

            iteration += 1
            controller.notify_iteration(iteration)

            if stopping is not None and stopping.should_stop(iteration):
                logger.debug("[%s] non-randomness stop at iteration %d (n*=%d)",
                             method.name, iteration, stopping.n_star)
                break
            if (method.uses_median and best is not None
                    and best.threshold < cfg.stop_threshold):
                logger.debug("[%s] stop threshold reached at iteration %d", method.name, iteration)
                break

        # If valid model not found, fail
        if best_model is None or best is None:
            raise RobustEstimatorError(
                f"{method.name} found no admissible model after {iteration} iterations"
            )

        model, consensus, refined = best_model, best, False
        if cfg.result_refined:
            model, consensus, refined = self._attempt_refine(evaluator, best_model, best)

        covariance: Optional[FloatArray] = None
        if cfg.covariance_kept and refined:
            covariance = self._estimate_covariance(model, consensus)

        inliers_data = InliersData(
            inliers=consensus.inliers,
            residuals=consensus.residuals,
            estimated_threshold=float(consensus.threshold),
            num_inliers=int(consensus.num_inliers),
        )

        if self._listener is not None:
            self._listener.on_estimate_end(self)

        logger.info(
            "%s finished: inliers=%d/%d, iterations=%d, threshold=%.6g, refined=%s",
            method.name, inliers_data.num_inliers, n, iteration, inliers_data.estimated_threshold, refined,
        )

        return RobustResult(
            model=model,
            inliers_data=inliers_data,
            covariance=covariance,
            iterations=iteration,
            method=method,
            rms_error=consensus.rms_error,
            refined=refined,
        )

    def _draw_candidates(
            self,
            sampler: Union[UniformSampler, ProgressiveSampler],
            data: Correspondences,
            max_retries: int,
    ) -> list[M]:
        """
        Draw minimal samples until the solver returns at least one model.
        Degenerate samples are redrawn, max_retries times in a row before giving up.
        """
        failures = 0
        while True:
            sample_idx = sampler.draw()
            solutions = self._fitter.fit_minimal(take(data, sample_idx))

            if solutions is None:
                candidates: list[M] = []
            elif isinstance(solutions, (list, tuple)):
                candidates = [s for s in solutions if s is not None]
            else:
                candidates = [solutions]

            if candidates:
                return candidates

            failures += 1
            if failures > max_retries:
                raise RobustEstimatorError(
                    f"{failures} consecutive degenerate samples, giving up"
                )

    def _attempt_refine(
            self,
            evaluator: ConsensusEvaluator[M],
            model: M,
            consensus: Consensus,
    ) -> tuple[M, Consensus, bool]:
        """
        Refit with all inliers. The refined model is kept only if its consensus
        is not worse than the minimal-sample model; otherwise fall back.
        """
        if consensus.num_inliers < self.sample_size:
            return model, consensus, False

        try:
            refit = self._fitter.fit_least_squares(take(self._data, consensus.inliers))
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.warning("Refinement failed (%s), keeping minimal-sample model", e)
            return model, consensus, False

        if refit is None:
            logger.warning("Refinement returned no model, keeping minimal-sample model")
            return model, consensus, False

        refit_consensus = evaluator.score(refit)
        if not evaluator.is_admissible(refit_consensus) or refit_consensus.cost > consensus.cost:
            logger.debug("Refined model is worse (cost %.6g > %.6g), discarded",
                         refit_consensus.cost, consensus.cost)
            return model, consensus, False

        return refit, refit_consensus, True

    def _estimate_covariance(self, model: M, consensus: Consensus) -> Optional[FloatArray]:
        """
        cov = sigma^2 * pinv(J^T J)

        J^T J comes from the fitter's normal equations on the inliers, sigma is
        the inlier threshold (configured, or derived for LMedS / PROMedS).
        """
        normal_matrix = getattr(self._fitter, "normal_matrix", None)
        if normal_matrix is None:
            logger.warning("%s has no normal_matrix(), covariance not available",
                           type(self._fitter).__name__)
            return None

        jtj = np.asarray(normal_matrix(model, take(self._data, consensus.inliers)), dtype=np.float64)
        sigma = float(consensus.threshold)
        return (sigma * sigma) * np.linalg.pinv(jtj, hermitian=True)


def robust_estimate(
        fitter: ModelFitter[M],
        data: Correspondences,
        *,
        method: Union[RobustEstimatorMethod, str] = DEFAULT_ROBUST_METHOD,
        quality_scores: Optional[FloatArray] = None,
        listener: Optional[EstimatorListener] = None,
        config: Optional[EstimatorConfig] = None,
        **overrides: Any,
) -> RobustResult[M]:
    """
    One-shot helper:

        result = robust_estimate(AffineFitter(), pts, method="msac", threshold=3.0)
    """
    estimator = RobustEstimator(
        fitter, data, quality_scores,
        method=method, listener=listener, config=config, **overrides,
    )
    return estimator.estimate()
