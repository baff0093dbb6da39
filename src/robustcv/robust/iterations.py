# Andy Zhao
"""
Adaptive iteration bound and progress notification.

The controller owns:
- the current iteration bound (recomputed whenever a better model appears)
- the hard cap max_iterations
- progress bookkeeping for listener notifications
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional

import numpy as np

from .listener import EstimatorListener

if TYPE_CHECKING:
    from .core import RobustEstimator

# Returned when no finite number of iterations reaches the confidence.
UNBOUNDED_ITERATIONS = int(1e9)


def required_iterations(
        *,
        confidence: float,
        inlier_ratio: float,
        sample_size: int,
) -> int:
    """
    Compute the number of iterations needed so that the probability of having
    drawn at least ONE all-inlier minimal sample is >= confidence.

    inlier ratio w = (# inliers) / N, Minimal sample s = sample_size,
    - P(all-inliers) = w^s
    - P(not-all-inliers) = 1 - w^s
    - P(not-all-inlier-for-k-times) = (1 - w^s)^k
    - P(at-least-once-all-inliers) = 1 - (1 - w^s)^k >= p

    Formula:
       k >= log(1 - p) / log(1 - w^s)

    Edge cases:
     - w == 0  -> impossible, return UNBOUNDED_ITERATIONS (capped elsewhere)
     - w == 1  -> 1 iteration is enough
     - p == 1  -> certainty is never reached with w < 1, UNBOUNDED_ITERATIONS
    """
    s = int(sample_size)
    if s <= 0:
        raise ValueError("sample_size must be >= 1")

    w = float(np.clip(inlier_ratio, 0.0, 1.0))
    p = float(confidence)

    if w >= 1.0:
        return 1
    if w <= 0.0 or p >= 1.0:
        return UNBOUNDED_ITERATIONS
    if p <= 0.0:
        return 1

    # Probability a minimal sample is all inliers
    w_to_s = w ** s

    # If w^s is extremely tiny, log(1 - w^s) is ~0 and k explodes
    if w_to_s <= 1e-12:
        return UNBOUNDED_ITERATIONS

    denominator = math.log(1.0 - w_to_s)
    numerator = math.log(1.0 - p)
    k = int(math.ceil(numerator / denominator))
    return max(1, min(k, UNBOUNDED_ITERATIONS))


class IterationController:
    """
    Maintains the adaptive iteration bound and fires iteration / progress
    callbacks.

        controller = IterationController(sample_size=5, confidence=0.99, max_iterations=5000)
        while controller.should_continue(i):
            ...
            if better:
                controller.next_adaptive_bound(w)
            i += 1
            controller.notify_iteration(i)
    """

    def __init__(
            self,
            *,
            sample_size: int,
            confidence: float,
            max_iterations: int,
            progress_delta: float = 0.05,
            listener: Optional[EstimatorListener] = None,
            estimator: Optional["RobustEstimator"] = None,
    ) -> None:
        if sample_size < 1:
            raise ValueError("sample_size must be >= 1")
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")

        self.sample_size = int(sample_size)
        self.confidence = float(confidence)
        self.max_iterations = int(max_iterations)
        self.progress_delta = float(progress_delta)
        self.listener = listener
        self.estimator = estimator

        # Until a model is found, only the hard cap limits the loop
        self.bound = self.max_iterations
        self._last_progress = 0.0
        self._last_step = 0

    def next_adaptive_bound(self, inlier_ratio: float) -> int:
        """
        Recompute the bound from the best-so-far inlier ratio.
        Clamped to [1, max_iterations].
        """
        needed = required_iterations(
            confidence=self.confidence,
            inlier_ratio=inlier_ratio,
            sample_size=self.sample_size,
        )
        self.bound = int(min(max(needed, 1), self.max_iterations))
        return self.bound

    def should_continue(self, iteration: int, inlier_ratio: Optional[float] = None) -> bool:
        """
        True while another iteration is allowed.

        inlier_ratio: when given, the bound is recomputed first.
        """
        if inlier_ratio is not None:
            self.next_adaptive_bound(inlier_ratio)
        return iteration < self.bound and iteration < self.max_iterations

    @property
    def progress(self) -> float:
        return self._last_progress

    def _progress_step(self, progress: float) -> int:
        # Slack absorbs float error: 0.3 / 0.1 is 2.9999999999999996
        return int(math.floor(progress / self.progress_delta + 1e-9))

    def notify_iteration(self, iteration: int) -> None:
        """
        Fire on_estimate_next_iteration every pass, and
        on_estimate_progress_change whenever iteration / bound crosses into a
        new multiple of progress_delta (every increase when progress_delta is 0).
        """
        if self.listener is None:
            return

        self.listener.on_estimate_next_iteration(self.estimator, iteration)

        progress = min(1.0, max(0.0, iteration / float(self.bound)))
        if progress <= self._last_progress:
            return
        if self.progress_delta > 0.0:
            step = self._progress_step(progress)
            if step <= self._last_step:
                return
            self._last_step = step
        self._last_progress = progress
        self.listener.on_estimate_progress_change(self.estimator, progress)
