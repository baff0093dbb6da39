# Andy Zhao
"""
Listener interface notified by the robust estimator.

All callbacks run synchronously on the caller's thread, inside the
estimation loop. Subclass and override only the callbacks you need.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core import RobustEstimator


class EstimatorListener:
    """
    No-op base listener.

    Callback order for one estimate() call:
        on_estimate_start
        on_estimate_next_iteration / on_estimate_progress_change (repeated)
        on_estimate_end
    """

    def on_estimate_start(self, estimator: "RobustEstimator") -> None:
        pass

    def on_estimate_end(self, estimator: "RobustEstimator") -> None:
        pass

    def on_estimate_next_iteration(self, estimator: "RobustEstimator", iteration: int) -> None:
        pass

    def on_estimate_progress_change(self, estimator: "RobustEstimator", progress: float) -> None:
        pass
