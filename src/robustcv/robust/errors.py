# Andy Zhao
"""
Exceptions raised by the robust estimator.

Configuration mistakes (out of range threshold, confidence, ...) are plain
ValueError, the same way the parameter dataclasses reject bad values.
"""


class EstimatorError(Exception):
    """Base class for robust estimator failures."""


class LockedError(EstimatorError):
    """Raised when the estimator is mutated (or re-run) while estimate() is running."""

    def __init__(self, message: str = "estimator is locked while estimate() is running") -> None:
        super().__init__(message)


class NotReadyError(EstimatorError):
    """Raised at estimate() entry when required inputs are missing or inconsistent."""


class RobustEstimatorError(EstimatorError):
    """Raised when no admissible model could be found within the iteration budget."""
