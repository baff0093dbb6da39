"""Shared fixtures for robustcv tests."""

from dataclasses import dataclass, field

import numpy as np
import pytest

from robustcv.robust import EstimatorListener

CIRCLE_CENTER = (1.0, 2.0)
CIRCLE_RADIUS = 5.0


def _circle_points(n, rng):
    theta = rng.uniform(0.0, 2.0 * np.pi, size=n)
    return np.column_stack([
        CIRCLE_CENTER[0] + CIRCLE_RADIUS * np.cos(theta),
        CIRCLE_CENTER[1] + CIRCLE_RADIUS * np.sin(theta),
    ])


@dataclass
class ScalarFitter:
    """1D location model: every correspondence is a float, the model is a float."""
    sample_size: int = 1

    def fit_minimal(self, sample):
        return float(np.mean(np.asarray(sample, dtype=np.float64)))

    def fit_least_squares(self, inliers):
        return float(np.mean(np.asarray(inliers, dtype=np.float64)))

    def residuals(self, model, data):
        return np.abs(np.asarray(data, dtype=np.float64) - model)


@dataclass
class OracleFitter:
    """
    Always returns the same model (0.0) after failing the first `fail_first`
    minimal fits, so the best model is known from the first valid iteration.
    """
    sample_size: int = 2
    fail_first: int = 0
    calls: int = 0

    def fit_minimal(self, sample):
        self.calls += 1
        if self.calls <= self.fail_first:
            return None
        return 0.0

    def fit_least_squares(self, inliers):
        return 0.0

    def residuals(self, model, data):
        return np.abs(np.asarray(data, dtype=np.float64) - model)


@dataclass
class RecordingListener(EstimatorListener):
    starts: int = 0
    ends: int = 0
    iterations: list = field(default_factory=list)
    progress: list = field(default_factory=list)

    def on_estimate_start(self, estimator):
        self.starts += 1

    def on_estimate_end(self, estimator):
        self.ends += 1

    def on_estimate_next_iteration(self, estimator, iteration):
        self.iterations.append(iteration)

    def on_estimate_progress_change(self, estimator, progress):
        self.progress.append(progress)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def clean_circle(rng):
    """200 points exactly on the circle."""
    return _circle_points(200, rng)


@pytest.fixture
def noisy_circle(rng):
    """
    300 circle points, 20% corrupted with Gaussian noise (sigma = 1).

    Returns (points, clean_mask, quality_scores).
    """
    n, n_out = 300, 60
    pts = _circle_points(n, rng)
    corrupted = rng.choice(n, size=n_out, replace=False)
    noise = rng.normal(0.0, 1.0, size=(n_out, 2))
    pts[corrupted] += noise

    clean = np.ones(n, dtype=bool)
    clean[corrupted] = False

    scores = np.ones(n)
    scores[corrupted] = 1.0 / (1.0 + np.linalg.norm(noise, axis=1))
    return pts, clean, scores


@pytest.fixture
def scalar_fitter():
    return ScalarFitter()


@pytest.fixture
def oracle_fitter():
    return OracleFitter()


@pytest.fixture
def recording_listener():
    return RecordingListener()
