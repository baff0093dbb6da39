"""End-to-end scenario: 1000 circle points, 20% corrupted, fitted with PROSAC."""

import logging

import numpy as np
import pytest

from conftest import CIRCLE_CENTER, CIRCLE_RADIUS, RecordingListener
from robustcv import ConicFitter, RobustEstimator, RobustEstimatorMethod
from robustcv.models import conic_from_circle, residuals_locus
from robustcv.utils import setup_logger


@pytest.fixture
def corrupted_circle():
    rng = np.random.default_rng(2024)
    n, n_out = 1000, 200

    theta = rng.uniform(0.0, 2.0 * np.pi, size=n)
    pts = np.column_stack([
        CIRCLE_CENTER[0] + CIRCLE_RADIUS * np.cos(theta),
        CIRCLE_CENTER[1] + CIRCLE_RADIUS * np.sin(theta),
    ])

    corrupted = rng.choice(n, size=n_out, replace=False)
    noise = rng.normal(0.0, 1.0, size=(n_out, 2))
    pts[corrupted] += noise

    clean = np.ones(n, dtype=bool)
    clean[corrupted] = False

    # Quality drops with the amount of noise
    scores = 1.0 + rng.uniform(-1e-3, 1e-3, size=n)
    scores[corrupted] = 1.0 / (1.0 + np.linalg.norm(noise, axis=1))
    return pts, clean, scores


class TestCircleScenario:
    """Test the full pipeline on a corrupted circle."""

    @pytest.mark.parametrize("method", [RobustEstimatorMethod.PROSAC, RobustEstimatorMethod.PROMEDS])
    def test_recovers_circle(self, corrupted_circle, method):
        pts, clean, scores = corrupted_circle
        listener = RecordingListener()

        res = RobustEstimator(
            ConicFitter(), pts, scores,
            method=method, listener=listener, threshold=1e-6, progress_delta=0.25,
        ).estimate()

        assert residuals_locus(res.model, pts[clean]).max() < 1e-6
        np.testing.assert_array_equal(res.inliers, clean)

        C = res.model / np.linalg.norm(res.model)
        C_true = conic_from_circle(CIRCLE_CENTER, CIRCLE_RADIUS)
        if np.sum(C * C_true) < 0.0:
            C = -C
        np.testing.assert_allclose(C, C_true, atol=1e-8)

        assert listener.starts == 1
        assert listener.ends == 1
        assert len(listener.iterations) == res.iterations

    def test_quality_ordering_beats_uniform_sampling(self, corrupted_circle):
        """Good scores let PROSAC stop before RANSAC does."""
        pts, _, scores = corrupted_circle
        prosac = RobustEstimator(ConicFitter(), pts, scores, method="prosac", threshold=1e-6).estimate()
        ransac = RobustEstimator(ConicFitter(), pts, method="ransac", threshold=1e-6).estimate()
        assert prosac.iterations <= ransac.iterations


class TestLogging:
    """Test that estimation events reach the package logger."""

    def test_summary_is_logged(self, corrupted_circle, caplog):
        pts, _, _ = corrupted_circle
        with caplog.at_level(logging.INFO, logger="robustcv"):
            RobustEstimator(ConicFitter(), pts, threshold=1e-6).estimate()
        assert any("RANSAC finished" in r.getMessage() for r in caplog.records)

    def test_setup_logger_is_idempotent(self, tmp_path):
        log_file = tmp_path / "logs" / "robustcv.log"
        setup_logger("robustcv.test", logging.DEBUG, str(log_file))
        logger = setup_logger("robustcv.test", logging.DEBUG, str(log_file))

        assert len(logger.handlers) == 2
        assert logger.level == logging.DEBUG
        logger.debug("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")
