"""Tests for the geometric model fitters and their robust estimation."""

import numpy as np
import pytest

from robustcv.models import (
    AffineFitter,
    ConicFitter,
    HomographyFitter,
    PinholeCameraFitter,
    PlaneFitter,
    apply_H,
    apply_T,
    conic_from_circle,
    conic_matrix,
    conic_params,
    fit_affine_least_squares,
    fit_affine_minimal,
    fit_camera_least_squares,
    fit_camera_minimal,
    fit_conic_least_squares,
    fit_conic_minimal,
    fit_homography_least_squares,
    fit_homography_minimal,
    fit_plane_least_squares,
    fit_plane_minimal,
    make_pairs,
    normalize_camera,
    project,
    residuals_distance,
    residuals_locus,
    residuals_reprojection,
    residuals_transfer,
)
from robustcv.robust import RobustEstimator, RobustEstimatorMethod

from conftest import CIRCLE_CENTER, CIRCLE_RADIUS

H_TRUE = np.array([
    [1.1, 0.05, 10.0],
    [-0.03, 0.95, 5.0],
    [1e-4, 2e-4, 1.0],
])

T_TRUE = np.array([
    [0.9, -0.2, 12.0],
    [0.15, 1.05, -7.0],
    [0.0, 0.0, 1.0],
])

PLANE_TRUE = np.array([0.5, -0.2, -1.0, 3.0])  # z = 0.5x - 0.2y + 3


def _same_up_to_scale(a, b, atol):
    a = a / np.linalg.norm(a)
    b = b / np.linalg.norm(b)
    if np.sum(a * b) < 0.0:
        b = -b
    np.testing.assert_allclose(a, b, atol=atol)


def _camera():
    K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])
    angle = 0.1
    R = np.array([
        [np.cos(angle), 0.0, np.sin(angle)],
        [0.0, 1.0, 0.0],
        [-np.sin(angle), 0.0, np.cos(angle)],
    ])
    t = np.array([[0.2], [-0.1], [10.0]])
    return K @ np.hstack([R, t])


def _corrupt_targets(rng, pairs, cols, fraction, low, high):
    """Replace the target columns of a fraction of rows with random values."""
    n = pairs.shape[0]
    bad = rng.choice(n, size=int(round(fraction * n)), replace=False)
    pairs = pairs.copy()
    pairs[np.ix_(bad, cols)] = rng.uniform(low, high, size=(bad.size, len(cols)))
    clean = np.ones(n, dtype=bool)
    clean[bad] = False
    return pairs, clean


class TestConic:
    """Test conic fitting."""

    def test_params_round_trip(self):
        p = np.array([1.0, 0.5, 2.0, -1.0, 3.0, -4.0])
        np.testing.assert_allclose(conic_params(conic_matrix(p)), p)

    def test_minimal_fit_recovers_circle(self, clean_circle):
        C = fit_conic_minimal(clean_circle[:5])
        _same_up_to_scale(C, conic_from_circle(CIRCLE_CENTER, CIRCLE_RADIUS), atol=1e-8)
        assert residuals_locus(C, clean_circle).max() < 1e-10

    def test_four_collinear_points_are_degenerate(self):
        pts = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0], [0.0, 5.0]])
        assert fit_conic_minimal(pts) is None

    def test_minimal_fit_shape_check(self, clean_circle):
        with pytest.raises(ValueError):
            fit_conic_minimal(clean_circle[:6])

    def test_least_squares(self, clean_circle):
        C = fit_conic_least_squares(clean_circle)
        assert residuals_locus(C, clean_circle).max() < 1e-10
        assert fit_conic_least_squares(clean_circle[:4]) is None

    def test_fitter_protocol(self):
        assert ConicFitter().sample_size == 5


class TestHomography:
    """Test homography fitting (normalized DLT)."""

    @pytest.fixture
    def pairs(self, rng):
        pts0 = rng.uniform([0.0, 0.0], [640.0, 480.0], size=(100, 2))
        return make_pairs(pts0, apply_H(H_TRUE, pts0))

    def test_minimal_fit(self, pairs):
        quad = np.array([[0.0, 0.0], [600.0, 10.0], [620.0, 470.0], [5.0, 450.0]])
        H = fit_homography_minimal(make_pairs(quad, apply_H(H_TRUE, quad)))
        _same_up_to_scale(H, H_TRUE, atol=1e-9)
        assert np.linalg.norm(H) == pytest.approx(1.0)
        assert residuals_transfer(H, pairs).max() < 1e-6

    def test_collinear_sample_is_degenerate(self):
        pts0 = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [0.0, 5.0]])
        assert fit_homography_minimal(make_pairs(pts0, apply_H(H_TRUE, pts0))) is None

    def test_least_squares(self, pairs):
        H = fit_homography_least_squares(pairs)
        _same_up_to_scale(H, H_TRUE, atol=1e-9)
        assert residuals_transfer(H, pairs).max() < 1e-6
        assert fit_homography_least_squares(pairs[:3]) is None

    def test_apply_maps_line_at_infinity_to_inf(self):
        # Points with h3 . [x, y, 1] == 0 have no finite image
        H = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 0.0, -2.0]])
        out = apply_H(H, np.array([[2.0, 3.0], [1.0, 1.0]]))
        assert np.isinf(out[0]).all()
        np.testing.assert_allclose(out[1], [-1.0, -1.0])

    @pytest.mark.parametrize("method", list(RobustEstimatorMethod))
    def test_exact_data_every_method(self, pairs, method):
        """Without outliers every strategy ends on the exact homography."""
        scores = np.ones(len(pairs))
        res = RobustEstimator(HomographyFitter(), pairs, scores, method=method, threshold=1.0).estimate()

        assert res.inliers.all()
        _same_up_to_scale(res.model, H_TRUE, atol=1e-9)
        assert residuals_transfer(res.model, pairs).max() < 1e-6

    def test_ransac_with_outliers(self, rng, pairs):
        data, clean = _corrupt_targets(rng, pairs, [2, 3], 0.3, 0.0, 640.0)
        res = RobustEstimator(HomographyFitter(), data, threshold=1.0).estimate()

        np.testing.assert_array_equal(res.inliers, clean)
        assert residuals_transfer(res.model, pairs).max() < 1e-6

    def test_covariance(self, pairs):
        res = RobustEstimator(HomographyFitter(), pairs, covariance_kept=True).estimate()
        assert res.covariance.shape == (9, 9)
        assert np.isfinite(res.covariance).all()


class TestAffine:
    """Test affine fitting."""

    @pytest.fixture
    def pairs(self, rng):
        pts0 = rng.uniform(-50.0, 50.0, size=(80, 2))
        return make_pairs(pts0, apply_T(T_TRUE, pts0))

    def test_minimal_fit(self, pairs):
        T = fit_affine_minimal(pairs[:3])
        np.testing.assert_allclose(T, T_TRUE, atol=1e-9)

    def test_collinear_sample_is_degenerate(self):
        pts0 = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])
        assert fit_affine_minimal(make_pairs(pts0, apply_T(T_TRUE, pts0))) is None
        assert fit_affine_least_squares(make_pairs(pts0, apply_T(T_TRUE, pts0))) is None

    def test_least_squares(self, pairs):
        np.testing.assert_allclose(fit_affine_least_squares(pairs), T_TRUE, atol=1e-9)

    def test_msac_with_outliers(self, rng, pairs):
        data, clean = _corrupt_targets(rng, pairs, [2, 3], 0.25, -100.0, 100.0)
        res = RobustEstimator(AffineFitter(), data, method="msac", threshold=0.5).estimate()

        np.testing.assert_array_equal(res.inliers, clean)
        np.testing.assert_allclose(res.model, T_TRUE, atol=1e-8)


class TestPlane:
    """Test plane fitting."""

    @pytest.fixture
    def points(self, rng):
        xy = rng.uniform(-10.0, 10.0, size=(150, 2))
        z = 0.5 * xy[:, 0] - 0.2 * xy[:, 1] + 3.0
        return np.column_stack([xy, z])

    def test_minimal_fit(self, points):
        plane = fit_plane_minimal(points[:3])
        _same_up_to_scale(plane, PLANE_TRUE, atol=1e-9)
        assert np.linalg.norm(plane[:3]) == pytest.approx(1.0)
        assert residuals_distance(plane, points).max() < 1e-9

    def test_collinear_points_are_degenerate(self):
        line = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 2.0, 2.0]])
        assert fit_plane_minimal(line) is None
        assert fit_plane_least_squares(np.vstack([line, [[3.0, 3.0, 3.0]]])) is None

    def test_least_squares(self, points):
        plane = fit_plane_least_squares(points)
        assert residuals_distance(plane, points).max() < 1e-9

    def test_promeds_with_quality_scores(self, rng, points):
        data = points.copy()
        bad = rng.choice(len(data), size=40, replace=False)
        offsets = rng.uniform(1.0, 5.0, size=40) * rng.choice([-1.0, 1.0], size=40)
        data[bad, 2] += offsets
        clean = np.ones(len(data), dtype=bool)
        clean[bad] = False

        scores = np.ones(len(data))
        scores[bad] = 1.0 / (1.0 + np.abs(offsets))

        res = RobustEstimator(PlaneFitter(), data, scores, method=RobustEstimatorMethod.PROMEDS).estimate()

        np.testing.assert_array_equal(res.inliers, clean)
        assert residuals_distance(res.model, points).max() < 1e-8


class TestPinholeCamera:
    """Test DLT camera fitting."""

    @pytest.fixture
    def pairs(self, rng):
        world = rng.uniform(-2.0, 2.0, size=(120, 3))
        return np.hstack([world, project(_camera(), world)])

    def test_minimal_fit(self, pairs):
        P = fit_camera_minimal(pairs[:6])
        np.testing.assert_allclose(P, normalize_camera(_camera()), atol=1e-8)
        assert residuals_reprojection(P, pairs).max() < 1e-6

    def test_coplanar_points_are_degenerate(self, rng):
        world = np.column_stack([rng.uniform(-2.0, 2.0, size=(6, 2)), np.zeros(6)])
        assert fit_camera_minimal(np.hstack([world, project(_camera(), world)])) is None

    def test_least_squares(self, pairs):
        P = fit_camera_least_squares(pairs)
        assert residuals_reprojection(P, pairs).max() < 1e-6
        assert fit_camera_least_squares(pairs[:5]) is None

    @pytest.mark.parametrize("method", ["lmeds", "msac"])
    def test_robust_with_outliers(self, rng, pairs, method):
        data, clean = _corrupt_targets(rng, pairs, [3, 4], 0.2, 0.0, 640.0)
        res = RobustEstimator(PinholeCameraFitter(), data, method=method, threshold=1.0).estimate()

        np.testing.assert_array_equal(res.inliers, clean)
        assert residuals_reprojection(res.model, pairs).max() < 1e-6

    def test_covariance(self, pairs):
        res = RobustEstimator(PinholeCameraFitter(), pairs, covariance_kept=True).estimate()
        assert res.covariance.shape == (12, 12)
        cov = res.covariance
        np.testing.assert_allclose(cov, cov.T, rtol=1e-6, atol=1e-9 * np.abs(cov).max())
