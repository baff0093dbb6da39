import argparse
import logging

import numpy as np

from robustcv.models.conic import conic_from_circle, residuals_locus
from robustcv.models.conic_fitter import ConicFitter
from robustcv.robust import EstimatorListener, RobustEstimator, RobustEstimatorError
from robustcv.utils.logger import setup_logger


class PrintListener(EstimatorListener):
    def on_estimate_start(self, estimator):
        print(f"[{estimator.method.name}] start")

    def on_estimate_end(self, estimator):
        print(f"[{estimator.method.name}] end")

    def on_estimate_progress_change(self, estimator, progress):
        print(f"[{estimator.method.name}] progress {progress:.0%}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Fit a circle (as a conic) with outliers.")
    parser.add_argument("--method", default="prosac",
                        choices=["ransac", "lmeds", "msac", "prosac", "promeds"])
    parser.add_argument("--points", type=int, default=1000)
    parser.add_argument("--outliers", type=float, default=0.2, help="fraction of corrupted points")
    parser.add_argument("--threshold", type=float, default=1e-6)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    setup_logger(log_level=logging.DEBUG if args.debug else logging.INFO)
    rng = np.random.default_rng(args.seed)

    # True circle
    center, radius = (1.0, 2.0), 5.0
    C_true = conic_from_circle(center, radius)

    # Points on the locus
    theta = rng.uniform(0.0, 2.0 * np.pi, size=args.points)
    pts = np.column_stack([center[0] + radius * np.cos(theta), center[1] + radius * np.sin(theta)])

    # Corrupt a fraction with Gaussian noise, quality drops with noise magnitude
    n_out = int(round(args.outliers * args.points))
    corrupted = rng.choice(args.points, size=n_out, replace=False)
    noise = rng.normal(0.0, 1.0, size=(n_out, 2))
    pts[corrupted] += noise

    scores = 1.0 + rng.uniform(-1e-3, 1e-3, size=args.points)
    scores[corrupted] = 1.0 / (1.0 + np.linalg.norm(noise, axis=1))

    estimator = RobustEstimator(
        ConicFitter(), pts, scores,
        method=args.method,
        listener=PrintListener(),
        threshold=args.threshold,
        progress_delta=0.25,
        seed=args.seed,
    )

    try:
        res = estimator.estimate()
    except RobustEstimatorError as e:
        print("Estimation failed:", e)
        return

    clean = np.ones(args.points, dtype=bool)
    clean[corrupted] = False

    print("C_true:\n", C_true)
    print("C_est:\n", res.model)
    print("num_inliers:", res.num_inliers, "/", args.points)
    print("threshold:", res.threshold)
    print("iterations:", res.iterations)
    print("max residual on clean points:", float(residuals_locus(res.model, pts[clean]).max()))


if __name__ == "__main__":
    main()
