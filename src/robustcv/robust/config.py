# Andy Zhao
"""
Estimator configuration.

EstimatorConfig is an immutable parameter object validated on construction.
The estimator swaps whole configs (dataclasses.replace), so a rejected value
never leaves a half-updated configuration behind.

Configs can also be loaded from plain dicts or YAML files:

    ransac:
      threshold: 2.0
      confidence: 0.99
      max_iterations: 2000
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

# ---------- Defaults ----------
DEFAULT_THRESHOLD = 1.0
DEFAULT_CONFIDENCE = 0.99
DEFAULT_MAX_ITERATIONS = 5000
DEFAULT_PROGRESS_DELTA = 0.05
DEFAULT_RESULT_REFINED = True
DEFAULT_COVARIANCE_KEPT = False
DEFAULT_STOP_THRESHOLD = 0.0
DEFAULT_INLIER_FACTOR = 1.0
DEFAULT_ETA0 = 0.05
DEFAULT_BETA = 0.01
DEFAULT_MAX_DEGENERATE_RETRIES = 100
DEFAULT_SEED = 0


@dataclass(frozen=True)
class EstimatorConfig:
    """
    Parameters shared by every robust method.

    threshold:
        Inlier cutoff on residuals for RANSAC / MSAC / PROSAC.
        LMedS / PROMedS derive their own threshold from the median residual.
    confidence:
        Target probability of drawing at least one all-inlier sample. Drives the
        adaptive iteration bound.
    max_iterations:
        Hard cap on iterations.
    progress_delta:
        Minimum progress advance between two progress notifications.
    result_refined:
        Re-fit the best model with all its inliers (full solver).
    covariance_kept:
        Also estimate the parameter covariance of the refined model.
    stop_threshold:
        LMedS / PROMedS stop as soon as the derived threshold is below this
        value. 0 disables it.
    inlier_factor:
        Multiplier applied to the LMedS / PROMedS derived threshold.
    eta0, beta:
        PROSAC non-randomness parameters: probability of accepting a bad
        model, and of an outlier being classified as inlier by chance.
    max_degenerate_retries:
        Consecutive degenerate minimal samples tolerated before failing.
    seed:
        RNG seed for reproducible sampling. None = fresh entropy each run.
    """
    threshold: float = DEFAULT_THRESHOLD
    confidence: float = DEFAULT_CONFIDENCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    progress_delta: float = DEFAULT_PROGRESS_DELTA
    result_refined: bool = DEFAULT_RESULT_REFINED
    covariance_kept: bool = DEFAULT_COVARIANCE_KEPT
    stop_threshold: float = DEFAULT_STOP_THRESHOLD
    inlier_factor: float = DEFAULT_INLIER_FACTOR
    eta0: float = DEFAULT_ETA0
    beta: float = DEFAULT_BETA
    max_degenerate_retries: int = DEFAULT_MAX_DEGENERATE_RETRIES
    seed: Optional[int] = DEFAULT_SEED

    def __post_init__(self) -> None:
        if not self.threshold > 0.0:
            raise ValueError(f"threshold must be > 0, got {self.threshold}")
        if not 0.0 < self.confidence <= 1.0:
            raise ValueError(f"confidence must be in (0, 1], got {self.confidence}")
        if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
            raise ValueError(f"max_iterations must be an integer >= 1, got {self.max_iterations}")
        if not 0.0 <= self.progress_delta <= 1.0:
            raise ValueError(f"progress_delta must be in [0, 1], got {self.progress_delta}")
        if not self.stop_threshold >= 0.0:
            raise ValueError(f"stop_threshold must be >= 0, got {self.stop_threshold}")
        if not self.inlier_factor >= 1.0:
            raise ValueError(f"inlier_factor must be >= 1, got {self.inlier_factor}")
        if not 0.0 < self.eta0 < 1.0:
            raise ValueError(f"eta0 must be in (0, 1), got {self.eta0}")
        if not 0.0 < self.beta < 1.0:
            raise ValueError(f"beta must be in (0, 1), got {self.beta}")
        if self.max_degenerate_retries < 1:
            raise ValueError(f"max_degenerate_retries must be >= 1, got {self.max_degenerate_retries}")
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be None or >= 0, got {self.seed}")

    # ---------- Loading / dumping ----------
    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "EstimatorConfig":
        """
        Build a config from a mapping. Unknown keys are rejected so typos
        in config files surface immediately.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown estimator config keys: {sorted(unknown)}")
        return cls(**dict(values))

    @classmethod
    def from_yaml(cls, path: str | Path, section: Optional[str] = None) -> "EstimatorConfig":
        """
        Load a config from a YAML file.

        section: optional top-level key holding the estimator parameters.
        """
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}

        if section is not None:
            if section not in doc:
                raise ValueError(f"Section '{section}' not found in {path}")
            doc = doc[section] or {}

        if not isinstance(doc, Mapping):
            raise ValueError(f"Expected a mapping of estimator parameters in {path}")
        return cls.from_dict(doc)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
