# Andy Zhao
"""
Minimal sample generators.

UniformSampler (RANSAC / LMedS / MSAC):
    draw k distinct indices uniformly from [0, N).

ProgressiveSampler (PROSAC / PROMedS):
    correspondences are sorted once by descending quality score. Sampling
    starts from the top-k best correspondences and the active set U_n grows
    towards N following the PROSAC growth function, so good correspondences
    are tried first but every correspondence eventually gets a chance.

PROSAC growth function (Chum & Matas, 2005):
    T_N = number of samples RANSAC would draw (max_samples)
    T_n = T_N * C(n, k) / C(N, k)   (expected # samples containing only U_n)

    computed incrementally:
        T_k     = T_N * prod_{i=0}^{k-1} (k - i) / (N - i)
        T_{n+1} = T_n * (n + 1) / (n + 1 - k)
        T'_{n+1} = T'_n + ceil(T_{n+1} - T_n),  T'_k = 1

    At draw t: if t > T'_n (and n < n_star), grow n by one.
    If T'_n < t:   draw k indices from U_n
    else:          draw k-1 indices from U_{n-1} plus the n-th correspondence
"""
from __future__ import annotations

import math

import numpy as np

from .types import FloatArray, IndexArray


class UniformSampler:
    """
    Plain RANSAC sampling: k distinct indices, uniformly at random.
    """

    def __init__(self, n: int, k: int, rng: np.random.Generator) -> None:
        if k < 1:
            raise ValueError("sample size must be >= 1")
        if n < k:
            raise ValueError(f"Need at least {k} correspondences, got {n}")
        self.n = int(n)
        self.k = int(k)
        self.rng = rng

        # Pre-allocate an array of indices for fast sampling
        self._all_idx = np.arange(self.n)

    def draw(self) -> IndexArray:
        return self.rng.choice(self._all_idx, size=self.k, replace=False)


class ProgressiveSampler:
    """
    PROSAC progressive sampling over quality-sorted correspondences.

    Returned indices always refer to the ORIGINAL ordering of the data.

    Attributes:
    - order: original indices sorted by descending quality score
    - n: current size of the active set U_n
    - n_star: termination length; the active set never grows beyond it
    - t: number of samples drawn so far
    """

    def __init__(
            self,
            quality_scores: FloatArray,
            k: int,
            rng: np.random.Generator,
            *,
            max_samples: int = 200000,
    ) -> None:
        scores = np.asarray(quality_scores, dtype=np.float64)
        if scores.ndim != 1:
            raise ValueError(f"quality_scores must be 1D, got shape {scores.shape}")
        if k < 1:
            raise ValueError("sample size must be >= 1")
        if scores.shape[0] < k:
            raise ValueError(f"Need at least {k} quality scores, got {scores.shape[0]}")

        self.N = int(scores.shape[0])
        self.k = int(k)
        self.rng = rng

        # Stable sort so that equal scores keep the caller's ordering
        self.order: IndexArray = np.argsort(-scores, kind="stable")

        # ---------- Growth function state ----------
        self.n = self.k
        self.n_star = self.N
        self.t = 0

        T_N = float(max(1, int(max_samples)))
        T_n = T_N
        for i in range(self.k):
            T_n *= float(self.k - i) / float(self.N - i)
        self._T_n = T_n
        self._T_n_prime = 1

    def limit(self, n_star: int) -> None:
        """
        Lower the termination length: the active set stops growing at n_star.
        """
        self.n_star = int(min(max(n_star, self.k), self.N))

    def _grow(self) -> None:
        # Choose the sampling set U_n
        if self.t > self._T_n_prime and self.n < self.n_star:
            T_n_plus_1 = self._T_n * (self.n + 1) / float(self.n + 1 - self.k)
            self.n += 1
            self._T_n_prime += int(math.ceil(T_n_plus_1 - self._T_n))
            self._T_n = T_n_plus_1

    def draw(self) -> IndexArray:
        self.t += 1
        self._grow()

        if self._T_n_prime < self.t:
            # Standard RANSAC sample from the whole active set U_n
            ranks = self.rng.choice(self.n, size=self.k, replace=False)
        else:
            # k-1 samples from U_{n-1} plus the n-th best correspondence
            ranks = np.empty(self.k, dtype=np.intp)
            ranks[: self.k - 1] = self.rng.choice(self.n - 1, size=self.k - 1, replace=False)
            ranks[self.k - 1] = self.n - 1

        return self.order[ranks]
