from __future__ import annotations
"""
Robust homography estimation (sample image -> target image).

- dlt_homography: normalised Direct Linear Transform over >= 4 correspondences
- RansacHomographyEstimator: numpy RANSAC with degenerate-sample rejection,
  adaptive iteration count (bounded by max_iters) and least-squares refinement
- OpenCVHomographyEstimator: same contract on top of cv2.findHomography
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from common.geometry import reprojection_errors, triangle_area
from common.utils import normalize_homography


MIN_CORRESPONDENCES = 4


@dataclass
class HomographyResult:
    """
    Outcome of one fit. H is None on failure and `reason` says why:
      "insufficient" (< 4 correspondences), "degenerate" (no usable minimal
      sample), "min_inliers" (best support below the threshold).
    """
    H: Optional[np.ndarray]
    inlier_mask: np.ndarray
    rmse_px: float
    inliers: int
    total: int
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.H is not None

    @property
    def inlier_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.inliers / float(self.total)

    @classmethod
    def failed(cls, total: int, reason: str) -> "HomographyResult":
        return cls(None, np.zeros((total,), dtype=bool), float("inf"), 0, total, reason)


# -----------------------------
# DLT
# -----------------------------

def _hartley_normalize(pts: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Translate to the centroid and scale so the mean distance is sqrt(2)."""
    c = pts.mean(axis=0)
    d = float(np.linalg.norm(pts - c, axis=1).mean())
    s = math.sqrt(2.0) / d if d > 1e-12 else 1.0
    T = np.array([[s, 0.0, -s * c[0]],
                  [0.0, s, -s * c[1]],
                  [0.0, 0.0, 1.0]], dtype=np.float64)
    return (pts - c) * s, T


def dlt_homography(src: np.ndarray, dst: np.ndarray) -> Optional[np.ndarray]:
    """
    Least-squares H with dst ~ H @ src from N >= 4 correspondences.
    Returns None if the solution is singular or not finite.
    """
    src = np.asarray(src, dtype=np.float64).reshape(-1, 2)
    dst = np.asarray(dst, dtype=np.float64).reshape(-1, 2)
    n = src.shape[0]
    if n < MIN_CORRESPONDENCES or dst.shape[0] != n:
        raise ValueError("dlt_homography needs >= 4 matched point pairs")

    ns, Ts = _hartley_normalize(src)
    nd, Td = _hartley_normalize(dst)
    x, y = ns[:, 0], ns[:, 1]
    u, v = nd[:, 0], nd[:, 1]

    A = np.zeros((2 * n, 9), dtype=np.float64)
    A[0::2, 0] = -x
    A[0::2, 1] = -y
    A[0::2, 2] = -1.0
    A[0::2, 6] = u * x
    A[0::2, 7] = u * y
    A[0::2, 8] = u
    A[1::2, 3] = -x
    A[1::2, 4] = -y
    A[1::2, 5] = -1.0
    A[1::2, 6] = v * x
    A[1::2, 7] = v * y
    A[1::2, 8] = v

    try:
        _, _, Vt = np.linalg.svd(A)
        Hn = Vt[-1].reshape(3, 3)
        H = np.linalg.inv(Td) @ Hn @ Ts
    except np.linalg.LinAlgError:
        return None

    if not np.all(np.isfinite(H)):
        return None
    H = normalize_homography(H)
    if not np.all(np.isfinite(H)) or abs(np.linalg.det(H)) < 1e-12:
        return None
    return H


def is_degenerate_sample(pts: np.ndarray, rel_eps: float = 1e-3) -> bool:
    """
    True if any three of the points are (nearly) collinear or any two coincide.
    Tolerance is relative to the squared extent of the points.
    """
    P = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    extent = float(np.ptp(P, axis=0).max()) if P.size else 0.0
    tol = rel_eps * extent * extent
    k = P.shape[0]
    for i in range(k):
        for j in range(i + 1, k):
            for m in range(j + 1, k):
                if triangle_area(P[i], P[j], P[m]) <= tol:
                    return True
    return False


def adaptive_iterations(inlier_ratio: float, confidence: float, cap: int, sample_size: int = 4) -> int:
    """Trials needed to draw one all-inlier sample with the given confidence, capped."""
    if inlier_ratio >= 1.0:
        return 1
    if inlier_ratio <= 0.0:
        return cap
    denom = math.log(1.0 - inlier_ratio ** sample_size) if inlier_ratio ** sample_size < 1.0 else -math.inf
    if denom >= 0.0:
        return cap
    need = math.ceil(math.log(1.0 - confidence) / denom)
    return int(max(1, min(cap, need)))


def _rmse(err: np.ndarray, mask: np.ndarray) -> float:
    if not mask.any():
        return float("inf")
    return float(np.sqrt(np.mean(err[mask] ** 2)))


# -----------------------------
# Estimators
# -----------------------------

def _check_ransac_params(est) -> None:
    if est.ransac_px <= 0:
        raise ValueError("ransac_px must be > 0")
    if est.max_iters < 1:
        raise ValueError("max_iters must be >= 1")
    if not (0.0 < est.confidence < 1.0):
        raise ValueError("confidence must be in (0, 1)")
    if est.min_inliers < MIN_CORRESPONDENCES:
        raise ValueError("min_inliers must be >= 4")


@dataclass(frozen=True)
class RansacHomographyEstimator:
    """
    RANSAC over minimal 4-point samples.

    Args:
        ransac_px: inlier threshold on forward reprojection error (pixels)
        max_iters: hard cap on sampling attempts, degenerate draws included
        confidence: target probability of drawing one outlier-free sample
        min_inliers: minimum support for the best model to be accepted
        refine: re-fit on all inliers (kept only if support does not drop)
        seed: RNG seed; every estimate() call starts from it, so runs are
            reproducible and the estimator can be shared across threads
    """
    ransac_px: float = 3.0
    max_iters: int = 2000
    confidence: float = 0.995
    min_inliers: int = 4
    refine: bool = True
    seed: Optional[int] = None

    def __post_init__(self):
        _check_ransac_params(self)

    def estimate(self, src_pts: np.ndarray, dst_pts: np.ndarray) -> HomographyResult:
        src = np.asarray(src_pts, dtype=np.float64).reshape(-1, 2)
        dst = np.asarray(dst_pts, dtype=np.float64).reshape(-1, 2)
        if src.shape != dst.shape:
            raise ValueError("src_pts and dst_pts must have the same shape")
        n = src.shape[0]
        if n < MIN_CORRESPONDENCES:
            return HomographyResult.failed(n, "insufficient")

        rng = np.random.default_rng(self.seed)
        best_H: Optional[np.ndarray] = None
        best_mask = np.zeros((n,), dtype=bool)
        best_err = np.full((n,), np.inf)
        best_count = 0
        best_score = math.inf

        # with exactly 4 points every draw is the same subset
        budget = 1 if n == MIN_CORRESPONDENCES else self.max_iters
        needed = budget
        trials = 0
        while trials < needed:
            trials += 1
            idx = rng.choice(n, size=MIN_CORRESPONDENCES, replace=False)
            if is_degenerate_sample(src[idx]) or is_degenerate_sample(dst[idx]):
                continue
            Hc = dlt_homography(src[idx], dst[idx])
            if Hc is None:
                continue

            err = reprojection_errors(Hc, src, dst)
            mask = err < self.ransac_px
            count = int(mask.sum())
            # MSAC-style truncated error breaks ties between equal supports
            score = float(np.minimum(err, self.ransac_px).sum())
            if best_H is None or count > best_count or (count == best_count and score < best_score):
                best_H, best_mask, best_err = Hc, mask, err
                best_count, best_score = count, score
                needed = min(budget, adaptive_iterations(count / n, self.confidence, budget))

        if best_H is None:
            return HomographyResult.failed(n, "degenerate")
        if best_count < self.min_inliers:
            return HomographyResult.failed(n, "min_inliers")

        if self.refine and best_count > MIN_CORRESPONDENCES:
            H_ref = dlt_homography(src[best_mask], dst[best_mask])
            if H_ref is not None:
                err_ref = reprojection_errors(H_ref, src, dst)
                mask_ref = err_ref < self.ransac_px
                if int(mask_ref.sum()) >= best_count:
                    best_H, best_mask, best_err = H_ref, mask_ref, err_ref
                    best_count = int(mask_ref.sum())

        return HomographyResult(best_H, best_mask, _rmse(best_err, best_mask), best_count, n)


@dataclass(frozen=True)
class OpenCVHomographyEstimator:
    """cv2.findHomography(..., cv2.RANSAC) behind the same contract."""
    ransac_px: float = 3.0
    max_iters: int = 2000
    confidence: float = 0.995
    min_inliers: int = 4

    def __post_init__(self):
        _check_ransac_params(self)

    def estimate(self, src_pts: np.ndarray, dst_pts: np.ndarray) -> HomographyResult:
        src = np.asarray(src_pts, dtype=np.float64).reshape(-1, 2)
        dst = np.asarray(dst_pts, dtype=np.float64).reshape(-1, 2)
        if src.shape != dst.shape:
            raise ValueError("src_pts and dst_pts must have the same shape")
        n = src.shape[0]
        if n < MIN_CORRESPONDENCES:
            return HomographyResult.failed(n, "insufficient")

        H, mask = cv2.findHomography(
            src.astype(np.float32).reshape(-1, 1, 2),
            dst.astype(np.float32).reshape(-1, 1, 2),
            cv2.RANSAC,
            ransacReprojThreshold=float(self.ransac_px),
            maxIters=int(self.max_iters),
            confidence=float(self.confidence),
        )
        if H is None or mask is None:
            return HomographyResult.failed(n, "degenerate")

        H = normalize_homography(H)
        inlier_mask = mask.ravel().astype(bool)
        ninl = int(inlier_mask.sum())
        if ninl < self.min_inliers:
            return HomographyResult.failed(n, "min_inliers")
        err = reprojection_errors(H, src, dst)
        return HomographyResult(H, inlier_mask, _rmse(err, inlier_mask), ninl, n)


def make_estimator(params) -> "RansacHomographyEstimator | OpenCVHomographyEstimator":
    """Build the estimator named by a HomographyParams section."""
    if params.method == "opencv":
        return OpenCVHomographyEstimator(
            ransac_px=params.ransac_px,
            max_iters=params.max_iters,
            confidence=params.confidence,
            min_inliers=params.min_inliers,
        )
    return RansacHomographyEstimator(
        ransac_px=params.ransac_px,
        max_iters=params.max_iters,
        confidence=params.confidence,
        min_inliers=params.min_inliers,
        refine=params.refine,
        seed=params.seed,
    )
