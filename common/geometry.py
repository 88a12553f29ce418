from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np


# -------------------------
# Projective helpers
# -------------------------
def project_points(H: np.ndarray, pts: np.ndarray) -> np.ndarray:
    """
    Map (N, 2) points through a 3x3 homography.

    Points whose homogeneous w is ~0 (sent to infinity) come back as NaN rather
    than the silent zeros cv2.perspectiveTransform produces.
    """
    P = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    if P.shape[0] == 0:
        return np.zeros((0, 2), dtype=np.float64)
    Hm = np.asarray(H, dtype=np.float64).reshape(3, 3)
    homog = np.hstack([P, np.ones((P.shape[0], 1))]) @ Hm.T
    w = homog[:, 2:3]
    out = np.full((P.shape[0], 2), np.nan, dtype=np.float64)
    ok = np.abs(w[:, 0]) > 1e-12
    out[ok] = homog[ok, :2] / w[ok]
    return out


def reprojection_errors(H: np.ndarray, src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """Forward transfer error |H*src - dst| in pixels; inf where the projection is undefined."""
    proj = project_points(H, src)
    err = np.linalg.norm(proj - np.asarray(dst, dtype=np.float64).reshape(-1, 2), axis=1)
    err[~np.isfinite(err)] = np.inf
    return err


# -------------------------
# Polygons
# -------------------------
def polygon_signed_area(pts: np.ndarray) -> float:
    """Shoelace area; positive for counter-clockwise order in a y-up frame."""
    P = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    if P.shape[0] < 3:
        return 0.0
    x, y = P[:, 0], P[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def polygon_area(pts: np.ndarray) -> float:
    return abs(polygon_signed_area(pts))


def polygon_centroid(pts: np.ndarray) -> Tuple[float, float]:
    """Vertex mean (not the area centroid); used as label anchor."""
    P = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    c = P.mean(axis=0)
    return (float(c[0]), float(c[1]))


def is_convex_polygon(pts: np.ndarray, eps: float = 1e-9) -> bool:
    """
    True if every turn has the same orientation. For quadrilaterals this also
    rules out self-intersecting ("bow-tie") shapes.
    """
    P = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    n = P.shape[0]
    if n < 3 or not np.all(np.isfinite(P)):
        return False
    sign = 0
    for i in range(n):
        a, b, c = P[i], P[(i + 1) % n], P[(i + 2) % n]
        cross = (b[0] - a[0]) * (c[1] - b[1]) - (b[1] - a[1]) * (c[0] - b[0])
        if abs(cross) <= eps:
            return False
        s = 1 if cross > 0 else -1
        if sign == 0:
            sign = s
        elif s != sign:
            return False
    return True


def triangle_area(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    return 0.5 * abs((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]))


# -------------------------
# Scoring
# -------------------------
def confidence_score(
    inliers: int,
    total_matches: int,
    rmse_px: float,
    alpha: float = 6.0,
    beta: float = 0.5,
    bias: float = 2.0,
) -> float:
    """
    Bounded confidence in [0,1]:
      conf = σ( α * (inliers/total) - β * rmse_px - bias )
    where σ is the logistic function. Non-finite RMSE counts as no support.
    """
    if total_matches <= 0 or inliers <= 0 or not math.isfinite(rmse_px):
        return 0.0
    ratio = inliers / float(total_matches)
    x = max(-50.0, min(50.0, alpha * ratio - beta * rmse_px - bias))
    return float(1.0 / (1.0 + math.exp(-x)))
