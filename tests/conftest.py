"""
Shared fixtures: synthetic keypoints/descriptors and collaborator doubles so the
locator core can be exercised without any image processing.
"""

import os
import sys
import time
from typing import Dict, List

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

from common.types import CandidateMatch, Keypoint, Neighbor, Sample, Target
from locator.homography import HomographyResult


DESC_DIM = 64


class NumpyKnnMatcher:
    """Exact L2 k-NN in numpy; stands in for the OpenCV brute-force matcher."""

    def knn_match(self, query: np.ndarray, train: np.ndarray, k: int = 2) -> List[CandidateMatch]:
        if len(query) == 0 or len(train) == 0:
            return []
        q = np.asarray(query, dtype=np.float64)
        t = np.asarray(train, dtype=np.float64)
        d = np.sqrt(((q[:, None, :] - t[None, :, :]) ** 2).sum(axis=2))
        out = []
        for qi in range(q.shape[0]):
            order = np.argsort(d[qi], kind="stable")[:k]
            out.append(CandidateMatch(qi, tuple(Neighbor(int(j), float(d[qi, j])) for j in order)))
        return out


class SlowMatcher(NumpyKnnMatcher):
    """Delays matching per query array (keyed by id) to scramble completion order."""

    def __init__(self, delays: Dict[int, float]):
        self.delays = delays
        self.finished: List[int] = []

    def knn_match(self, query, train, k=2):
        time.sleep(self.delays.get(id(query), 0.0))
        out = super().knn_match(query, train, k)
        self.finished.append(id(query))
        return out


class FailingEstimator:
    """Always reports a failed fit."""

    def estimate(self, src_pts, dst_pts):
        return HomographyResult.failed(len(src_pts), "degenerate")


def apply_h(H: np.ndarray, pts: np.ndarray) -> np.ndarray:
    P = np.hstack([pts, np.ones((len(pts), 1))]) @ np.asarray(H, dtype=np.float64).T
    return P[:, :2] / P[:, 2:3]


def make_target(rng: np.random.Generator, n: int = 800, size=(800, 600)) -> Target:
    w, h = size
    pts = np.column_stack([rng.uniform(0, w, n), rng.uniform(0, h, n)])
    des = rng.normal(0.0, 1.0, size=(n, DESC_DIM)).astype(np.float32)
    return Target(width=w, height=h, keypoints=tuple(Keypoint(float(x), float(y)) for x, y in pts), descriptors=des)


def make_matching_sample(
    name: str,
    target: Target,
    H_sample_to_target: np.ndarray,
    size=(200, 150),
    n_inliers: int = 40,
    n_noise: int = 20,
    rng: np.random.Generator = None,
) -> Sample:
    """
    Sample whose first n_inliers keypoints are exact back-projections of target
    keypoints lying inside the projected sample outline, with near-copies of their
    descriptors; the rest are random keypoints with random descriptors.
    """
    rng = rng or np.random.default_rng(0)
    w, h = size
    Hinv = np.linalg.inv(H_sample_to_target)
    tgt_pts = np.array([kp.pt for kp in target.keypoints])
    back = apply_h(Hinv, tgt_pts)
    inside = np.where((back[:, 0] > 0) & (back[:, 0] < w) & (back[:, 1] > 0) & (back[:, 1] < h))[0][:n_inliers]
    kps = [Keypoint(float(x), float(y)) for x, y in back[inside]]
    des = [target.descriptors[i] + rng.normal(0, 0.01, DESC_DIM).astype(np.float32) for i in inside]
    for _ in range(n_noise):
        kps.append(Keypoint(float(rng.uniform(0, w)), float(rng.uniform(0, h))))
        des.append(rng.normal(0.0, 1.0, DESC_DIM).astype(np.float32))
    return Sample(name=name, width=w, height=h, keypoints=tuple(kps), descriptors=np.array(des, dtype=np.float32))


def make_weak_sample(name: str, target: Target, n_copies: int = 3, n_noise: int = 30, rng=None, size=(200, 150)) -> Sample:
    """Only n_copies descriptors have an unambiguous partner in the target (< 4 good matches)."""
    rng = rng or np.random.default_rng(1)
    w, h = size
    kps, des = [], []
    for i in range(n_copies):
        kps.append(Keypoint(float(rng.uniform(0, w)), float(rng.uniform(0, h))))
        des.append(target.descriptors[i].copy())
    for _ in range(n_noise):
        kps.append(Keypoint(float(rng.uniform(0, w)), float(rng.uniform(0, h))))
        des.append(rng.normal(0.0, 1.0, DESC_DIM).astype(np.float32))
    return Sample(name=name, width=w, height=h, keypoints=tuple(kps), descriptors=np.array(des, dtype=np.float32))


def similarity_h(scale: float = 1.5, angle_deg: float = 10.0, tx: float = 250.0, ty: float = 180.0) -> np.ndarray:
    a = np.radians(angle_deg)
    c, s = scale * np.cos(a), scale * np.sin(a)
    return np.array([[c, -s, tx], [s, c, ty], [0.0, 0.0, 1.0]], dtype=np.float64)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def target(rng) -> Target:
    return make_target(rng)


@pytest.fixture
def knn_matcher() -> NumpyKnnMatcher:
    return NumpyKnnMatcher()
