from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import numpy as np

from common.types import CandidateMatch, Keypoint, Match


def ratio_test(
    candidates: Iterable[CandidateMatch],
    ratio: float = 0.75,
    *,
    unique_train: bool = False,
) -> List[Match]:
    """
    Lowe nearest-neighbour distance ratio test on k-NN candidates (k >= 2).

    Keeps the closest neighbour iff best.distance < ratio * second.distance.
    Entries with fewer than two neighbours cannot be disambiguated and are
    dropped. Output preserves input order. With unique_train=True only the
    first accepted match per train index survives (one-to-one on the target).
    """
    if not (0.0 < ratio <= 1.0):
        raise ValueError("ratio must be in (0, 1]")
    good: List[Match] = []
    used_train = set()
    for cm in candidates:
        if len(cm.neighbors) < 2:
            continue
        m, n = cm.neighbors[0], cm.neighbors[1]
        if m.distance < ratio * n.distance:
            if unique_train:
                if m.train_idx in used_train:
                    continue
                used_train.add(m.train_idx)
            good.append(Match(cm.query_idx, m.train_idx, m.distance))
    return good


def matches_to_points(
    matches: Sequence[Match],
    query_kps: Sequence[Keypoint],
    train_kps: Sequence[Keypoint],
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert matches into parallel (N, 2) float64 point arrays:
      src[i] (sample space) <-> dst[i] (target space)
    """
    if len(matches) == 0:
        return np.empty((0, 2), dtype=np.float64), np.empty((0, 2), dtype=np.float64)
    src = np.array([query_kps[m.query_idx].pt for m in matches], dtype=np.float64)
    dst = np.array([train_kps[m.train_idx].pt for m in matches], dtype=np.float64)
    return src, dst
