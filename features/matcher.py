from __future__ import annotations
"""
Candidate correspondence generation.

- BruteForceMatcher(norm='l2'|'hamming') with .knn_match(query, train, k)
- Returns one CandidateMatch per query row that has at least one neighbour,
  neighbours sorted by ascending distance
"""

from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from common.types import CandidateMatch, Neighbor


_NORMS = {"l2": cv2.NORM_L2, "hamming": cv2.NORM_HAMMING}


@dataclass(frozen=True)
class BruteForceMatcher:
    norm: str = "l2"

    def __post_init__(self):
        if self.norm.lower() not in _NORMS:
            raise ValueError(f"Unsupported norm: {self.norm}")

    @classmethod
    def for_extractor(cls, extractor) -> "BruteForceMatcher":
        """L2 for float descriptors (SIFT), Hamming for binary ones (ORB/AKAZE)."""
        return cls("hamming" if getattr(extractor, "descriptor_kind", "float") == "binary" else "l2")

    def _prepare(self, des: np.ndarray) -> np.ndarray:
        if self.norm.lower() == "hamming":
            return np.ascontiguousarray(des, dtype=np.uint8)
        return np.ascontiguousarray(des, dtype=np.float32)

    def knn_match(self, query: np.ndarray, train: np.ndarray, k: int = 2) -> List[CandidateMatch]:
        """
        KNN over all train descriptors. A fresh cv2.BFMatcher is created per call
        so a single instance can be shared by worker threads.
        """
        if k < 1:
            raise ValueError("k must be >= 1")
        if query is None or train is None or len(query) == 0 or len(train) == 0:
            return []
        bf = cv2.BFMatcher(_NORMS[self.norm.lower()], crossCheck=False)
        knn = bf.knnMatch(self._prepare(query), self._prepare(train), k=k)
        out: List[CandidateMatch] = []
        for row in knn:
            if not row:
                continue
            ordered = sorted(row, key=lambda m: m.distance)
            out.append(
                CandidateMatch(
                    query_idx=int(ordered[0].queryIdx),
                    neighbors=tuple(Neighbor(int(m.trainIdx), float(m.distance)) for m in ordered),
                )
            )
        return out
