from __future__ import annotations
"""
Collaborator contracts consumed by the locator core.

The core never imports OpenCV feature code directly; anything satisfying these
protocols can be injected (the OpenCV implementations in `features`, or
synthetic doubles in tests).
"""

from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from common.types import CandidateMatch, Keypoint

if TYPE_CHECKING:
    from locator.homography import HomographyResult


@runtime_checkable
class FeatureExtractor(Protocol):
    def extract(self, image: Optional[np.ndarray]) -> Tuple[Sequence[Keypoint], np.ndarray]:
        """Keypoints + parallel (N, D) descriptors; empty output instead of raising."""
        ...


@runtime_checkable
class Matcher(Protocol):
    def knn_match(self, query: np.ndarray, train: np.ndarray, k: int) -> List[CandidateMatch]:
        """One CandidateMatch per query row with >= 1 neighbour, neighbours closest first."""
        ...


@runtime_checkable
class HomographyEstimator(Protocol):
    def estimate(self, src_pts: np.ndarray, dst_pts: np.ndarray) -> HomographyResult:
        """Fit (N, 2) src -> dst points; H is None on failure."""
        ...
