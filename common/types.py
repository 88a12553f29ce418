from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np


Point = Tuple[float, float]


def _as_descriptor_array(descriptors: Any) -> np.ndarray:
    """Coerce to a read-only (N, D) array; None becomes shape (0, 0)."""
    if descriptors is None:
        return np.zeros((0, 0), dtype=np.float32)
    arr = np.asarray(descriptors)
    if arr.size == 0:
        return np.zeros((0, arr.shape[1] if arr.ndim == 2 else 0), dtype=arr.dtype)
    if arr.ndim != 2:
        raise ValueError("descriptors must be a 2D array (N, D)")
    arr = arr.copy()
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, slots=True)
class Keypoint:
    """
    Salient 2D location in an image's pixel space.

    Only (x, y) is used by the locator; size/angle/response are detector
    metadata carried through unchanged.
    """
    x: float
    y: float
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0

    @property
    def pt(self) -> Point:
        return (self.x, self.y)

    @classmethod
    def from_cv(cls, kp) -> "Keypoint":
        """Convert a cv2.KeyPoint (or anything with .pt/.size/.angle/.response)."""
        return cls(
            x=float(kp.pt[0]),
            y=float(kp.pt[1]),
            size=float(getattr(kp, "size", 0.0)),
            angle=float(getattr(kp, "angle", -1.0)),
            response=float(getattr(kp, "response", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class Sample:
    """
    A reference image to be located in the target.

    Attributes:
        name: identifier used for labels (file stem for catalog samples).
        width, height: source image dimensions in pixels.
        keypoints: ordered keypoints, parallel to descriptors rows.
        descriptors: (N, D) array; read-only after construction.
        image: decoded pixels, kept only for presenters/debugging.
        source: originating file path, if any.
    """
    name: str
    width: int
    height: int
    keypoints: Tuple[Keypoint, ...]
    descriptors: np.ndarray = field(repr=False, compare=False)
    image: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"sample {self.name!r}: width/height must be > 0")
        object.__setattr__(self, "keypoints", tuple(self.keypoints))
        object.__setattr__(self, "descriptors", _as_descriptor_array(self.descriptors))
        if len(self.keypoints) != self.descriptors.shape[0]:
            raise ValueError(
                f"sample {self.name!r}: {len(self.keypoints)} keypoints vs "
                f"{self.descriptors.shape[0]} descriptors"
            )

    @property
    def empty(self) -> bool:
        return self.descriptors.shape[0] == 0


@dataclass(frozen=True, slots=True)
class Target:
    """Features of the query image that all samples are matched against."""
    width: int
    height: int
    keypoints: Tuple[Keypoint, ...]
    descriptors: np.ndarray = field(repr=False, compare=False)
    image: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("target width/height must be > 0")
        object.__setattr__(self, "keypoints", tuple(self.keypoints))
        object.__setattr__(self, "descriptors", _as_descriptor_array(self.descriptors))
        if len(self.keypoints) != self.descriptors.shape[0]:
            raise ValueError("target keypoints/descriptors length mismatch")

    @property
    def empty(self) -> bool:
        return self.descriptors.shape[0] == 0


@dataclass(frozen=True, slots=True)
class Neighbor:
    train_idx: int
    distance: float


@dataclass(frozen=True, slots=True)
class CandidateMatch:
    """k nearest train descriptors for one query descriptor, closest first."""
    query_idx: int
    neighbors: Tuple[Neighbor, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "neighbors", tuple(self.neighbors))
        prev = -1.0
        for n in self.neighbors:
            if n.distance < 0:
                raise ValueError("distances must be >= 0")
            if n.distance < prev:
                raise ValueError("neighbors must be sorted by ascending distance")
            prev = n.distance

    @classmethod
    def of(cls, query_idx: int, pairs: Sequence[Tuple[int, float]]) -> "CandidateMatch":
        """Build from (train_idx, distance) pairs, e.g. CandidateMatch.of(0, [(3, 5.0), (8, 10.0)])."""
        return cls(query_idx, tuple(Neighbor(int(t), float(d)) for t, d in pairs))


@dataclass(frozen=True, slots=True)
class Match:
    query_idx: int
    train_idx: int
    distance: float

    def __post_init__(self) -> None:
        if self.distance < 0:
            raise ValueError("match distance must be >= 0")


class Rejection(str, Enum):
    """Why a sample produced no detection."""
    EMPTY_DESCRIPTORS = "empty_descriptors"
    TOO_FEW_MATCHES = "too_few_matches"
    FIT_FAILED = "fit_failed"
    AREA_TOO_SMALL = "area_too_small"
    DEGENERATE_QUAD = "degenerate_quad"

    @property
    def category(self) -> str:
        if self in (Rejection.EMPTY_DESCRIPTORS, Rejection.TOO_FEW_MATCHES):
            return "input_degenerate"
        if self is Rejection.FIT_FAILED:
            return "fit_failed"
        return "implausible_geometry"


@dataclass(slots=True)
class Detection:
    """
    A verified instance of a sample in the target.

    Attributes:
        name: sample identifier.
        corners: 4 target-space points, projections of the sample corners
            (0,0), (W,0), (W,H), (0,H) in that order.
        area: absolute polygon area (px^2).
        centroid: mean of the 4 corners; label anchor.
        inliers, matches: RANSAC support out of the ratio-test matches.
        confidence: [0..1] score from inlier ratio and reprojection RMSE.
    """
    name: str
    corners: Tuple[Point, Point, Point, Point]
    area: float
    centroid: Point
    inliers: int = 0
    matches: int = 0
    confidence: float = 0.0

    def __post_init__(self) -> None:
        if len(self.corners) != 4:
            raise ValueError("detection needs exactly 4 corners")
        self.corners = tuple((float(x), float(y)) for x, y in self.corners)  # type: ignore[assignment]
        self.centroid = (float(self.centroid[0]), float(self.centroid[1]))
        if self.area < 0:
            raise ValueError("area must be >= 0")
        self.confidence = float(np.clip(self.confidence, 0.0, 1.0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "corners": [list(c) for c in self.corners],
            "area": self.area,
            "centroid": list(self.centroid),
            "inliers": self.inliers,
            "matches": self.matches,
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class SampleOutcome:
    """Per-sample diagnostics; exactly one of detection/rejection is set."""
    name: str
    candidates: int = 0
    good_matches: int = 0
    inliers: int = 0
    area: Optional[float] = None
    detection: Optional[Detection] = None
    rejection: Optional[Rejection] = None
    elapsed_ms: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.detection is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": "detected" if self.accepted else self.rejection.value if self.rejection else "unknown",
            "category": None if self.rejection is None else self.rejection.category,
            "candidates": self.candidates,
            "good_matches": self.good_matches,
            "inliers": self.inliers,
            "area": self.area,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "detection": None if self.detection is None else self.detection.to_dict(),
        }
