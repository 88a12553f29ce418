from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from common.geometry import is_convex_polygon, polygon_area, project_points
from common.types import Rejection


DEFAULT_MIN_AREA_PX = 1000.0


@dataclass
class Verification:
    """Projected sample outline in target space plus the verdict on it."""
    corners: np.ndarray            # (4, 2); NaN rows if a corner maps to infinity
    area: float
    rejection: Optional[Rejection] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


def sample_corners(width: float, height: float) -> np.ndarray:
    w, h = float(width), float(height)
    return np.array([[0.0, 0.0], [w, 0.0], [w, h], [0.0, h]], dtype=np.float64)


def verify_projection(
    width: float,
    height: float,
    H: np.ndarray,
    *,
    min_area: float = DEFAULT_MIN_AREA_PX,
    require_convex: bool = False,
) -> Verification:
    """
    Project the sample rectangle through H and judge plausibility.

    Rejects when a corner lands at infinity, when the projected quad is smaller
    than min_area (a quad of exactly min_area passes), and, if require_convex,
    when the quad is self-intersecting or concave.
    """
    if width <= 0 or height <= 0:
        raise ValueError("sample width/height must be > 0")
    corners = project_points(H, sample_corners(width, height))
    if not np.all(np.isfinite(corners)):
        return Verification(corners, 0.0, Rejection.DEGENERATE_QUAD)

    area = polygon_area(corners)
    if area < min_area:
        return Verification(corners, area, Rejection.AREA_TOO_SMALL)
    if require_convex and not is_convex_polygon(corners):
        return Verification(corners, area, Rejection.DEGENERATE_QUAD)
    return Verification(corners, area)
