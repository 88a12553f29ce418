from __future__ import annotations

from datetime import datetime, timezone
import time
import numpy as np


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_homography(x) -> np.ndarray:
    """
    Return a float64 3x3 copy scaled so H[2,2] == 1.

    Left unscaled when H[2,2] is ~0 (the map sends the origin to infinity);
    the projective transform is the same either way.
    """
    a = np.array(x, dtype=np.float64)
    if a.shape != (3, 3):
        raise ValueError("Expected 3x3")
    if abs(a[2, 2]) > 1e-12:
        a /= a[2, 2]
    return a


class Stopwatch:
    """
    Wall-clock timer for a block:

        with Stopwatch() as sw:
            work()
        sw.elapsed_ms
    """

    __slots__ = ("_t0", "elapsed_ms")

    def __init__(self) -> None:
        self._t0 = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Stopwatch":
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, *exc) -> None:
        self.elapsed_ms = (time.perf_counter() - self._t0) * 1e3
