from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Tuple

import cv2
import numpy as np

from common.logging_setup import get_logger
from common.types import Detection
from common.utils import iso_now_ms


log = get_logger("presenter")

OUTLINE_BGR = (0, 255, 0)
LABEL_BGR = (0, 0, 255)


def draw_detections(
    image: np.ndarray,
    detections: Iterable[Detection],
    *,
    outline: Tuple[int, int, int] = OUTLINE_BGR,
    label: Tuple[int, int, int] = LABEL_BGR,
    thickness: int = 3,
    font_scale: float = 0.7,
    show_confidence: bool = False,
) -> np.ndarray:
    """
    Draw each detection's quadrilateral and its name centered on the centroid.
    Returns a new BGR image; the input is not modified.
    """
    out = image.copy()
    if out.ndim == 2:
        out = cv2.cvtColor(out, cv2.COLOR_GRAY2BGR)
    for det in detections:
        pts = np.round(np.asarray(det.corners, dtype=np.float64)).astype(np.int32).reshape(-1, 1, 2)
        cv2.polylines(out, [pts], isClosed=True, color=outline, thickness=thickness, lineType=cv2.LINE_AA)

        text = f"{det.name} {det.confidence:.2f}" if show_confidence else det.name
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 2)
        cx, cy = det.centroid
        org = (int(round(cx - tw / 2.0)), int(round(cy - th / 2.0)))
        cv2.putText(out, text, org, cv2.FONT_HERSHEY_SIMPLEX, font_scale, label, 2, cv2.LINE_AA)
    return out


def show(image: np.ndarray, title: str = "Cards") -> None:
    """Blocking preview window; any key closes it."""
    cv2.imshow(title, image)
    cv2.waitKey(0)
    cv2.destroyWindow(title)


def save(image: np.ndarray, path: str) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    ok, buf = cv2.imencode(p.suffix or ".png", image)
    if not ok:
        raise RuntimeError(f"Failed to encode result image as {p.suffix or '.png'}")
    buf.tofile(str(p))
    log.info("Saved result image", extra={"extra": {"path": str(p)}})
    return p


def write_metrics(path: str, report) -> int:
    """
    Append one JSON row per sample outcome of a LocateReport. Returns rows written.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    ts = iso_now_ms()
    n = 0
    with p.open("a", buffering=1) as f:
        for outcome in report.outcomes:
            f.write(json.dumps({"ts": ts, **outcome.to_dict()}) + "\n")
            n += 1
    return n
