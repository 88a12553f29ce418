"""
Unit tests for rendering and metrics output
"""

import json

import pytest
import numpy as np
import cv2
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import Detection, Rejection, SampleOutcome
from locator.aggregate import LocateReport
from presenter import draw_detections, save, write_metrics


def _det(name="card", corners=((20, 20), (180, 20), (180, 120), (20, 120)), confidence=0.9):
    c = np.asarray(corners, dtype=float)
    return Detection(
        name=name,
        corners=corners,
        area=16000.0,
        centroid=tuple(c.mean(axis=0)),
        inliers=30,
        matches=40,
        confidence=confidence,
    )


class TestDrawDetections:
    def test_input_not_modified(self):
        img = np.zeros((150, 200, 3), dtype=np.uint8)
        out = draw_detections(img, [_det()])
        assert img.sum() == 0
        assert out.shape == img.shape
        assert out.sum() > 0

    def test_outline_colour_on_edge(self):
        img = np.zeros((150, 200, 3), dtype=np.uint8)
        out = draw_detections(img, [_det()], thickness=3)
        # middle of the top edge
        assert tuple(out[20, 100]) == (0, 255, 0)

    def test_label_near_centroid(self):
        img = np.zeros((150, 200, 3), dtype=np.uint8)
        out = draw_detections(img, [_det()], outline=(0, 0, 0))
        red = np.argwhere((out[:, :, 2] > 128) & (out[:, :, 1] < 64))
        assert len(red) > 0
        cy, cx = red.mean(axis=0)
        assert abs(cx - 100) < 25 and abs(cy - 70) < 25

    def test_grayscale_input_promoted(self):
        out = draw_detections(np.zeros((150, 200), dtype=np.uint8), [_det()])
        assert out.ndim == 3

    def test_no_detections(self):
        img = np.full((10, 10, 3), 7, dtype=np.uint8)
        np.testing.assert_array_equal(draw_detections(img, []), img)


class TestSave:
    def test_roundtrip(self, tmp_path):
        img = np.zeros((30, 40, 3), dtype=np.uint8)
        img[5:10, 5:10] = (255, 0, 0)
        p = save(img, str(tmp_path / "out" / "result.png"))
        assert p.is_file()
        back = cv2.imread(str(p))
        np.testing.assert_array_equal(back, img)


class TestWriteMetrics:
    def test_one_row_per_outcome(self, tmp_path):
        det = _det("B")
        report = LocateReport(
            detections=[det],
            outcomes=[
                SampleOutcome("A", candidates=50, good_matches=2, rejection=Rejection.TOO_FEW_MATCHES),
                SampleOutcome("B", candidates=60, good_matches=40, inliers=30, area=16000.0, detection=det),
            ],
        )
        path = tmp_path / "metrics.jsonl"
        assert write_metrics(str(path), report) == 2
        assert write_metrics(str(path), report) == 2

        rows = [json.loads(line) for line in path.read_text().splitlines()]
        assert len(rows) == 4
        assert rows[0]["name"] == "A" and rows[0]["status"] == "too_few_matches"
        assert rows[1]["status"] == "detected"
        assert rows[1]["detection"]["confidence"] == pytest.approx(0.9)
        assert rows[0]["ts"].endswith("Z")
