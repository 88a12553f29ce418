#!/usr/bin/env python3
"""
Integration test: synthetic cards + warped target scene through the full
OpenCV pipeline (SIFT -> BFMatcher -> ratio test -> RANSAC -> verification).
"""

import json
import os
import sys

import cv2
import numpy as np
import pytest

# Add the project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from locator.config import LocatorConfig
from locator.pipeline import main, run
from scripts.make_synthetic_scene import make_card, make_scene


PRESENT = ["card_00", "card_02"]


@pytest.fixture(scope="module")
def scene_dir(tmp_path_factory):
    out = tmp_path_factory.mktemp("scene")
    rng = np.random.default_rng(42)
    (out / "cards").mkdir()
    cards = {f"card_{i:02d}": make_card(rng) for i in range(3)}
    for name, img in cards.items():
        cv2.imwrite(str(out / "cards" / f"{name}.png"), img)
    scene, truth = make_scene(cards, PRESENT, rng, (1024, 640))
    cv2.imwrite(str(out / "target.png"), scene)
    (out / "truth.json").write_text(json.dumps(truth))
    return out


def _config(scene_dir) -> LocatorConfig:
    cfg = LocatorConfig()
    cfg.catalog.samples_dir = str(scene_dir / "cards")
    cfg.catalog.target_path = str(scene_dir / "target.png")
    cfg.homography.seed = 0
    cfg.presenter.show = False
    return cfg


class TestPipelineRun:
    """run() over files on disk"""

    def test_present_cards_are_located(self, scene_dir):
        truth = json.loads((scene_dir / "truth.json").read_text())
        target, report = run(_config(scene_dir))

        assert report.any_found
        assert [o.name for o in report.outcomes] == ["card_00", "card_01", "card_02"]
        found = {d.name: d for d in report.detections}
        for name in PRESENT:
            assert name in found, f"{name} not detected"
            det = found[name]
            expected = np.asarray(truth[name]["corners"])
            np.testing.assert_allclose(np.asarray(det.corners), expected, atol=6.0)
            assert det.centroid == pytest.approx(tuple(expected.mean(axis=0)), abs=4.0)
            assert det.inliers >= 10
        assert (target.width, target.height) == (1024, 640)

    def test_opencv_estimator_agrees(self, scene_dir):
        cfg = _config(scene_dir)
        cfg.homography.method = "opencv"
        _, report = run(cfg)
        assert set(PRESENT) <= {d.name for d in report.detections}

    def test_parallel_run(self, scene_dir):
        cfg = _config(scene_dir)
        cfg.pipeline.workers = 3
        _, report = run(cfg)
        assert [o.name for o in report.outcomes] == ["card_00", "card_01", "card_02"]
        assert set(PRESENT) <= {d.name for d in report.detections}


class TestCli:
    """main() exit codes and artefacts"""

    def test_writes_image_and_metrics(self, scene_dir, tmp_path):
        out_img = tmp_path / "result.png"
        metrics = tmp_path / "metrics.jsonl"
        code = main([
            "--samples", str(scene_dir / "cards"),
            "--target", str(scene_dir / "target.png"),
            "--out", str(out_img),
            "--metrics", str(metrics),
            "--no-show",
            "--seed", "0",
        ])
        assert code == 0
        img = cv2.imread(str(out_img))
        assert img is not None and img.shape == (640, 1024, 3)
        rows = [json.loads(line) for line in metrics.read_text().splitlines()]
        assert [r["name"] for r in rows] == ["card_00", "card_01", "card_02"]
        assert {r["name"] for r in rows if r["status"] == "detected"} >= set(PRESENT)

    def test_missing_samples_dir(self, scene_dir, tmp_path):
        code = main([
            "--samples", str(tmp_path / "nope"),
            "--target", str(scene_dir / "target.png"),
            "--no-show",
        ])
        assert code == 1

    def test_missing_target(self, scene_dir, tmp_path):
        code = main([
            "--samples", str(scene_dir / "cards"),
            "--target", str(tmp_path / "missing.png"),
            "--no-show",
        ])
        assert code == 1

    def test_empty_catalog(self, scene_dir, tmp_path):
        code = main(["--samples", str(tmp_path), "--target", str(scene_dir / "target.png"), "--no-show"])
        assert code == 1

    def test_bad_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "absent.yaml"), "--no-show"]) == 2
        assert main(["--workers", "0", "--no-show"]) == 2

    @pytest.mark.parametrize("body", [
        "features:\n  method: surf\n",
        "verification:\n  reference_size: 640\n",
        "matching:\n  ratio: '0.7'\n",
        "- catalog\n- matching\n",
    ])
    def test_invalid_config_values(self, tmp_path, body):
        """Malformed values in the YAML file are reported as a configuration error"""
        cfg = tmp_path / "params.yaml"
        cfg.write_text(body)
        assert main(["--config", str(cfg), "--no-show"]) == 2
