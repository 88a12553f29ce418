#!/usr/bin/env python3
"""
Generate procedurally textured sample "cards" and a target scene containing
perspective-warped copies of some of them. Writes PNGs + a truth.json with the
ground-truth homography and corners of every placed card.

Example:
  python scripts/make_synthetic_scene.py --out data/demo --cards 5 --present 3 --seed 7
  python -m locator.pipeline --samples data/demo/cards --target data/demo/target.png --no-show
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import cv2
import numpy as np


def make_card(rng: np.random.Generator, size: Tuple[int, int] = (200, 280)) -> np.ndarray:
    """Random clutter of rectangles, circles, lines and glyphs; rich in corners/blobs."""
    w, h = size
    base = tuple(int(c) for c in rng.integers(150, 256, size=3))
    img = np.full((h, w, 3), base, dtype=np.uint8)

    def color() -> Tuple[int, int, int]:
        return tuple(int(c) for c in rng.integers(0, 256, size=3))

    for _ in range(18):
        x0, y0 = int(rng.integers(0, w)), int(rng.integers(0, h))
        x1, y1 = int(rng.integers(0, w)), int(rng.integers(0, h))
        cv2.rectangle(img, (x0, y0), (x1, y1), color(), -1 if rng.random() < 0.6 else 2)
    for _ in range(14):
        c = (int(rng.integers(0, w)), int(rng.integers(0, h)))
        cv2.circle(img, c, int(rng.integers(4, max(5, w // 6))), color(), -1 if rng.random() < 0.5 else 2)
    for _ in range(10):
        p0 = (int(rng.integers(0, w)), int(rng.integers(0, h)))
        p1 = (int(rng.integers(0, w)), int(rng.integers(0, h)))
        cv2.line(img, p0, p1, color(), int(rng.integers(1, 4)))
    glyphs = "ABCDEFGHJKLMNPQRSTUVWXYZ0123456789"
    for _ in range(6):
        txt = "".join(rng.choice(list(glyphs), size=2))
        org = (int(rng.integers(0, max(1, w - 40))), int(rng.integers(20, h)))
        cv2.putText(img, txt, org, cv2.FONT_HERSHEY_SIMPLEX, float(rng.uniform(0.6, 1.2)), color(), 2)
    cv2.rectangle(img, (0, 0), (w - 1, h - 1), (0, 0, 0), 3)
    return img


def random_quad(
    rng: np.random.Generator,
    card_size: Tuple[int, int],
    slot: Tuple[int, int, int, int],
    scale_range: Tuple[float, float] = (0.75, 0.95),
    jitter: float = 0.06,
) -> np.ndarray:
    """Mild perspective quad for a card of card_size inside slot (x, y, w, h)."""
    cw, ch = card_size
    sx, sy, sw, sh = slot
    s = float(rng.uniform(*scale_range)) * min(sw / cw, sh / ch)
    qw, qh = cw * s, ch * s
    ox = sx + (sw - qw) / 2.0
    oy = sy + (sh - qh) / 2.0
    quad = np.array([[ox, oy], [ox + qw, oy], [ox + qw, oy + qh], [ox, oy + qh]], dtype=np.float64)
    quad += rng.uniform(-jitter, jitter, size=(4, 2)) * np.array([qw, qh])
    return quad.astype(np.float32)


def make_scene(
    cards: Dict[str, np.ndarray],
    present: Sequence[str],
    rng: np.random.Generator,
    canvas_size: Tuple[int, int] = (1024, 640),
) -> Tuple[np.ndarray, Dict[str, Dict[str, List]]]:
    """
    Paste the `present` cards side by side (one slot each) onto a noisy canvas.
    Returns (scene_bgr, truth) where truth[name] = {"H": 3x3, "corners": 4x2}.
    """
    W, H = canvas_size
    noise = rng.normal(128, 20, size=(H, W, 3))
    scene = cv2.GaussianBlur(np.clip(noise, 0, 255).astype(np.uint8), (0, 0), 3)
    truth: Dict[str, Dict[str, List]] = {}
    if not present:
        return scene, truth

    slot_w = W // len(present)
    for i, name in enumerate(present):
        card = cards[name]
        ch, cw = card.shape[:2]
        src = np.float32([[0, 0], [cw, 0], [cw, ch], [0, ch]])
        dst = random_quad(rng, (cw, ch), (i * slot_w, 0, slot_w, H))
        Hm = cv2.getPerspectiveTransform(src, dst)
        warped = cv2.warpPerspective(card, Hm, (W, H), flags=cv2.INTER_LINEAR)
        mask = cv2.warpPerspective(np.full((ch, cw), 255, np.uint8), Hm, (W, H), flags=cv2.INTER_NEAREST)
        scene[mask > 0] = warped[mask > 0]
        truth[name] = {"H": Hm.tolist(), "corners": dst.tolist()}
    return scene, truth


def main() -> None:
    ap = argparse.ArgumentParser(description="Synthetic cards + target scene generator")
    ap.add_argument("--out", default="data/demo")
    ap.add_argument("--cards", type=int, default=5, help="Number of sample cards")
    ap.add_argument("--present", type=int, default=3, help="How many of them appear in the target")
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--width", type=int, default=1024)
    ap.add_argument("--height", type=int, default=640)
    args = ap.parse_args()

    if not (0 <= args.present <= args.cards):
        raise SystemExit("--present must be between 0 and --cards")

    rng = np.random.default_rng(args.seed)
    out = Path(args.out)
    (out / "cards").mkdir(parents=True, exist_ok=True)

    cards = {f"card_{i:02d}": make_card(rng) for i in range(args.cards)}
    for name, img in cards.items():
        cv2.imwrite(str(out / "cards" / f"{name}.png"), img)

    present = sorted(rng.choice(list(cards), size=args.present, replace=False).tolist())
    scene, truth = make_scene(cards, present, rng, (args.width, args.height))
    cv2.imwrite(str(out / "target.png"), scene)
    (out / "truth.json").write_text(json.dumps(truth, indent=2))
    print(f"wrote {len(cards)} cards, target with {present} -> {out}")


if __name__ == "__main__":
    main()
