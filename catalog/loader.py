from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Sequence

import cv2
import numpy as np

from common.logging_setup import get_logger
from common.types import Sample, Target
from locator.interfaces import FeatureExtractor


log = get_logger("catalog")


class CatalogError(RuntimeError):
    """The sample directory yielded no usable samples."""


def iter_image_paths(root: str, extensions: Iterable[str] = (".png",), recursive: bool = True) -> List[Path]:
    """Image files under root whose suffix is in extensions (case-insensitive), sorted."""
    base = Path(root)
    if not base.is_dir():
        raise FileNotFoundError(f"Directory {root} does not exist!")
    exts = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    pattern = base.rglob("*") if recursive else base.glob("*")
    return sorted(p for p in pattern if p.is_file() and p.suffix.lower() in exts)


def _read_image(path: Path) -> np.ndarray | None:
    # imdecode instead of imread so non-ASCII paths work on every platform
    try:
        data = np.fromfile(str(path), dtype=np.uint8)
    except OSError:
        return None
    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


def load_samples(
    samples_dir: str,
    extractor: FeatureExtractor,
    *,
    extensions: Sequence[str] = (".png",),
    recursive: bool = True,
    keep_images: bool = False,
) -> List[Sample]:
    """
    Decode and featurize every sample image in samples_dir.

    The sample name is the file stem. Undecodable files are logged and skipped.

    Raises:
        FileNotFoundError: samples_dir is missing.
        CatalogError: no sample could be loaded.
    """
    samples: List[Sample] = []
    for path in iter_image_paths(samples_dir, extensions, recursive):
        img = _read_image(path)
        if img is None:
            log.warning(f"Failed to parse sample: {path}", extra={"extra": {"path": str(path)}})
            continue
        kps, des = extractor.extract(img)
        h, w = img.shape[:2]
        samples.append(
            Sample(
                name=path.stem,
                width=w,
                height=h,
                keypoints=tuple(kps),
                descriptors=des,
                image=img if keep_images else None,
                source=str(path),
            )
        )
        log.info(f"Parsed sample: {path}", extra={"extra": {"keypoints": len(kps)}})

    if not samples:
        raise CatalogError("No samples loaded!")
    return samples


def load_target(target_path: str, extractor: FeatureExtractor) -> Target:
    """
    Decode and featurize the query image. The decoded image is kept on the
    Target for rendering.

    Raises:
        FileNotFoundError: the file is missing or cannot be decoded.
    """
    path = Path(target_path)
    img = _read_image(path) if path.is_file() else None
    if img is None:
        raise FileNotFoundError(f"Failed to parse target: {target_path}")
    kps, des = extractor.extract(img)
    h, w = img.shape[:2]
    log.info(f"Target keypoints: {len(kps)}", extra={"extra": {"path": str(path), "width": w, "height": h}})
    return Target(width=w, height=h, keypoints=tuple(kps), descriptors=des, image=img, source=str(path))
