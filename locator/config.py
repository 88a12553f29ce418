from __future__ import annotations
"""
Typed configuration for the locator pipeline, loaded from config/params.yaml.

Every section and key is optional; missing values fall back to the defaults
below.
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional, Tuple

import yaml

from common.logging_setup import get_logger


log = get_logger("locator.config")


@dataclass
class CatalogParams:
    samples_dir: str = "./cards"
    target_path: str = "./target.png"
    extensions: Tuple[str, ...] = (".png",)
    recursive: bool = True

    def __post_init__(self) -> None:
        self.extensions = tuple(
            e if e.startswith(".") else f".{e}" for e in (str(x).lower() for x in self.extensions)
        )


@dataclass
class FeatureParams:
    method: str = "sift"
    nfeatures: int = 0

    def __post_init__(self) -> None:
        self.method = str(self.method).lower()
        if self.method not in ("sift", "orb", "akaze"):
            raise ValueError(f"features.method must be sift, orb or akaze, got {self.method!r}")
        if self.nfeatures < 0:
            raise ValueError("features.nfeatures must be >= 0")


@dataclass
class MatchingParams:
    k: int = 2
    ratio: float = 0.75
    unique_train: bool = False

    def __post_init__(self) -> None:
        if self.k < 2:
            raise ValueError("matching.k must be >= 2 for the ratio test")
        if not (0.0 < self.ratio <= 1.0):
            raise ValueError("matching.ratio must be in (0, 1]")


@dataclass
class HomographyParams:
    method: str = "ransac"          # "ransac" (numpy) | "opencv"
    ransac_px: float = 3.0
    max_iters: int = 2000
    confidence: float = 0.995
    min_inliers: int = 4
    refine: bool = True
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.method not in ("ransac", "opencv"):
            raise ValueError(f"homography.method must be 'ransac' or 'opencv', got {self.method!r}")
        if self.ransac_px <= 0:
            raise ValueError("homography.ransac_px must be > 0")
        if self.max_iters < 1:
            raise ValueError("homography.max_iters must be >= 1")
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("homography.confidence must be in (0, 1)")
        if self.min_inliers < 4:
            raise ValueError("homography.min_inliers must be >= 4")


@dataclass
class VerificationParams:
    min_area_px: float = 1000.0
    require_convex: bool = False
    # When set, min_area_px is treated as relative to a reference_size target
    # and scaled by target_area / reference_area.
    scale_min_area: bool = False
    reference_size: Tuple[int, int] = (640, 480)

    def __post_init__(self) -> None:
        if self.min_area_px < 0:
            raise ValueError("verification.min_area_px must be >= 0")
        self.reference_size = (int(self.reference_size[0]), int(self.reference_size[1]))

    def min_area_for(self, target_width: int, target_height: int) -> float:
        if not self.scale_min_area:
            return float(self.min_area_px)
        ref_w, ref_h = self.reference_size
        return float(self.min_area_px) * (target_width * target_height) / float(max(1, ref_w * ref_h))


@dataclass
class PipelineParams:
    workers: int = 1

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError("pipeline.workers must be >= 1")


@dataclass
class PresenterParams:
    show: bool = True
    output_path: Optional[str] = None
    metrics_file: Optional[str] = None


@dataclass
class LoggingParams:
    level: str = "INFO"
    format: str = "json"


@dataclass
class LocatorConfig:
    catalog: CatalogParams = field(default_factory=CatalogParams)
    features: FeatureParams = field(default_factory=FeatureParams)
    matching: MatchingParams = field(default_factory=MatchingParams)
    homography: HomographyParams = field(default_factory=HomographyParams)
    verification: VerificationParams = field(default_factory=VerificationParams)
    pipeline: PipelineParams = field(default_factory=PipelineParams)
    presenter: PresenterParams = field(default_factory=PresenterParams)
    logging: LoggingParams = field(default_factory=LoggingParams)

    @classmethod
    def from_dict(cls, D: Optional[Dict[str, Any]]) -> "LocatorConfig":
        D = D or {}
        if not isinstance(D, dict):
            raise ValueError("config file must contain a mapping of sections")
        kwargs = {}
        for f in fields(cls):
            section = D.get(f.name) or {}
            if not isinstance(section, dict):
                raise ValueError(f"config section {f.name!r} must be a mapping")
            kwargs[f.name] = _build(f.default_factory, f.name, section)  # type: ignore[arg-type]
        for extra in set(D) - {f.name for f in fields(cls)}:
            log.warning("Ignoring unknown config section", extra={"extra": {"section": extra}})
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> "LocatorConfig":
        with open(path, "r") as f:
            return cls.from_dict(yaml.safe_load(f))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _build(section_cls, name: str, values: Dict[str, Any]):
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        log.warning("Ignoring unknown config keys", extra={"extra": {"section": name, "keys": sorted(unknown)}})
    picked = {k: v for k, v in values.items() if k in known and v is not None}
    for k in ("extensions", "reference_size"):
        if k in picked:
            v = picked[k]
            picked[k] = (v,) if isinstance(v, str) else tuple(v)
    return section_cls(**picked)
