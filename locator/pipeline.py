from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from catalog.loader import CatalogError, load_samples, load_target
from common.logging_setup import get_logger, setup_logging
from common.types import Target
from features import BruteForceMatcher, FeatureExtractor
from locator.aggregate import LocateReport, PipelineInputError, locate_samples
from locator.config import LocatorConfig
from locator.homography import make_estimator
from presenter import draw_detections, save, show, write_metrics


log = get_logger("locator.pipeline")

DEFAULT_CONFIG = "config/params.yaml"


def run(cfg: LocatorConfig, *, extractor=None, matcher=None, estimator=None) -> Tuple[Target, LocateReport]:
    """
    Load the catalog and target named in cfg and locate every sample.
    Collaborators default to the OpenCV implementations chosen by cfg.
    """
    extractor = extractor or FeatureExtractor(method=cfg.features.method, nfeatures=cfg.features.nfeatures)
    matcher = matcher or BruteForceMatcher.for_extractor(extractor)
    estimator = estimator or make_estimator(cfg.homography)

    samples = load_samples(
        cfg.catalog.samples_dir,
        extractor,
        extensions=cfg.catalog.extensions,
        recursive=cfg.catalog.recursive,
    )
    target = load_target(cfg.catalog.target_path, extractor)

    report = locate_samples(
        samples,
        target,
        matcher,
        estimator,
        matching=cfg.matching,
        verification=cfg.verification,
        workers=cfg.pipeline.workers,
    )
    return target, report


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Locate sample images inside a target image")
    ap.add_argument("--config", default=None, help=f"YAML config (default: {DEFAULT_CONFIG} if present)")
    ap.add_argument("--samples", default=None, help="Override catalog.samples_dir")
    ap.add_argument("--target", default=None, help="Override catalog.target_path")
    ap.add_argument("--out", default=None, help="Write the annotated target to this file")
    ap.add_argument("--metrics", default=None, help="Append per-sample JSONL rows to this file")
    ap.add_argument("--no-show", action="store_true", help="Do not open a preview window")
    ap.add_argument("--workers", type=int, default=None, help="Worker threads for per-sample matching")
    ap.add_argument("--seed", type=int, default=None, help="RANSAC seed for reproducible runs")
    ap.add_argument("--log-level", default=None)
    return ap


def _load_config(args: argparse.Namespace) -> LocatorConfig:
    if args.config:
        cfg = LocatorConfig.from_yaml(args.config)
    elif Path(DEFAULT_CONFIG).is_file():
        cfg = LocatorConfig.from_yaml(DEFAULT_CONFIG)
    else:
        cfg = LocatorConfig()

    if args.samples:
        cfg.catalog.samples_dir = args.samples
    if args.target:
        cfg.catalog.target_path = args.target
    if args.out:
        cfg.presenter.output_path = args.out
    if args.metrics:
        cfg.presenter.metrics_file = args.metrics
    if args.no_show:
        cfg.presenter.show = False
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError("--workers must be >= 1")
        cfg.pipeline.workers = args.workers
    if args.seed is not None:
        cfg.homography.seed = args.seed
    if args.log_level:
        cfg.logging.level = args.log_level
    return cfg


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = _load_config(args)
    except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
        log.error(f"Invalid configuration: {e}")
        return 2
    setup_logging(cfg.logging.level, cfg.logging.format, force=True)

    try:
        target, report = run(cfg)
    except (FileNotFoundError, CatalogError, PipelineInputError) as e:
        log.error(str(e), extra={"extra": {"kind": type(e).__name__}})
        return 1

    if cfg.presenter.metrics_file:
        write_metrics(cfg.presenter.metrics_file, report)

    if cfg.presenter.output_path or cfg.presenter.show:
        annotated = draw_detections(target.image, report.detections)
        if cfg.presenter.output_path:
            save(annotated, cfg.presenter.output_path)
        if cfg.presenter.show:
            show(annotated)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
