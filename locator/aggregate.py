from __future__ import annotations
"""
Per-sample matching & verification, and the ordered join of the results.

locate_samples() maps process_sample() over the catalog (optionally on a thread
pool; samples share nothing but the read-only target) and reduces the outcomes
in submission order into a LocateReport.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional, Sequence

from common.geometry import confidence_score, polygon_centroid
from common.logging_setup import get_logger
from common.types import Detection, Rejection, Sample, SampleOutcome, Target
from common.utils import Stopwatch
from locator.config import MatchingParams, VerificationParams
from locator.correspondence import matches_to_points, ratio_test
from locator.homography import MIN_CORRESPONDENCES
from locator.interfaces import HomographyEstimator, Matcher
from locator.verify import verify_projection


log = get_logger("locator")


class PipelineInputError(ValueError):
    """Run-level failure (no samples, no target): nothing can be located at all."""


@dataclass
class LocateReport:
    detections: List[Detection] = field(default_factory=list)
    outcomes: List[SampleOutcome] = field(default_factory=list)

    @property
    def any_found(self) -> bool:
        return bool(self.detections)

    def summary(self) -> dict:
        by_reason: dict = {}
        for o in self.outcomes:
            if o.rejection is not None:
                by_reason[o.rejection.value] = by_reason.get(o.rejection.value, 0) + 1
        return {
            "samples": len(self.outcomes),
            "detections": len(self.detections),
            "rejections": by_reason,
        }


def _reject(outcome: SampleOutcome, reason: Rejection, msg: str) -> SampleOutcome:
    outcome.rejection = reason
    log.info(
        f"{outcome.name} - {msg}",
        extra={"extra": {"sample": outcome.name, "reason": reason.value, "category": reason.category}},
    )
    return outcome


def process_sample(
    sample: Sample,
    target: Target,
    matcher: Matcher,
    estimator: HomographyEstimator,
    matching: MatchingParams,
    verification: VerificationParams,
) -> SampleOutcome:
    """
    Ratio-test matches -> robust homography -> projected-outline checks for one
    sample. Never raises for per-sample failures; they come back as rejections.
    """
    out = SampleOutcome(name=sample.name)
    with Stopwatch() as sw:
        _process_into(out, sample, target, matcher, estimator, matching, verification)
    out.elapsed_ms = sw.elapsed_ms
    return out


def _process_into(
    out: SampleOutcome,
    sample: Sample,
    target: Target,
    matcher: Matcher,
    estimator: HomographyEstimator,
    matching: MatchingParams,
    verification: VerificationParams,
) -> None:
    name = sample.name
    if sample.empty or target.empty:
        _reject(out, Rejection.EMPTY_DESCRIPTORS, "skipping, empty descriptors")
        return

    candidates = matcher.knn_match(sample.descriptors, target.descriptors, matching.k)
    out.candidates = len(candidates)
    log.debug(f"{name} initial matches: {len(candidates)}", extra={"extra": {"sample": name}})

    good = ratio_test(candidates, matching.ratio, unique_train=matching.unique_train)
    out.good_matches = len(good)
    log.info(f"{name} good matches: {len(good)}", extra={"extra": {"sample": name, "candidates": len(candidates)}})

    if len(good) < MIN_CORRESPONDENCES:
        _reject(out, Rejection.TOO_FEW_MATCHES, "not enough matches for homography")
        return

    src, dst = matches_to_points(good, sample.keypoints, target.keypoints)
    fit = estimator.estimate(src, dst)
    if not fit.ok:
        _reject(out, Rejection.FIT_FAILED, f"homography failed ({fit.reason})")
        return
    out.inliers = fit.inliers

    min_area = verification.min_area_for(target.width, target.height)
    ver = verify_projection(
        sample.width,
        sample.height,
        fit.H,
        min_area=min_area,
        require_convex=verification.require_convex,
    )
    out.area = ver.area
    log.info(f"{name} area: {ver.area:.1f}", extra={"extra": {"sample": name, "inliers": fit.inliers}})
    if not ver.accepted:
        msg = "area too small" if ver.rejection is Rejection.AREA_TOO_SMALL else "implausible quadrilateral"
        _reject(out, ver.rejection, msg)
        return

    corners = tuple((float(x), float(y)) for x, y in ver.corners)
    out.detection = Detection(
        name=name,
        corners=corners,  # type: ignore[arg-type]
        area=ver.area,
        centroid=polygon_centroid(ver.corners),
        inliers=fit.inliers,
        matches=len(good),
        confidence=confidence_score(fit.inliers, len(good), fit.rmse_px),
    )


def locate_samples(
    samples: Sequence[Sample],
    target: Optional[Target],
    matcher: Matcher,
    estimator: HomographyEstimator,
    *,
    matching: Optional[MatchingParams] = None,
    verification: Optional[VerificationParams] = None,
    workers: int = 1,
) -> LocateReport:
    """
    Locate every sample in the target.

    Raises:
        PipelineInputError: no samples or no target; the only fatal outcomes.

    Returns:
        LocateReport whose detections/outcomes follow the order of `samples`
        regardless of which worker finishes first.
    """
    if target is None:
        raise PipelineInputError("no target to search")
    if not samples:
        raise PipelineInputError("no samples loaded")
    if workers < 1:
        raise ValueError("workers must be >= 1")

    task = partial(
        process_sample,
        target=target,
        matcher=matcher,
        estimator=estimator,
        matching=matching or MatchingParams(),
        verification=verification or VerificationParams(),
    )

    n_workers = min(workers, len(samples), os.cpu_count() or 1)
    if n_workers > 1:
        with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="locator") as pool:
            outcomes = list(pool.map(task, samples))
    else:
        outcomes = [task(s) for s in samples]

    report = LocateReport(
        detections=[o.detection for o in outcomes if o.detection is not None],
        outcomes=outcomes,
    )
    if not report.any_found:
        log.info("No matches found for any sample", extra={"extra": report.summary()})
    else:
        log.info("Located samples", extra={"extra": {**report.summary(), "names": [d.name for d in report.detections]}})
    return report
