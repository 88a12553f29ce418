"""
Locator — Matching & Geometric Verification

This package provides:
- Lowe ratio-test filtering of k-NN candidate matches
- Robust homography fitting (numpy RANSAC + DLT, or cv2.findHomography)
- Plausibility checks on the projected sample outline (area, convexity)
- An order-preserving per-sample map/reduce producing Detections

Entry point:
    python -m locator.pipeline --config config/params.yaml
"""
from .aggregate import LocateReport, PipelineInputError, locate_samples, process_sample
from .correspondence import matches_to_points, ratio_test
from .homography import HomographyResult, OpenCVHomographyEstimator, RansacHomographyEstimator
from .verify import Verification, verify_projection

__all__ = [
    "LocateReport",
    "PipelineInputError",
    "locate_samples",
    "process_sample",
    "matches_to_points",
    "ratio_test",
    "HomographyResult",
    "OpenCVHomographyEstimator",
    "RansacHomographyEstimator",
    "Verification",
    "verify_projection",
]
