from __future__ import annotations
"""
Local feature extraction.

- FeatureExtractor(method='sift'|'orb'|'akaze') with .extract(image)
- Accepts BGR or grayscale; returns project Keypoints + (N, D) descriptors
- Never raises on unprocessable images: empty/None input yields empty output
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import cv2
import numpy as np

from common.logging_setup import get_logger
from common.types import Keypoint


log = get_logger("features.extractor")

_DESCRIPTOR_WIDTH = {"sift": 128, "orb": 32, "akaze": 61}


def to_gray_u8(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        g = img
    elif img.shape[2] == 1:
        g = img[:, :, 0]
    elif img.shape[2] == 4:
        g = cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    else:
        g = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    if g.dtype != np.uint8:
        g = np.clip(g, 0, 255).astype(np.uint8)
    return g


@dataclass
class FeatureExtractor:
    """
    Thin wrapper over an OpenCV detector/descriptor.

    Args:
        method: "sift" (float descriptors, L2) or "orb"/"akaze" (binary, Hamming)
        nfeatures: cap on keypoints (0 = detector default / unlimited for SIFT)
        fast_threshold, nlevels, scale_factor: ORB tuning
    """
    method: str = "sift"
    nfeatures: int = 0
    fast_threshold: int = 12
    nlevels: int = 8
    scale_factor: float = 1.2
    _det: Any = field(init=False, repr=False, default=None)
    descriptor_kind: str = field(init=False, default="float")

    def __post_init__(self):
        m = self.method.lower()
        if m == "sift":
            self._det = cv2.SIFT_create(nfeatures=int(self.nfeatures))
            self.descriptor_kind = "float"
        elif m == "orb":
            self._det = cv2.ORB_create(
                nfeatures=int(self.nfeatures or 2000),
                scaleFactor=float(self.scale_factor),
                nlevels=int(self.nlevels),
                edgeThreshold=19,
                firstLevel=0,
                WTA_K=2,
                scoreType=cv2.ORB_HARRIS_SCORE,
                patchSize=31,
                fastThreshold=int(self.fast_threshold),
            )
            self.descriptor_kind = "binary"
        elif m == "akaze":
            self._det = cv2.AKAZE_create(
                descriptor_type=cv2.AKAZE_DESCRIPTOR_MLDB,
                descriptor_size=0,
                descriptor_channels=3,
                threshold=0.001,
                nOctaves=4,
                nOctaveLayers=4,
                diffusivity=cv2.KAZE_DIFF_PM_G2,
            )
            self.descriptor_kind = "binary"
        else:
            raise ValueError(f"Unsupported method: {self.method}")
        self.method = m

    def _empty(self) -> Tuple[List[Keypoint], np.ndarray]:
        dtype = np.float32 if self.descriptor_kind == "float" else np.uint8
        return [], np.zeros((0, _DESCRIPTOR_WIDTH[self.method]), dtype=dtype)

    def extract(
        self,
        image: Optional[np.ndarray],
        mask: Optional[np.ndarray] = None,
    ) -> Tuple[List[Keypoint], np.ndarray]:
        """
        Detect keypoints and compute descriptors.

        Returns ([], empty array) when the image is missing/empty or the
        detector finds nothing.
        """
        if image is None or image.size == 0 or image.ndim not in (2, 3):
            return self._empty()
        gray = to_gray_u8(image)
        kps, des = self._det.detectAndCompute(gray, mask)
        if des is None or not kps:
            return self._empty()
        return [Keypoint.from_cv(kp) for kp in kps], des
