"""
Features — keypoint extraction and k-NN candidate matching (OpenCV)

This package provides the image-processing collaborators the locator consumes
through its interfaces:
- FeatureExtractor(method='sift'|'orb'|'akaze') with .extract(image)
- BruteForceMatcher(norm='l2'|'hamming') with .knn_match(query, train, k)

Usage:
    from features import FeatureExtractor, BruteForceMatcher
    ext = FeatureExtractor("sift")
    kps, des = ext.extract(img_bgr)
    matcher = BruteForceMatcher.for_extractor(ext)
"""
from .extractor import FeatureExtractor
from .matcher import BruteForceMatcher

__all__ = ["FeatureExtractor", "BruteForceMatcher"]
