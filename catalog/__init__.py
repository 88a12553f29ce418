"""
Catalog — sample ingestion and target loading

Provides:
- load_samples(dir, extractor): recursively scan a directory for sample images,
  decode them with OpenCV and extract their features
- load_target(path, extractor): decode the query image and extract its features

Usage:
    from catalog import load_samples, load_target
"""
from .loader import CatalogError, iter_image_paths, load_samples, load_target

__all__ = ["CatalogError", "iter_image_paths", "load_samples", "load_target"]
