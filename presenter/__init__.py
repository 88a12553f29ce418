"""
Presenter — result rendering and metrics output

Provides:
- draw_detections(image, detections): outline + centered label per detection
- show(image) / save(image, path): on-screen window or image file
- write_metrics(path, report): one JSON line per sample outcome
"""
from .render import draw_detections, save, show, write_metrics

__all__ = ["draw_detections", "save", "show", "write_metrics"]
