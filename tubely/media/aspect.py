from __future__ import annotations

import enum

from .probe import MediaGeometry

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.05


class AspectClass(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


def _within(ratio: float, target: float) -> bool:
    return abs(ratio - target) <= target * RATIO_TOLERANCE


def classify_aspect(geometry: MediaGeometry) -> AspectClass:
    """Bucket a geometry into landscape (16:9), portrait (9:16) or other, within 5%."""
    if geometry.width <= 0 or geometry.height <= 0:
        return AspectClass.other
    ratio = geometry.width / geometry.height
    # landscape takes precedence if the bands ever overlap
    if _within(ratio, LANDSCAPE_RATIO):
        return AspectClass.landscape
    if _within(ratio, PORTRAIT_RATIO):
        return AspectClass.portrait
    return AspectClass.other


__all__ = ["AspectClass", "classify_aspect", "LANDSCAPE_RATIO", "PORTRAIT_RATIO", "RATIO_TOLERANCE"]
