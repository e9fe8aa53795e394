"""Conversion of raw detector outputs into record attributes."""

from io import BytesIO

import numpy as np
from PIL import Image, ImageOps

from gallery_ingest.config import AGE_RANGE_MARGIN, MAX_IMAGE_PIXELS
from gallery_ingest.models import AgeRange, BoundingBox

# Pillow raises DecompressionBombError above twice this value
Image.MAX_IMAGE_PIXELS = (MAX_IMAGE_PIXELS + 1) // 2


def decode_image(data: bytes) -> np.ndarray:
    """Decode image bytes into a BGR uint8 array, honoring EXIF orientation."""
    with Image.open(BytesIO(data)) as img:
        rgb = np.asarray(ImageOps.exif_transpose(img).convert("RGB"))
    return np.ascontiguousarray(rgb[:, :, ::-1])


def bbox_to_fractions(
    bbox: tuple[float, float, float, float], width: int, height: int
) -> BoundingBox:
    """Convert a pixel (x1, y1, x2, y2) box into fractions of the image size.

    Detectors may report boxes slightly outside the frame; the result is
    clipped so that top + height <= 1 and left + width <= 1.
    """
    x1, y1, x2, y2 = bbox
    left = _clip(x1 / width)
    top = _clip(y1 / height)
    right = _clip(x2 / width)
    bottom = _clip(y2 / height)
    return BoundingBox(
        top=top,
        left=left,
        width=max(0.0, right - left),
        height=max(0.0, bottom - top),
    )


def age_to_range(age: float, margin: int = AGE_RANGE_MARGIN) -> AgeRange:
    """Widen a point age estimate into a range within [0, 100]."""
    center = int(round(age))
    return AgeRange(low=max(0, min(100, center - margin)), high=max(0, min(100, center + margin)))


def gender_label(value: int | None) -> str:
    """InsightFace encodes gender as 1 for male and 0 for female."""
    if value is None:
        return "Unknown"
    return "Male" if int(value) == 1 else "Female"


def rank_labels(
    scored: list[tuple[str, float]], min_confidence: float, max_labels: int
) -> list[str]:
    """Turn (class name, confidence) detections into an ordered label list.

    Most confident first, Title Case, one entry per label, at most
    ``max_labels`` entries.
    """
    labels: list[str] = []
    for name, confidence in sorted(scored, key=lambda item: item[1], reverse=True):
        if confidence < min_confidence:
            continue
        label = name.replace("_", " ").title()
        if label not in labels:
            labels.append(label)
        if len(labels) >= max_labels:
            break
    return labels


def _clip(value: float) -> float:
    return min(1.0, max(0.0, float(value)))
