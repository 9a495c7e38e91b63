"""Screenshot comparison helpers."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Union

from PIL import Image, ImageChops
import imagehash

from ..constants import VISUAL_CANONICAL_SIZE, VISUAL_PIXEL_THRESHOLD

logger = logging.getLogger(__name__)

ImageRef = Union[str, Path, bytes, Image.Image]

# Largest possible YIQ delta between two RGB colours.
_MAX_YIQ_DELTA = 35215.0


def _open_image(ref: ImageRef) -> Image.Image:
    if isinstance(ref, Image.Image):
        return ref
    if isinstance(ref, (bytes, bytearray)):
        return Image.open(io.BytesIO(ref))
    return Image.open(Path(ref))


def _prepare_image(ref: ImageRef, size: tuple[int, int]) -> Image.Image:
    """Decode, flatten transparency onto white and resize to ``size``."""
    img = _open_image(ref)
    img.load()
    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        background.alpha_composite(rgba)
        img = background
    return img.convert("RGB").resize(size, Image.BILINEAR)


def _yiq_delta(r1: int, g1: int, b1: int, r2: int, g2: int, b2: int) -> float:
    dr, dg, db = r1 - r2, g1 - g2, b1 - b2
    y = dr * 0.29889531 + dg * 0.58662247 + db * 0.11448223
    i = dr * 0.59597799 - dg * 0.27417610 - db * 0.32180189
    q = dr * 0.21147017 - dg * 0.52261711 + db * 0.31114694
    return 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q


def pixel_difference(
    ref_a: ImageRef,
    ref_b: ImageRef,
    *,
    size: tuple[int, int] = VISUAL_CANONICAL_SIZE,
    threshold: float = VISUAL_PIXEL_THRESHOLD,
) -> float:
    """Fraction of pixels whose perceptual colour distance exceeds ``threshold``.

    Both images are resized to ``size`` first. ``threshold`` is in [0, 1]
    where 0 flags any change at all.
    """
    img_a = _prepare_image(ref_a, size)
    img_b = _prepare_image(ref_b, size)
    total = size[0] * size[1]

    if ImageChops.difference(img_a, img_b).getbbox() is None:
        return 0.0

    max_delta = _MAX_YIQ_DELTA * threshold * threshold
    data_a = img_a.tobytes()
    data_b = img_b.tobytes()
    differing = 0
    for offset in range(0, len(data_a), 3):
        delta = _yiq_delta(
            data_a[offset],
            data_a[offset + 1],
            data_a[offset + 2],
            data_b[offset],
            data_b[offset + 1],
            data_b[offset + 2],
        )
        if delta > max_delta:
            differing += 1
    return differing / total


def visual_similarity(baseline_ref: Optional[ImageRef], candidate_ref: Optional[ImageRef]) -> float:
    """Share of matching pixels between two screenshots, in [0, 100].

    Missing references and decode/comparison failures score 0.
    """
    if not baseline_ref or not candidate_ref:
        return 0.0
    try:
        differing = pixel_difference(baseline_ref, candidate_ref)
    except Exception as exc:
        logger.warning("Visual comparison failed: %s", exc)
        return 0.0
    return max(0.0, (1.0 - differing) * 100.0)


def perceptual_hash(ref: Optional[ImageRef]) -> Optional[str]:
    """pHash of a screenshot as a hex string, or None when it cannot be read."""
    if not ref:
        return None
    try:
        return str(imagehash.phash(_open_image(ref).convert("RGB")))
    except Exception as exc:
        logger.warning("Perceptual hash failed: %s", exc)
        return None


def hash_distance(hash_a: Optional[str], hash_b: Optional[str]) -> Optional[int]:
    """Hamming distance between two hex pHashes."""
    if not hash_a or not hash_b:
        return None
    try:
        return int(imagehash.hex_to_hash(hash_a) - imagehash.hex_to_hash(hash_b))
    except Exception:
        return None
