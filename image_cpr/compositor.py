"""Watermark compositing.

The watermark is decoded from its own bytes (format sniffed from the
signature, independent of the primary image's declared format), resized to
its placement rectangle and alpha-blended onto the RGB channels of the base
buffer. The base buffer's alpha channel is left as it was.
"""

from __future__ import annotations

import numpy as np

from image_cpr.codec import decode_autodetect
from image_cpr.config import WatermarkConfig
from image_cpr.errors import InvalidParameter, WatermarkOutOfBounds
from image_cpr.geometry import resize
from image_cpr.logger import get_logger

_logger = get_logger("compositor")


def blend_region(
    dst: np.ndarray,
    src: np.ndarray,
    x: int,
    y: int,
    opacity: float,
    use_watermark_alpha: bool,
) -> np.ndarray:
    """Blend ``src`` over ``dst`` with its top-left corner at (x, y).

    Effective alpha per pixel is ``src_alpha / 255 * opacity`` when
    ``use_watermark_alpha`` is set, otherwise ``opacity`` everywhere.
    Returns a new buffer; ``dst`` is not modified.
    """
    h, w = src.shape[:2]
    out = dst.copy()
    region = out[y : y + h, x : x + w]

    if use_watermark_alpha:
        alpha = src[..., 3:4].astype(np.float64) / 255.0 * opacity
    else:
        alpha = np.full((h, w, 1), opacity, dtype=np.float64)

    base_rgb = region[..., :3].astype(np.float64)
    mark_rgb = src[..., :3].astype(np.float64)
    blended = base_rgb * (1.0 - alpha) + mark_rgb * alpha
    region[..., :3] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
    return out


def apply_watermark(buffer: np.ndarray, watermark: WatermarkConfig) -> np.ndarray:
    x, y, width, height = watermark.position
    img_h, img_w = buffer.shape[:2]

    mark = decode_autodetect(watermark.content)

    if width <= 0 or height <= 0:
        raise InvalidParameter(f"watermark size must be positive, got {width}x{height}", stage="watermark")
    if x + width > img_w or y + height > img_h:
        raise WatermarkOutOfBounds(
            f"watermark position {watermark.position} exceeds image bounds {img_w}x{img_h}", stage="watermark"
        )

    mark = resize(mark, width, height)
    _logger.debug(
        "watermark at %s opacity=%.2f own_alpha=%s",
        watermark.position,
        watermark.opacity,
        watermark.use_watermark_alpha,
    )
    return blend_region(buffer, mark, x, y, watermark.opacity, watermark.use_watermark_alpha)
