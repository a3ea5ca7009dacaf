"""Crop and resize over RGBA pixel buffers."""

from __future__ import annotations

import numpy as np
from PIL import Image

from image_cpr.errors import CropOutOfBounds, InvalidParameter
from image_cpr.logger import get_logger

_logger = get_logger("geometry")


def validate_crop_bounds(img_width: int, img_height: int, crop: tuple[int, int, int, int]) -> bool:
    """Validate that crop rectangle is within image bounds.

    Args:
        img_width: Buffer width
        img_height: Buffer height
        crop: (x, y, width, height) crop rectangle

    Returns:
        True if crop is valid, False otherwise
    """
    left, top, width, height = crop
    if left < 0 or top < 0:
        return False
    if width <= 0 or height <= 0:
        return False
    if left + width > img_width:
        return False
    return not top + height > img_height


def crop(buffer: np.ndarray, rect: tuple[int, int, int, int]) -> np.ndarray:
    """Copy the pixels inside ``rect`` (x, y, width, height) into a new buffer.

    Raises:
        CropOutOfBounds: if the rectangle does not lie inside the buffer
    """
    h, w = buffer.shape[:2]
    if not validate_crop_bounds(w, h, rect):
        _logger.debug("crop %s rejected for buffer %dx%d", rect, w, h)
        raise CropOutOfBounds(f"crop rectangle {tuple(rect)} exceeds image bounds {w}x{h}", stage="crop")
    x, y, cw, ch = rect
    return buffer[y : y + ch, x : x + cw].copy()


def resize(buffer: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resample ``buffer`` to exactly ``width`` x ``height`` with a Lanczos3 kernel.

    Used for both up- and downscaling. Aspect ratio is not preserved.
    """
    if width <= 0 or height <= 0:
        raise InvalidParameter(f"resize target must be positive, got {width}x{height}", stage="resize")
    h, w = buffer.shape[:2]
    if (w, h) == (width, height):
        return buffer.copy()

    # Bands resampled independently: RGB stays unpremultiplied.
    img = Image.fromarray(np.ascontiguousarray(buffer, dtype=np.uint8))
    bands = [band.resize((width, height), Image.Resampling.LANCZOS) for band in img.split()]
    resized = Image.merge("RGBA", bands)
    _logger.debug("resized %dx%d -> %dx%d", w, h, width, height)
    return np.array(resized, dtype=np.uint8)
