"""image_cpr - decode, crop, resize, watermark and re-encode a single image.

Usage:
    from image_cpr import process

    out = process(png_bytes, {
        "format": "png",
        "crop": {"x": 50, "y": 50, "width": 100, "height": 100},
        "size": {"width": 50, "height": 50},
        "output_format": "jpeg",
        "quality": 80,
    })
"""

from .config import CropConfig, ImageConfig, SizeConfig, WatermarkConfig, parse_config
from .errors import (
    CropOutOfBounds,
    DecodeError,
    EncodeError,
    ImageProcessingError,
    InvalidParameter,
    UnsupportedFormat,
    WatermarkOutOfBounds,
)
from .pipeline import process

__all__ = [
    "process",
    "parse_config",
    "ImageConfig", "CropConfig", "SizeConfig", "WatermarkConfig",
    "ImageProcessingError", "UnsupportedFormat", "InvalidParameter",
    "CropOutOfBounds", "WatermarkOutOfBounds", "DecodeError", "EncodeError",
]
