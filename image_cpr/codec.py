"""Codec boundary backed by pyvips.

Decoding turns encoded bytes into a pixel buffer: an RGBA ``uint8`` numpy
array of shape ``(height, width, 4)``. Encoding goes the other way for the
formats we can write.

The primary image is decoded with the loader matching its declared format;
watermarks go through :func:`decode_autodetect`, which sniffs the byte
signature instead.
"""

from __future__ import annotations

import contextlib
from typing import Any

import numpy as np

from image_cpr.errors import DecodeError, EncodeError, UnsupportedFormat
from image_cpr.logger import get_logger
from image_cpr.settings_manager import SettingsManager

_logger = get_logger("codec")

RGBA_CHANNELS = 4
_RGB_CHANNELS = 3

# format tag -> pyvips buffer loader
_LOADERS: dict[str, str] = {
    "jpeg": "jpegload_buffer",
    "png": "pngload_buffer",
    "webp": "webpload_buffer",
    "gif": "gifload_buffer",
    "tiff": "tiffload_buffer",
}
_ALIASES: dict[str, str] = {"jpg": "jpeg", "tif": "tiff"}

SUPPORTED_FORMATS: tuple[str, ...] = tuple(_LOADERS)
ENCODABLE_FORMATS: tuple[str, ...] = ("jpeg", "png", "webp")

# Truncated or corrupt pixel data is an error, not a warning with grey fill.
_FAIL_ON = "truncated"

_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Operation cache off: nothing decoded may outlive the call that made it.
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def _describe(err: Exception) -> str:
    message = getattr(err, "message", None)
    detail = getattr(err, "detail", None)
    parts = [p.strip() for p in (message, detail) if isinstance(p, str) and p.strip()]
    return " ".join(parts) if parts else str(err).strip()


def normalize_format(tag: Any) -> str:
    """Return the canonical format tag or raise UnsupportedFormat."""
    if not isinstance(tag, str):
        raise UnsupportedFormat(f"format tag must be a string, got {type(tag).__name__}")
    key = tag.strip().lower().lstrip(".")
    key = _ALIASES.get(key, key)
    if key not in _LOADERS:
        raise UnsupportedFormat(f"unsupported format {tag!r} (supported: {', '.join(SUPPORTED_FORMATS)})")
    return key


def normalize_output_format(tag: Any) -> str:
    key = normalize_format(tag)
    if key not in ENCODABLE_FORMATS:
        raise UnsupportedFormat(f"cannot encode {tag!r} (encodable: {', '.join(ENCODABLE_FORMATS)})")
    return key


def detect_format(data: bytes) -> str | None:
    """Sniff the format of encoded bytes. Returns None if libvips has no loader for them."""
    pyvips = _get_pyvips_module()
    try:
        # Header only; pixels are not decoded here.
        loader = pyvips.Image.new_from_buffer(bytes(data), "").get("vips-loader")
    except pyvips.Error as e:
        _logger.debug("no loader for data: %s", _describe(e))
        return None
    # e.g. "pngload_buffer", "jpegload_buffer"
    name = str(loader).lower()
    for fmt in SUPPORTED_FORMATS:
        if name.startswith(fmt):
            return fmt
    _logger.debug("sniffed loader %s has no supported format", loader)
    return None


def from_vips(image: Any) -> np.ndarray:
    """Normalize a pyvips image to an 8-bit sRGB RGBA numpy buffer."""
    pyvips = _get_pyvips_module()
    try:
        image = image.colourspace("srgb")
    except pyvips.Error as e:
        if image.interpretation not in ("srgb", "b-w"):
            raise DecodeError(f"cannot convert {image.interpretation} image to srgb: {_describe(e)}") from e
    if image.bands in (1, 2):
        gray = image.extract_band(0)
        rgb = gray.bandjoin([gray, gray])
        image = rgb.bandjoin(image.extract_band(1)) if image.bands == 2 else rgb
    if image.bands == _RGB_CHANNELS:
        image = image.bandjoin(255)
    elif image.bands > RGBA_CHANNELS:
        image = image.extract_band(0, n=RGBA_CHANNELS)
    if image.format != "uchar":
        image = image.cast("uchar")

    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands)
    return array.copy()


def to_vips(buffer: np.ndarray) -> Any:
    """Wrap an RGBA numpy buffer as a pyvips image (copying the pixels)."""
    pyvips = _get_pyvips_module()
    if buffer.ndim != 3 or buffer.shape[2] != RGBA_CHANNELS:
        raise ValueError(f"expected RGBA buffer with shape (h, w, 4), got {buffer.shape}")
    if buffer.dtype != np.uint8:
        buffer = buffer.astype(np.uint8)
    h, w, _ = buffer.shape
    image = pyvips.Image.new_from_memory(np.ascontiguousarray(buffer).tobytes(), w, h, RGBA_CHANNELS, "uchar")
    return image.copy(interpretation="srgb")


def decode(data: bytes, fmt: str) -> np.ndarray:
    """Decode ``data`` with the loader for the caller-declared ``fmt``."""
    fmt = normalize_format(fmt)
    if not data:
        raise DecodeError(f"no {fmt} data to decode", stage="decode")
    pyvips = _get_pyvips_module()
    loader = getattr(pyvips.Image, _LOADERS[fmt])
    try:
        buffer = from_vips(loader(bytes(data), fail_on=_FAIL_ON))
    except pyvips.Error as e:
        _logger.debug("decode failed (%s): %s", fmt, e)
        raise DecodeError(f"failed to decode {fmt}: {_describe(e)}", stage="decode") from e
    _logger.debug("decoded %s %dx%d", fmt, buffer.shape[1], buffer.shape[0])
    return buffer


def decode_autodetect(data: bytes) -> np.ndarray:
    """Decode ``data`` in whatever supported format its signature announces."""
    if not data:
        raise DecodeError("no data to decode")
    fmt = detect_format(data)
    if fmt is None:
        raise UnsupportedFormat("could not detect a supported image format from the data signature")
    _logger.debug("detected %s from signature", fmt)
    pyvips = _get_pyvips_module()
    loader = getattr(pyvips.Image, _LOADERS[fmt])
    try:
        return from_vips(loader(bytes(data), fail_on=_FAIL_ON))
    except pyvips.Error as e:
        raise DecodeError(f"failed to decode {fmt}: {_describe(e)}") from e


def _encode_jpeg(image: Any, quality: int | None, settings: SettingsManager) -> bytes:
    q = settings.jpeg_default_quality if quality is None else max(1, quality)
    flat = image.flatten(background=settings.jpeg_background)
    if flat.format != "uchar":
        flat = flat.cast("uchar")
    return flat.write_to_buffer(".jpg", Q=q)


def _encode_png(image: Any, quality: int | None, settings: SettingsManager) -> bytes:
    if quality is not None:
        _logger.debug("quality %d ignored for lossless png", quality)
    return image.write_to_buffer(".png", compression=settings.png_compression)


def _encode_webp(image: Any, quality: int | None, settings: SettingsManager) -> bytes:
    if quality is None:
        # exact: keep RGB under fully transparent pixels
        return image.write_to_buffer(".webp", lossless=True, exact=True, effort=settings.webp_effort)
    return image.write_to_buffer(".webp", Q=quality, effort=settings.webp_effort)


_ENCODERS = {
    "jpeg": _encode_jpeg,
    "png": _encode_png,
    "webp": _encode_webp,
}


def encode(
    buffer: np.ndarray,
    fmt: str,
    quality: int | None = None,
    settings: SettingsManager | None = None,
) -> bytes:
    """Encode an RGBA buffer to ``fmt``.

    ``quality`` drives lossy jpeg/webp compression and is ignored for png.
    Without a quality, webp is written lossless.
    """
    fmt = normalize_output_format(fmt)
    if settings is None:
        settings = SettingsManager()
    pyvips = _get_pyvips_module()
    try:
        out = _ENCODERS[fmt](to_vips(buffer), quality, settings)
    except pyvips.Error as e:
        _logger.debug("encode failed (%s): %s", fmt, e)
        raise EncodeError(f"failed to encode {fmt}: {_describe(e)}", stage="encode") from e
    # Normalize to bytes in case pyvips returns a memoryview-like object
    return out if isinstance(out, bytes) else bytes(out)
