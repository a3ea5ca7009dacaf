"""Typed pipeline configuration parsed from an untyped mapping.

The raw mapping uses the keys ``format``, ``crop``, ``size``, ``watermark``,
``output_format`` and ``quality``. Optional keys that are absent (or ``None``)
disable their stage; nothing is defaulted in their place.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from image_cpr.codec import normalize_format, normalize_output_format
from image_cpr.errors import ImageProcessingError, InvalidParameter


@dataclass(frozen=True)
class CropConfig:
    x: int
    y: int
    width: int
    height: int

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class SizeConfig:
    width: int
    height: int


@dataclass(frozen=True)
class WatermarkConfig:
    content: bytes
    position: tuple[int, int, int, int]  # x, y, width, height
    opacity: float  # 0.0 - 1.0
    use_watermark_alpha: bool = False


@dataclass(frozen=True)
class ImageConfig:
    format: str
    crop: CropConfig | None = None
    size: SizeConfig | None = None
    watermark: WatermarkConfig | None = None
    output_format: str | None = None
    quality: int | None = None

    @property
    def target_format(self) -> str:
        return self.output_format or self.format


def _int_field(value: Any, name: str, *, minimum: int = 0) -> int:
    # bool is an int subclass; a flag where a number belongs is a mistake
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        else:
            raise InvalidParameter(f"'{name}' must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidParameter(f"'{name}' must be >= {minimum}, got {value}")
    return value


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise InvalidParameter(f"'{key}' must be an object, got {type(value).__name__}")
    return value


def _required(section: Mapping[str, Any], key: str, owner: str) -> Any:
    if key not in section or section[key] is None:
        raise InvalidParameter(f"'{owner}.{key}' is required")
    return section[key]


def _parse_crop(section: Mapping[str, Any]) -> CropConfig:
    x = _int_field(_required(section, "x", "crop"), "crop.x")
    y = _int_field(_required(section, "y", "crop"), "crop.y")
    width = _int_field(_required(section, "width", "crop"), "crop.width", minimum=1)
    height = _int_field(_required(section, "height", "crop"), "crop.height", minimum=1)
    return CropConfig(x, y, width, height)


def _parse_size(section: Mapping[str, Any]) -> SizeConfig:
    width = _int_field(_required(section, "width", "size"), "size.width", minimum=1)
    height = _int_field(_required(section, "height", "size"), "size.height", minimum=1)
    return SizeConfig(width, height)


def _parse_opacity(value: Any) -> float:
    if value is None:
        return 1.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameter(f"'watermark.opacity' must be a number, got {value!r}")
    if not 0 <= value <= 100:
        raise InvalidParameter(f"'watermark.opacity' must be between 0 and 100, got {value}")
    return float(value) / 100.0


def _parse_watermark(section: Mapping[str, Any]) -> WatermarkConfig:
    content = _required(section, "content", "watermark")
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise InvalidParameter(f"'watermark.content' must be bytes, got {type(content).__name__}")

    position = _required(section, "position", "watermark")
    if isinstance(position, (str, bytes)) or not isinstance(position, Sequence) or len(position) != 4:
        raise InvalidParameter("'watermark.position' must be an array of 4 numbers [x, y, width, height]")
    x, y, width, height = (
        _int_field(v, f"watermark.position[{i}]", minimum=1 if i >= 2 else 0) for i, v in enumerate(position)
    )

    use_alpha = section.get("use_watermark_alpha", False)
    if use_alpha is None:
        use_alpha = False
    if not isinstance(use_alpha, bool):
        raise InvalidParameter(f"'watermark.use_watermark_alpha' must be a boolean, got {use_alpha!r}")

    return WatermarkConfig(
        content=bytes(content),
        position=(x, y, width, height),
        opacity=_parse_opacity(section.get("opacity")),
        use_watermark_alpha=use_alpha,
    )


def _parse_quality(value: Any) -> int | None:
    if value is None:
        return None
    quality = _int_field(value, "quality")
    if quality > 100:
        raise InvalidParameter(f"'quality' must be between 0 and 100, got {quality}")
    return quality


def parse_config(raw: Mapping[str, Any]) -> ImageConfig:
    """Parse and validate a raw configuration mapping.

    Raises:
        UnsupportedFormat: unknown ``format`` / ``output_format`` tag
        InvalidParameter: malformed or out-of-range field
    """
    if not isinstance(raw, Mapping):
        raise InvalidParameter(f"configuration must be an object, got {type(raw).__name__}", stage="config")
    try:
        if raw.get("format") is None:
            raise InvalidParameter("'format' is required")
        fmt = normalize_format(raw["format"])

        crop_raw = _section(raw, "crop")
        size_raw = _section(raw, "size")
        wm_raw = _section(raw, "watermark")
        output_format = raw.get("output_format")

        return ImageConfig(
            format=fmt,
            crop=_parse_crop(crop_raw) if crop_raw is not None else None,
            size=_parse_size(size_raw) if size_raw is not None else None,
            watermark=_parse_watermark(wm_raw) if wm_raw is not None else None,
            output_format=normalize_output_format(output_format) if output_format is not None else None,
            quality=_parse_quality(raw.get("quality")),
        )
    except ImageProcessingError as e:
        if e.stage is None:
            e.stage = "config"
        raise
