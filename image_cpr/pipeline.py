"""Pipeline orchestrator.

Runs decode -> crop? -> resize? -> watermark? -> encode over one request.
The order is fixed: watermark coordinates refer to the post-resize buffer.
The first failing stage aborts the run and its error propagates unchanged.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from image_cpr import codec
from image_cpr.compositor import apply_watermark
from image_cpr.config import ImageConfig, parse_config
from image_cpr.errors import ImageProcessingError
from image_cpr.geometry import crop, resize
from image_cpr.logger import get_logger
from image_cpr.settings_manager import SettingsManager

_logger = get_logger("pipeline")


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[[np.ndarray], np.ndarray]


def build_stages(config: ImageConfig) -> list[Stage]:
    """Return the transform stages enabled by ``config``, in execution order."""
    stages: list[Stage] = []
    if config.crop is not None:
        rect = config.crop.as_tuple()
        stages.append(Stage("crop", lambda buf: crop(buf, rect)))
    if config.size is not None:
        size = config.size
        stages.append(Stage("resize", lambda buf: resize(buf, size.width, size.height)))
    if config.watermark is not None:
        mark = config.watermark
        stages.append(Stage("watermark", lambda buf: apply_watermark(buf, mark)))
    return stages


def _run_stage(name: str, fn: Callable[..., Any], *args: Any) -> Any:
    start = time.perf_counter()
    try:
        result = fn(*args)
    except ImageProcessingError as e:
        if e.stage is None:
            e.stage = name
        _logger.debug("stage %s failed: %s", name, e)
        raise
    _logger.debug("stage %s done in %.1f ms", name, (time.perf_counter() - start) * 1000.0)
    return result


def process(
    input_bytes: bytes,
    config: ImageConfig | Mapping[str, Any],
    settings: SettingsManager | None = None,
) -> bytes:
    """Transform ``input_bytes`` as described by ``config`` and return the encoded result.

    ``config`` may be a parsed :class:`ImageConfig` or the raw mapping form.

    Raises:
        ImageProcessingError: from whichever stage failed first
    """
    if not isinstance(config, ImageConfig):
        config = parse_config(config)
    if settings is None:
        settings = SettingsManager()

    buffer = _run_stage("decode", codec.decode, input_bytes, config.format)
    for stage in build_stages(config):
        buffer = _run_stage(stage.name, stage.run, buffer)
    out = _run_stage("encode", codec.encode, buffer, config.target_format, config.quality, settings)

    _logger.debug("processed %s -> %s (%d bytes)", config.format, config.target_format, len(out))
    return out
