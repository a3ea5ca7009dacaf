"""Command-line host for the pipeline.

Reads the input (and watermark) files, builds the raw configuration mapping
from an optional JSON file plus flags, runs :func:`image_cpr.pipeline.process`
and writes the result.
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Any

from image_cpr.errors import ImageProcessingError
from image_cpr.logger import CATS_ENV_VAR, LEVEL_ENV_VAR, get_logger, setup_logger
from image_cpr.pipeline import process
from image_cpr.settings_manager import SettingsManager


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="image-cpr", description="Crop, resize, watermark and re-encode an image")
    p.add_argument("input", type=Path, help="Input image file")
    p.add_argument("-o", "--output", type=Path, required=True, help="Output file")
    p.add_argument("--config", type=Path, help="JSON configuration file")
    p.add_argument("--settings", type=str, help="JSON settings file with encoder defaults")

    g_fmt = p.add_argument_group("Formats")
    g_fmt.add_argument("--format", help="Input format (default: from input suffix)")
    g_fmt.add_argument("--output-format", help="Output format (default: input format)")
    g_fmt.add_argument("--quality", type=int, help="Output quality 0-100 (jpeg/webp)")

    g_geo = p.add_argument_group("Geometry")
    g_geo.add_argument("--crop", type=int, nargs=4, metavar=("X", "Y", "W", "H"))
    g_geo.add_argument("--size", type=int, nargs=2, metavar=("W", "H"))

    g_wm = p.add_argument_group("Watermark")
    g_wm.add_argument("--watermark", type=Path, help="Watermark image file")
    g_wm.add_argument("--position", type=int, nargs=4, metavar=("X", "Y", "W", "H"))
    g_wm.add_argument("--opacity", type=float, help="Watermark opacity 0-100 (default 100)")
    g_wm.add_argument("--use-watermark-alpha", action="store_true", default=None)

    g_log = p.add_argument_group("Logging")
    g_log.add_argument("-v", "--verbose", action="store_true", help="Shorthand for --log-level debug")
    g_log.add_argument("--log-level", help="Set log level")
    g_log.add_argument("--log-cats", help="Set log categories")
    return p


def _apply_logging_options(args: argparse.Namespace) -> None:
    if args.verbose:
        os.environ[LEVEL_ENV_VAR] = "debug"
    if args.log_level:
        os.environ[LEVEL_ENV_VAR] = args.log_level
    if args.log_cats:
        os.environ[CATS_ENV_VAR] = args.log_cats
    setup_logger()


def _load_watermark_content(watermark: dict[str, Any], base_dir: Path) -> None:
    content = watermark.get("content")
    if isinstance(content, str):
        path = Path(content)
        if not path.is_absolute():
            path = base_dir / path
        watermark["content"] = path.read_bytes()


def build_raw_config(args: argparse.Namespace) -> dict[str, Any]:
    """Merge the JSON config file (if any) with command-line overrides."""
    raw: dict[str, Any] = {}
    base_dir = Path.cwd()
    if args.config:
        with open(args.config, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{args.config}: configuration must be a JSON object")
        raw.update(data)
        base_dir = args.config.resolve().parent

    if args.format:
        raw["format"] = args.format
    elif "format" not in raw:
        raw["format"] = args.input.suffix.lstrip(".")
    if args.output_format:
        raw["output_format"] = args.output_format
    if args.quality is not None:
        raw["quality"] = args.quality
    if args.crop:
        raw["crop"] = dict(zip(("x", "y", "width", "height"), args.crop))
    if args.size:
        raw["size"] = dict(zip(("width", "height"), args.size))

    watermark = dict(raw.get("watermark") or {})
    if args.watermark:
        watermark["content"] = args.watermark.read_bytes()
    if args.position:
        watermark["position"] = list(args.position)
    if args.opacity is not None:
        watermark["opacity"] = args.opacity
    if args.use_watermark_alpha is not None:
        watermark["use_watermark_alpha"] = args.use_watermark_alpha
    if watermark:
        _load_watermark_content(watermark, base_dir)
        raw["watermark"] = watermark
    return raw


def main(argv: list[str] | None = None) -> int:
    args = build_argparser().parse_args(argv)
    _apply_logging_options(args)
    logger = get_logger("cli")

    try:
        raw = build_raw_config(args)
        data = args.input.read_bytes()
    except (OSError, ValueError) as e:
        logger.error("cannot read input: %s", e)
        return 1

    try:
        out = process(data, raw, SettingsManager(args.settings))
    except ImageProcessingError as e:
        logger.error("%s", e)
        return 1

    try:
        args.output.write_bytes(out)
    except OSError as e:
        logger.error("cannot write output: %s", e)
        return 1
    logger.info("wrote %s (%d bytes)", args.output, len(out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
