from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")

SETTINGS_ENV_VAR = "IMAGE_CPR_SETTINGS"


class SettingsManager:
    """Encoder defaults backed by an optional JSON file.

    The path may be given explicitly or through ``IMAGE_CPR_SETTINGS``. A
    missing or unreadable file leaves every key at its default.
    """

    DEFAULTS: dict[str, Any] = {
        "jpeg_default_quality": 80,
        "jpeg_background": [255, 255, 255],
        "png_compression": 9,
        "webp_effort": 4,
    }

    def __init__(self, settings_path: str | None = None):
        self.settings_path = settings_path or os.getenv(SETTINGS_ENV_VAR) or None
        self._settings: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if not self.settings_path:
            self._settings = {}
            return
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
                    _logger.warning("settings file is not a JSON object: %s", self.settings_path)
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def _int_setting(self, key: str, lo: int, hi: int) -> int:
        val = self.get(key)
        try:
            num = int(val)
        except (TypeError, ValueError):
            _logger.warning("invalid %s in settings: %r", key, val)
            return int(self.DEFAULTS[key])
        if not lo <= num <= hi:
            _logger.warning("%s out of range [%d, %d]: %d", key, lo, hi, num)
            return int(self.DEFAULTS[key])
        return num

    @property
    def jpeg_default_quality(self) -> int:
        return self._int_setting("jpeg_default_quality", 1, 100)

    @property
    def png_compression(self) -> int:
        return self._int_setting("png_compression", 0, 9)

    @property
    def webp_effort(self) -> int:
        return self._int_setting("webp_effort", 0, 6)

    @property
    def jpeg_background(self) -> list[int]:
        val = self.get("jpeg_background")
        if (
            isinstance(val, (list, tuple))
            and len(val) == 3
            and all(isinstance(c, int) and not isinstance(c, bool) and 0 <= c <= 255 for c in val)
        ):
            return [int(c) for c in val]
        _logger.warning("saved jpeg_background invalid: %r", val)
        return list(self.DEFAULTS["jpeg_background"])
