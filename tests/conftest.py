"""Pytest configuration and in-memory image fixtures.

Images are built with numpy and encoded with Pillow so the tests never touch
the file system unless they need to (CLI tests use ``tmp_path``).
"""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep user settings and log overrides out of the tests."""
    monkeypatch.delenv("IMAGE_CPR_SETTINGS", raising=False)
    monkeypatch.delenv("IMAGE_CPR_LOG_CATS", raising=False)


def _encode(arr: np.ndarray, fmt: str, **kwargs) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format=fmt, **kwargs)
    return buf.getvalue()


@pytest.fixture
def encode_pil():
    """Return a helper that encodes a numpy array with Pillow."""
    return _encode


@pytest.fixture
def gradient_rgba():
    """Return a helper building an RGBA gradient with varied (non-zero) alpha."""

    def _make(width: int, height: int) -> np.ndarray:
        ys, xs = np.mgrid[0:height, 0:width]
        arr = np.empty((height, width, 4), dtype=np.uint8)
        arr[..., 0] = (xs * 255 // max(1, width - 1)).astype(np.uint8)
        arr[..., 1] = (ys * 255 // max(1, height - 1)).astype(np.uint8)
        arr[..., 2] = ((xs + ys) % 256).astype(np.uint8)
        arr[..., 3] = (1 + (xs * 7 + ys * 3) % 255).astype(np.uint8)
        return arr

    return _make


@pytest.fixture
def solid_rgba():
    def _make(width: int, height: int, color: tuple[int, int, int, int]) -> np.ndarray:
        arr = np.empty((height, width, 4), dtype=np.uint8)
        arr[...] = color
        return arr

    return _make


@pytest.fixture
def decode_pil():
    """Decode bytes with Pillow into an RGBA numpy array (for independent checks)."""

    def _decode(data: bytes) -> np.ndarray:
        with Image.open(io.BytesIO(data)) as img:
            return np.array(img.convert("RGBA"))

    return _decode
