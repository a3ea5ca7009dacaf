"""Error taxonomy for the image pipeline.

Every failure raised by :mod:`image_cpr` derives from :class:`ImageProcessingError`.
The ``stage`` attribute names the pipeline stage that failed (``decode``,
``crop``, ``resize``, ``watermark``, ``encode`` or ``config``); the orchestrator
fills it in when the raising code did not.
"""

from __future__ import annotations


class ImageProcessingError(Exception):
    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class UnsupportedFormat(ImageProcessingError):
    """Format tag not recognized by the codec boundary."""


class InvalidParameter(ImageProcessingError, ValueError):
    """Numeric or structural config field outside its legal range."""


class OutOfBounds(ImageProcessingError):
    pass


class CropOutOfBounds(OutOfBounds):
    pass


class WatermarkOutOfBounds(OutOfBounds):
    pass


class CodecError(ImageProcessingError):
    pass


class DecodeError(CodecError):
    pass


class EncodeError(CodecError):
    pass
