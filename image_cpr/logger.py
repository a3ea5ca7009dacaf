import logging
import os
import sys

LEVEL_ENV_VAR = "IMAGE_CPR_LOG_LEVEL"
CATS_ENV_VAR = "IMAGE_CPR_LOG_CATS"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logger(level: int = logging.INFO, name: str = "image_cpr") -> logging.Logger:
    """Configure the project logger. Safe to call repeatedly."""
    logger = logging.getLogger(name)

    env_level = (os.getenv(LEVEL_ENV_VAR) or "").strip().lower()
    logger.setLevel(_LEVELS.get(env_level, level))

    stream_handler: logging.StreamHandler | None = None
    for h in list(logger.handlers):
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            stream_handler = h

    if stream_handler is None:
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        logger.addHandler(stream_handler)

    stream_handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s", "%H:%M:%S"))

    stream_handler.filters.clear()
    cats = (os.getenv(CATS_ENV_VAR) or "").strip()
    if cats:
        stream_handler.addFilter(CategoryFilter({c.strip() for c in cats.split(",") if c.strip()}))

    logger.propagate = False
    return logger


class CategoryFilter(logging.Filter):
    """Pass only records whose logger name ends in one of the allowed categories."""

    def __init__(self, allowed: set[str]) -> None:
        super().__init__()
        self.allowed = allowed

    def filter(self, record: logging.LogRecord) -> bool:
        parts = (record.name or "").split(".")
        suffix = parts[-1] if parts else record.name
        return suffix in self.allowed


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
