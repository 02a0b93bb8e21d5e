"""Root logging setup for applications embedding widgetsync."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

from .logging_utils import LOGGER_NAMESPACE

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
ROTATE_BYTES = 500 * 1024
ROTATE_BACKUPS = 2
# asyncio debug chatter drowns out sync traffic
QUIET_LOGGERS = ("asyncio",)

_configured = False


def coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        value = logging.getLevelName(level.strip().upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level '{level}'")
        return value
    return int(level)


def _build_handlers(log_file: Optional[Union[str, Path]]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=ROTATE_BYTES, backupCount=ROTATE_BACKUPS, encoding="utf-8"))
    return handlers


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Send records to stdout and, with ``log_file``, to a rotating file.

    A second call only changes the level unless ``force`` is set.
    """
    global _configured
    numeric_level = coerce_level(level)
    root = logging.getLogger()

    if force or not _configured:
        for old in list(root.handlers):
            root.removeHandler(old)
            old.close()
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        for handler in _build_handlers(log_file):
            handler.setFormatter(formatter)
            root.addHandler(handler)
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
        _configured = True

    root.setLevel(numeric_level)
    logging.getLogger(LOGGER_NAMESPACE).setLevel(numeric_level)


__all__ = ["configure_logging", "coerce_level", "LOG_FORMAT", "LOG_DATEFMT"]
