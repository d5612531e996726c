"""Logging setup for schemasync processes."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Marks handlers installed here so repeated setup replaces them
_HANDLER_ATTR = "_schemasync_handler"


def setup_logging(level: str | int = logging.INFO, log_path: Path | None = None) -> None:
    """Configure logging to stderr and optionally to a file.

    stdout is left alone: fetch-completed and plan write their payload there.

    Args:
        level: Log level name or number.
        log_path: Optional path to a log file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("schemasync")
    root_logger.setLevel(level if isinstance(level, int) else level.upper())
    for handler in root_logger.handlers[:]:
        if getattr(handler, _HANDLER_ATTR, False):
            root_logger.removeHandler(handler)
            handler.close()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    setattr(stderr_handler, _HANDLER_ATTR, True)
    root_logger.addHandler(stderr_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_ATTR, True)
        root_logger.addHandler(file_handler)

    # Metrics server request noise
    for uvicorn_name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(uvicorn_name).setLevel(logging.WARNING)
