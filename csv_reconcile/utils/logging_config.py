"""
Logging Configuration
---------------------
Sets up the log file and console handlers for a reconciliation run.
"""

import os
import logging
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"


def log_file_name(now: Optional[datetime] = None) -> str:
    """Timestamped log file name, e.g. reconciliation-20240131-093000.log."""
    now = now or datetime.now()
    return f"reconciliation-{now:%Y%m%d-%H%M%S}.log"


def configure_logging(
    log_dir: Optional[str] = None,
    level: int = logging.INFO,
    console: bool = True
) -> Optional[str]:
    """
    Configure the root logger for a run.

    Any handlers from an earlier call are replaced, so the menu can run
    several reconciliations in one process.

    Args:
        log_dir: Directory for the log file; no file is written when None
        level: Minimum level for both handlers
        console: Whether to also log to stderr

    Returns:
        Optional[str]: Path of the log file, if one was created
    """
    handlers = []
    log_path = None

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, log_file_name())
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        handlers.append(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(stream_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level, handlers=handlers, force=True)
    return log_path
