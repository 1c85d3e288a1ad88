# logging_setup.py
"""Logging configuration shared by the command-line tools."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(filename)s:%(lineno)d - %(message)s"
)
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(debug_mode: bool=False, log_file: Optional[str]=None):
    """
    Setup logging configuration.

    Configures the root logger to output to the console (stderr) and,
    when `log_file` is given, to a rotating log file (10MB max size,
    5 backup files).

    Args:
        debug_mode (bool): If True, sets logging level to DEBUG for more
                           verbose output. Otherwise, sets to INFO.
        log_file (Optional[str]): Path of the log file. Its directory is
                                  created if it does not exist.
    """
    log_level = logging.DEBUG if debug_mode else logging.INFO
    root_logger = logging.getLogger()

    # Avoid adding duplicate handlers if setup_logging is called multiple times
    if not root_logger.handlers:
        logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])
    root_logger.setLevel(log_level)

    if not log_file:
        return

    log_path = os.path.abspath(log_file)
    for handler in root_logger.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == log_path:
            logging.getLogger(__name__).debug("Already logging to %s", log_path)
            return

    log_dir = os.path.dirname(log_path)
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)
    file_handler = RotatingFileHandler(
        log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)


def mask_secret(secret: Optional[str]) -> str:
    """Return a same-length mask for a password, for log output."""
    if not secret:
        return ""
    return "*" * len(secret)
