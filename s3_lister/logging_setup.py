from __future__ import annotations
"""Logging initialization for the command line tool."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 3


def configure_logging(level: str = "info", log_file: str | Path | None = None) -> logging.Logger:
    """Attach console and optional file handlers to the ``s3_lister`` logger.

    Only the package logger is touched, so botocore's own loggers keep
    whatever configuration the host process gave them.
    """

    logger = logging.getLogger("s3_lister")
    numeric_level = getattr(logging, str(level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: list[logging.Handler] = []
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    handlers.append(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for handler in logger.handlers:
        handler.close()
    for handler in handlers:
        handler.setLevel(numeric_level)
    logger.setLevel(numeric_level)
    logger.handlers = handlers
    logger.propagate = False
    return logger
