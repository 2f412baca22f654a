from __future__ import annotations

import json
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "brdjobs"
DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra={"data": {...}}`` is merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": int(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if isinstance(data, dict):
            payload.update(data)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        data = getattr(record, "data", None)
        if data:
            line = f"{line} {json.dumps(data, ensure_ascii=False, default=str)}"
        return line


def setup_logging(
    log_level: str = "INFO",
    structured: bool = True,
    verbose: bool = False,
    stream: Optional[object] = None,
) -> logging.Logger:
    """Configure the package logger.

    Without ``verbose`` only WARNING and above are emitted, whatever
    ``log_level`` says.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {log_level}")
    if not verbose:
        level = max(level, logging.WARNING)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter() if structured else PlainFormatter(DEFAULT_LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
