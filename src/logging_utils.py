"""Consolidated structured logging configuration for agentic_workflow."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from config import config


class JSONFormatter(logging.Formatter):
    """One JSON object per line; structured context rides in the record's ``extra`` attribute."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "extra": getattr(record, "extra", {}),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logger(
    name: str = "agentic_workflow",
    level: Optional[str] = None,
    log_path: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach a JSON-lines file handler and, unless LOG_CONSOLE is false, a plain
    console handler. Level and path default to the LOG_LEVEL and LOG_PATH settings.
    Calling it again for a configured logger returns it unchanged.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    settings = config.logging
    logger.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))
    logger.propagate = False

    path = log_path or settings.log_path
    path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(path, encoding="utf-8")
    if settings.json_format:
        file_handler.setFormatter(JSONFormatter())
    else:
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(file_handler)

    if settings.console_output:
        console_handler = logging.StreamHandler()
        console_formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    return logger


logger = setup_logger()
