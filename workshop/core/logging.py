"""Structured logging configuration for the workshop backend."""
from __future__ import annotations

import logging
import os
import sys
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Render records as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        parts = [f"{key}={value}" for key, value in log_data.items()]
        return " ".join(parts)


def get_logger(name: str) -> logging.Logger:
    """Return a logger with a single stdout handler attached."""

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        env = os.getenv("WORKSHOP_ENV", "dev")
        logger.setLevel(logging.DEBUG if env == "dev" else logging.INFO)
    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Log ``msg`` with extra structured fields (``session_id`` is promoted)."""

    extra: dict[str, Any] = {}
    if "session_id" in kwargs:
        extra["session_id"] = kwargs.pop("session_id")
    extra["extra_data"] = kwargs
    logger.log(level, msg, extra=extra)
