"""Logging setup for the notification client."""

from __future__ import annotations

from logging.config import dictConfig
from typing import Any


def build_logging_config(level: str = "INFO") -> dict[str, Any]:
    """Return a ``dictConfig`` mapping that logs to stdout at ``level``."""

    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "notification_center": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            "httpx": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }


def setup_logging(level: str = "INFO") -> None:
    """Apply the logging configuration."""

    dictConfig(build_logging_config(level))


__all__ = ["build_logging_config", "setup_logging"]
