"""
Logging setup: console always, daily-rotated file when LOG_DIR is set.
"""

import logging.config
import os
from typing import Any

from querybridge.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_logging_config(
    level: str | None = None, log_dir: str | None = None
) -> dict[str, Any]:
    level = level or settings.LOG_LEVEL
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    }
    if log_dir:
        handlers["file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": "default",
            "filename": os.path.join(log_dir, f"{settings.PROJECT_NAME}.log"),
            "when": "midnight",
            "backupCount": 30,
            "encoding": "utf-8",
        }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": _FORMAT}},
        "handlers": handlers,
        "loggers": {
            "querybridge": {
                "handlers": list(handlers),
                "level": level,
                "propagate": True,
            },
        },
    }


_configured = False


def setup_logging() -> None:
    """Install the logging config once per process; later calls are no-ops."""
    global _configured
    if _configured:
        return
    log_dir = settings.LOG_DIR
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir=log_dir))
    _configured = True
