"""Logging configuration shared by the CLI and the HTTP server."""

from __future__ import annotations

import logging
import logging.config
import sys
from pathlib import Path
from typing import Dict, Optional

LOGGER_NAME = "AccessWhitelist"


def configure_logging(
    log_format: str = "text",
    verbose: bool = False,
    log_path: Optional[Path] = None,
) -> logging.Logger:
    level = "DEBUG" if verbose else "INFO"
    formatter = "json" if log_format == "json" else "text"
    handlers: Dict[str, Dict[str, object]] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": sys.stderr,
            "formatter": formatter,
            "level": level,
        }
    }
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": str(log_path),
            "mode": "a",
            "encoding": "utf-8",
            "formatter": formatter,
        }

    formatters = {
        "text": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "loggers": {
                LOGGER_NAME: {
                    "handlers": list(handlers.keys()),
                    "level": level,
                    "propagate": False,
                }
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
        }
    )
    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(
        "Logging configured",
        extra={"log_path": str(log_path) if log_path else None, "log_format": log_format},
    )
    return logger
