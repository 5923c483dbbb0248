"""Logging for pipeline runs.

Stage messages go to stderr under the ``gradle_service`` logger, while the
SDK's own loggers are kept at warnings so they don't bury the stage output.
"""

import logging
import logging.config
import os
from typing import Final

LOG_LEVEL_ENV: Final = "GRADLE_SERVICE_LOG_LEVEL"
DEFAULT_LEVEL: Final = "INFO"


def log_level(default: str = DEFAULT_LEVEL) -> str:
    """Level name from the environment, or ``default`` if unset or unknown."""
    level = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if level in logging.getLevelNamesMapping():
        return level
    return default


def configure_logging(level: int | str | None = None):
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "stage": {
                "format": "{asctime} [{levelname}] {name}: {message}",
                "datefmt": "%H:%M:%S",
                "style": "{",
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "stage",
            },
        },
        "loggers": {
            "gradle_service": {
                "handlers": ["stderr"],
                "level": level or log_level(),
                "propagate": False,
            },
            "dagger": {
                "level": "WARNING",
            },
        },
    }
    logging.config.dictConfig(config)
