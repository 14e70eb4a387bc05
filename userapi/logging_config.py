"""
Logging Configuration
Sets up centralized console logging for the application.
"""

import logging
import logging.config
import sys

# LOG_LEVEL names accepted by the service mapped onto stdlib levels
LEVEL_NAMES = {
    "trace": "DEBUG",
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "fatal": "CRITICAL",
    "panic": "CRITICAL",
}


def resolve_level(log_level: str) -> str:
    """Translate a LOG_LEVEL value into a stdlib level name, defaulting to INFO."""
    return LEVEL_NAMES.get(log_level.strip().lower(), "INFO")


def setup_logging(log_level: str = "Info") -> None:
    """
    Configure logging for the application.

    Args:
        log_level: LOG_LEVEL value (Trace, Debug, Info, Warning, Error, Fatal or Panic)
    """
    level = resolve_level(log_level)

    logging_config = {
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
                "stream": sys.stdout,
                "formatter": "default",
                "level": level,
            },
        },
        "loggers": {
            "": {  # Root logger
                "handlers": ["console"],
                "level": level,
                "propagate": True,
            },
            "uvicorn.access": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
            },
        },
    }

    logging.config.dictConfig(logging_config)
    logging.getLogger(__name__).info(f"Logging configured at level {level}")
