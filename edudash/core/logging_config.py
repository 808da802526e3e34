# edudash/core/logging_config.py
import logging.config

from edudash.core.config import settings


def setup_logging() -> None:
    """
    Configure root logging once for the API process and the RQ worker.

    Development logs everything at DEBUG. Other environments log at
    settings.LOG_LEVEL, so operational errors are never silenced.
    """
    level = "DEBUG" if settings.is_development else settings.LOG_LEVEL.upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                # bcrypt version probing is noisy
                "passlib": {"level": "ERROR"},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
