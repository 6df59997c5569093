from logging.config import dictConfig

from guidetrip.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process and the Celery worker."""
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "root": {"handlers": ["console"], "level": (level or settings.LOG_LEVEL).upper()},
        "loggers": {
            # SQL echo stays off unless asked for explicitly
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    })
