"""
Logging setup.
Configures the root logger once at startup from settings.
"""
from logging.config import dictConfig

from app.config import settings

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
JSON_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'


def setup_logging() -> None:
    formatter = "json" if settings.log_format.lower() == "json" else "default"
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": TEXT_FORMAT},
                "json": {"format": JSON_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                },
            },
            "root": {
                "level": settings.log_level.upper(),
                "handlers": ["console"],
            },
            "loggers": {
                # socket.io logs every packet at high verbosity
                "socketio": {"level": "WARNING"},
                "engineio": {"level": "WARNING"},
            },
        }
    )
