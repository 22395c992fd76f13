import json
import logging
import logging.config

from storyboard_gateway.config import get_settings

TELEMETRY_LOGGER_NAME = "ai_telemetry"


class TelemetryFormatter(logging.Formatter):
    """
    Render telemetry records as one JSON object per line

    The event payload travels in the record's ``telemetry`` attribute.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = getattr(record, "telemetry", None)
        if payload is None:
            return super().format(record)
        body = {"eventType": record.getMessage(), "level": record.levelname.lower()}
        body.update(payload)
        return json.dumps(body, ensure_ascii=False, default=str)


def setup_logging():
    """
    Configure global log format
    Standardize log output format for all loggers including uvicorn and the telemetry stream.
    """
    settings = get_settings()
    log_level = "DEBUG" if settings.DEBUG else "INFO"

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "telemetry": {
                "()": TelemetryFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
            "telemetry": {
                "class": "logging.StreamHandler",
                "formatter": "telemetry",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "root": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": True,
            },
            "uvicorn": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False,
            },
            "storyboard_gateway": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            TELEMETRY_LOGGER_NAME: {
                "handlers": ["telemetry"],
                "level": settings.AI_TELEMETRY_LEVEL.upper(),
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
