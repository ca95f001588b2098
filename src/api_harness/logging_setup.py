"""Logging configuration for the CLI and for library users who want it."""

import logging.config

from api_harness.config import LOG_LEVEL

SENSITIVE_HEADERS = {"authorization", "x-api-key", "api-key", "proxy-authorization", "cookie"}


def setup_logging(level: str | None = None) -> None:
    """Configure a single stderr handler for the ``api_harness`` loggers."""
    level = (level or LOG_LEVEL).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "simple": {
                    "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "simple",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "api_harness": {"handlers": ["console"], "level": level, "propagate": False},
            },
        }
    )


def redact_headers(headers: dict[str, str], extra: tuple[str, ...] = ()) -> dict[str, str]:
    """Return a copy of ``headers`` safe to put in a log line."""
    hidden = SENSITIVE_HEADERS | {h.lower() for h in extra}
    return {k: ("<redacted>" if k.lower() in hidden else v) for k, v in headers.items()}
