# ops/logging_config.py
"""
Logging configuration for the HERA backend.

Two renderings of the same records:
- console: one readable line per record (DEBUG / local runs)
- json:    one JSON object per line on stdout (everything else)

Store code logs with `extra={...}`. The tenant and row identifiers below
are lifted to the top level of a JSON line so they can be indexed; any
other extra lands under "extra".

Environment variables:
- LOG_FORMAT: "json" or "console" (default: console when DEBUG, else json)
- LOG_LEVEL:  DEBUG, INFO, WARNING, ERROR (default: DEBUG when DEBUG, else INFO)
"""
import json
import logging
import os
from datetime import datetime, timezone


APP_LOGGERS = (
    "universal",
    "tenancy",
    "entities",
    "relationships",
    "transactions",
    "posting",
    "ops",
)

CONTEXT_FIELDS = (
    "organization_id",
    "entity_id",
    "relationship_id",
    "transaction_id",
    "branch_id",
    "business_date",
    "smart_code",
    "code",
)

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def _handler(formatter: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "formatter": formatter,
        "stream": "ext://sys.stdout",
    }


def _logger(level: str, handlers=("console",)) -> dict:
    return {"handlers": list(handlers), "level": level, "propagate": False}


def get_logging_config(debug: bool = False) -> dict:
    """
    Build the Django LOGGING dict.

    Args:
        debug: settings.DEBUG; picks the default format and level

    Returns:
        dictConfig-compatible dict
    """
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json").lower()
    formatter = "json" if log_format == "json" else "console"

    loggers = {app: _logger(log_level) for app in APP_LOGGERS}
    loggers.update({
        "django": _logger(log_level),
        "django.request": _logger(log_level if debug else "ERROR"),
        "django.db.backends": _logger("DEBUG", ["console"] if debug else ["null"]),
        "celery": _logger(log_level),
    })

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "ops.logging_config.JsonFormatter"},
            "console": {
                "()": "ops.logging_config.ConsoleFormatter",
                "format": "[{asctime}] {levelname} {name} {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": _handler(formatter),
            "null": {"class": "logging.NullHandler"},
        },
        "root": {"handlers": ["console"], "level": log_level},
        "loggers": loggers,
    }


def record_extras(record: logging.LogRecord) -> dict:
    """Fields passed through extra=, made JSON-safe."""
    extras = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        extras[key] = value
    return extras


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record:

        {"timestamp", "level", "logger", "message",
         "organization_id"?, "transaction_id"?, ..., "extra"?, "exception"?}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        extras = record_extras(record)
        for field in CONTEXT_FIELDS:
            if field in extras:
                entry[field] = extras.pop(field)
        if extras:
            entry["extra"] = extras

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Readable line with the organization appended when the record has one."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        organization_id = getattr(record, "organization_id", None)
        if organization_id:
            line = f"{line} [org={organization_id}]"
        return line
