"""Logging setup for ratekeeper.

Limiters log through the ``ratekeeper`` logger hierarchy and attach their
decision (limiter id, policy, outcome) as ``extra`` fields. Nothing is
configured on import; applications call ``setup_logging()`` to install the
console handlers, choosing text, structured text or JSON output through
``settings.log_format``.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from ratekeeper.core.config import settings

ROOT_LOGGER = "ratekeeper"

# Decision fields limiters pass via ``extra``
CONTEXT_FIELDS = (
    "limiter_id",
    "policy",
    "tokens",
    "accepted",
    "remaining",
    "retry_at",
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
STRUCTURED_FORMAT = (
    TEXT_FORMAT
    + " - limiter_id=%(limiter_id)s policy=%(policy)s"
    + " accepted=%(accepted)s remaining=%(remaining)s"
)


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Decision fields are promoted to the top level; any other ``extra``
    values are grouped under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Give every record all decision fields so format strings never fail."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


def get_logging_config() -> Dict[str, Any]:
    """Build a ``dictConfig`` dictionary from the current settings."""
    level = settings.log_level.upper()
    log_format = settings.log_format.lower()

    formatters: Dict[str, Any] = {
        "standard": {"format": TEXT_FORMAT},
        "structured": {"format": STRUCTURED_FORMAT},
    }
    if log_format == "json":
        formatters["json"] = {"()": JSONFormatter}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    def handler(stream: Any, handler_level: str) -> Dict[str, Any]:
        return {
            "class": "logging.StreamHandler",
            "level": handler_level,
            "formatter": formatter,
            "stream": stream,
            "filters": ["context"],
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {"context": {"()": ContextFilter}},
        "handlers": {
            "console": handler(sys.stdout, level),
            "error_console": handler(sys.stderr, "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "level": level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """Install ratekeeper's handlers; call once at application startup."""
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    limiter_id: Optional[str] = None,
    policy: Optional[str] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """Build an ``extra`` mapping for a limiter log call, dropping None values.

    Example:
        >>> logger.debug(
        ...     "Consumed tokens",
        ...     extra=get_log_context(limiter_id="api:alice", policy="token_bucket", tokens=1),
        ... )
    """
    context = {"limiter_id": limiter_id, "policy": policy, **fields}
    return {key: value for key, value in context.items() if value is not None}
