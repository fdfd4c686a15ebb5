# sarif_issues/utils/logger.py

"""
Centralized logger configuration for sarif-issues.

Provides a `get_logger(name: str)` function. On first request, it:
  - Configures a StreamHandler to stderr on the `sarif_issues` base logger
  - Sets a default formatter: "YYYY-MM-DD HH:MM:SS LEVEL [logger_name] message"
  - Defaults to INFO level (can be overridden via environment variable)

Module loggers are children of the base logger, so a JSON-lines file
handler attached with `attach_json_log()` sees every record of a run.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone

from sarif_issues.utils.settings import ENV_LOG_LEVEL, MAX_LOG_MESSAGE_LENGTH

_BASE_NAME = "sarif_issues"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE = re.compile(r"\s+")


def _configure_base() -> logging.Logger:
    base = logging.getLogger(_BASE_NAME)
    if not base.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT, datefmt=_DATEFMT))
        base.addHandler(handler)

        level = logging.INFO
        env_level = os.getenv(ENV_LOG_LEVEL, "").upper()
        if env_level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            level = getattr(logging, env_level)
        base.setLevel(level)

        # Prevent double-logging: do not propagate to root
        base.propagate = False
    return base


def get_logger(name: str = None) -> logging.Logger:
    """
    Return a logger under the `sarif_issues` namespace. `__name__` of a
    package module is used as-is; any other name is prefixed.
    """
    _configure_base()
    if not name or name == _BASE_NAME:
        return logging.getLogger(_BASE_NAME)
    if name.startswith(_BASE_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_BASE_NAME}.{name}")


def sanitize_log_message(message) -> str:
    """
    Strip control characters, collapse whitespace and cap the length of a
    log message so report-supplied text cannot forge or bloat log lines.
    """
    text = message if isinstance(message, str) else str(message)
    text = _CONTROL_CHARS.sub("", _WHITESPACE.sub(" ", text))
    return text[:MAX_LOG_MESSAGE_LENGTH].strip()


class JsonLineFormatter(logging.Formatter):
    """Formats a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_log_message(record.getMessage()),
        }
        return json.dumps(entry)


def attach_json_log(path: str) -> logging.Handler:
    """
    Append JSON-lines records for every `sarif_issues` logger to `path`.
    Returns the handler so the caller can detach it with `detach_handler`.
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(JsonLineFormatter())
    _configure_base().addHandler(handler)
    return handler


def detach_handler(handler: logging.Handler) -> None:
    base = logging.getLogger(_BASE_NAME)
    base.removeHandler(handler)
    handler.close()
