"""Structured logging for the engine.

Every record is one JSON line. Turn identifiers (sender, message id,
domain) found in a record's context are lifted to top-level keys so one
sender's conversation can be filtered without parsing the context blob.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional

TURN_FIELDS = ("sender", "message_id", "domain")

NOISY_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "uvicorn.access": logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            context = dict(context)
            for key in TURN_FIELDS:
                if context.get(key) is not None:
                    entry[key] = context.pop(key)
            if context:
                entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", stream: Optional[IO[str]] = None) -> None:
    """Route every logger through one JSON handler on stdout (or ``stream``)."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"deskflow.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Merges the bound turn context with a per-call ``context=`` dict."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        extra = dict(kwargs.get("extra") or {})
        combined = {**self.extra, **extra.get("context", {}), **(context or {})}
        if combined:
            extra["context"] = combined
            kwargs["extra"] = extra
        return msg, kwargs


def turn_logger(name: str, sender: str, message_id: str | None = None) -> LoggerAdapter:
    """Logger bound to one sender's turn."""
    extra = {"sender": sender}
    if message_id:
        extra["message_id"] = message_id
    return LoggerAdapter(get_logger(name), extra)
