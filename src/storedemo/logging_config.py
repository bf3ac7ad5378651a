from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from storedemo.config.run_config import env_flag

# attributes every LogRecord carries; anything else arrived through ``extra``
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# libraries that log every request at INFO/DEBUG
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "azure.core.pipeline.policies.http_logging_policy")


class _StoreFormatter(logging.Formatter):
    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    @staticmethod
    def context(record: logging.LogRecord) -> dict[str, Any]:
        return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS and not k.startswith("_")}

    @staticmethod
    def task(record: logging.LogRecord) -> Optional[str]:
        # set by logging on 3.12+ when the record is emitted inside an asyncio task
        return getattr(record, "taskName", None)

    @staticmethod
    def created(record: logging.LogRecord) -> datetime:
        return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(_StoreFormatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.created(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "message": record.getMessage(),
        }
        task = self.task(record)
        if task:
            payload["task"] = task
        context = self.context(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(_StoreFormatter):
    def format(self, record: logging.LogRecord) -> str:
        task = self.task(record)
        origin = f"{self.service}:{task}" if task else self.service
        parts = [
            self.created(record).strftime("%Y-%m-%dT%H:%M:%S%z"),
            record.levelname,
            record.name,
            f"[{origin}]",
            record.getMessage(),
        ]
        parts.extend(f"{key}={value!r}" for key, value in sorted(self.context(record).items()))
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: Optional[str] = None,
    service: str = "storedemo",
    stream: Optional[TextIO] = None,
    json_lines: Optional[bool] = None,
) -> None:
    """
    Install a single stderr handler on the root logger.

    stdout is reserved for command output. ``level`` falls back to
    ``LOG_LEVEL`` and then WARNING; ``json_lines`` falls back to ``LOG_JSON``.
    """
    resolved_level = getattr(logging, (level or os.getenv("LOG_LEVEL", "WARNING")).upper(), logging.WARNING)
    if json_lines is None:
        json_lines = env_flag(os.environ, "LOG_JSON")

    handler = logging.StreamHandler(stream=stream or sys.stderr)
    handler.setFormatter(JsonFormatter(service) if json_lines else TextFormatter(service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))
    logging.captureWarnings(True)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def with_context(logger: logging.Logger, **context: Any) -> logging.LoggerAdapter:
    return logging.LoggerAdapter(logger, extra=context)
