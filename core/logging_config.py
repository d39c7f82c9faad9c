"""Structured logging helpers for certificate lifecycle events."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from core.time import utc_now_isoformat


# Field names that must never reach a log payload
_REDACTED_FIELDS = frozenset(
    {"password", "private_key", "private_key_pem", "key_pem", "prv", "passphrase"}
)


def ensure_default_level(logger: logging.Logger, level: int = logging.INFO) -> logging.Logger:
    """Give *logger* a concrete level when it is still ``NOTSET``."""

    if logger.level == logging.NOTSET:
        logger.setLevel(level)
    return logger


class StructuredLogger:
    """Helper for emitting structured JSON logs for lifecycle operations."""

    def __init__(self, logger: logging.Logger, defaults: Optional[Mapping[str, Any]] = None):
        self._logger = logger
        self._defaults: Dict[str, Any] = dict(defaults or {})

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def bind(self, **extra: Any) -> "StructuredLogger":
        """Return a new logger with additional default fields."""

        merged = dict(self._defaults)
        merged.update(extra)
        return StructuredLogger(self._logger, merged)

    def _emit(self, level: int, event: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        payload: Dict[str, Any] = {
            "ts": utc_now_isoformat(),
            "event": event,
            "level": logging.getLevelName(level),
        }
        payload.update(self._defaults)
        payload.update(fields)
        for name in _REDACTED_FIELDS.intersection(payload):
            payload[name] = "***"
        message = json.dumps(payload, ensure_ascii=False, default=str)
        self._logger.log(level, message, extra={"event": event})

    def log(self, level: int, event: str, **fields: Any) -> None:
        """Emit a log entry at *level* with structured payload."""

        self._emit(level, event, **fields)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, **fields)


def structured_logger(logger_name: str, **defaults: Any) -> StructuredLogger:
    """Return a :class:`StructuredLogger` bound to ``logging.getLogger(logger_name)``."""

    logger = ensure_default_level(logging.getLogger(logger_name))
    return StructuredLogger(logger, defaults)


__all__ = ["StructuredLogger", "ensure_default_level", "structured_logger"]
