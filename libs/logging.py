from __future__ import annotations

"""Application-wide logging configuration.

Provides a JSON formatter with a minimal, consistent set of fields:
- timestamp (UTC ISO8601), level, logger, service, environment, message
- Supports structured extras via `logger.info(msg, extra={...})` which are
  merged into the JSON.

Also hosts :class:`ErrorLog`, the sink every caught failure in the store is
reported to, and :func:`log_duration` for timing store operations.
"""

import functools
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, TypeVar

from libs.core.settings import get_settings

F = TypeVar("F", bound=Callable[..., Any])

_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter with stable keys and UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        settings = get_settings()
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        base: Dict[str, Any] = {
            "timestamp": dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "service": settings.service_name,
            "environment": settings.environment,
            "message": record.getMessage(),
        }
        # Merge any structured extras (from `extra=`)
        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS:
                continue
            # Don't overwrite base keys unless explicitly provided in extra
            if k not in base:
                base[k] = v
        if record.exc_info:
            etype = getattr(record.exc_info[0], "__name__", str(record.exc_info[0]))
            base["error"] = {
                "class": etype,
                "message": str(record.exc_info[1])[:500],
            }
        try:
            return json.dumps(base, ensure_ascii=False)
        except Exception:
            # Fallback to a repr if something is not JSON-serializable
            for k, v in list(base.items()):
                try:
                    json.dumps({k: v})
                except Exception:
                    base[k] = repr(v)
            return json.dumps(base, ensure_ascii=False)


def setup_logging() -> None:
    """Configure root logger to output one-line JSON logs."""

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


class ErrorLog:
    """Bounded in-memory record of caught failures, newest first.

    Every entry is also emitted on the ``errors`` logger, so the JSON log
    stream carries the same information. Logging never affects control flow.
    """

    def __init__(self, max_errors: int = 100) -> None:
        self.max_errors = max_errors
        self._errors: List[Dict[str, Any]] = []
        self._logger = logging.getLogger("errors")

    def log(self, error: BaseException | str, context: str = "") -> Dict[str, Any]:
        entry = {
            "message": str(error),
            "type": type(error).__name__ if isinstance(error, BaseException) else "str",
            "context": context,
            "timestamp": int(time.time() * 1000),
        }
        self._errors.insert(0, entry)
        del self._errors[self.max_errors :]
        exc_info = error if isinstance(error, BaseException) else None
        self._logger.error(
            "error_logged", extra={"context": context, "error_message": entry["message"]}, exc_info=exc_info
        )
        return entry

    def get_errors(self) -> List[Dict[str, Any]]:
        return [dict(e) for e in self._errors]

    def clear(self) -> None:
        self._errors = []

    def export(self) -> str:
        return json.dumps(self._errors, indent=2, ensure_ascii=False)

    def __len__(self) -> int:
        return len(self._errors)


def log_duration(label: str) -> Callable[[F], F]:
    """Log how long the wrapped call took, at DEBUG level."""

    def decorator(func: F) -> F:
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed = (time.perf_counter() - started) * 1000
                logger.debug("timing", extra={"operation": label, "duration_ms": round(elapsed, 2)})

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["setup_logging", "ErrorLog", "log_duration"]
