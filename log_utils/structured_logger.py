"""
Structured JSON logging for the ledger sync core.

Every entry carries timestamp, level, logger and source location. Known
context fields (the read call, cache key, entity or transaction being worked
on) are promoted to the top level; any other ``extra`` values are grouped
under ``"extra"``.
"""

import functools
import inspect
import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

CONTEXT_FIELDS = (
    "correlation_id",
    "function_name",
    "admission_key",
    "cache_key",
    "entity_id",
    "tx_id",
    "operation",
    "duration",
    "status",
)

# Attributes present on every LogRecord
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update({f: getattr(record, f) for f in CONTEXT_FIELDS if hasattr(record, f)})

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        leftovers = {
            k: v for k, v in vars(record).items()
            if k not in _RECORD_ATTRS and k not in CONTEXT_FIELDS
        }
        if leftovers:
            entry["extra"] = leftovers

        return json.dumps(entry, default=str)


class ContextualLogger:
    """
    Wraps a stdlib logger and merges bound context into every record.

    Per-call context goes in ``extra={...}``; bound context from
    ``with_context`` wins on conflicts.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.context: Dict[str, Any] = dict(context or {})

    def with_context(self, **context) -> "ContextualLogger":
        return ContextualLogger(self.logger, {**self.context, **context})

    def log(self, level: int, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        merged = {**(extra or {}), **self.context}
        self.logger.log(level, msg, *args, extra=merged, stacklevel=3, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self.log(logging.CRITICAL, msg, *args, **kwargs)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_structured: bool = True
) -> ContextualLogger:
    """Configure the root logger once, from the entry point"""
    numeric_level = getattr(logging, level.upper())
    formatter = StructuredFormatter() if enable_structured else logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    handlers = []
    if enable_console:
        # stderr keeps CLI output on stdout clean
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    return ContextualLogger(root)


def log_performance(logger: ContextualLogger, operation: str):
    """Log the outcome and duration of each call to the decorated function"""

    def report(started: float, error: Optional[BaseException] = None):
        context = {"operation": operation, "duration": time.time() - started}
        if error is None:
            logger.info(f"Operation completed: {operation}", extra={**context, "status": "success"})
        else:
            logger.error(
                f"Operation failed: {operation}",
                extra={**context, "status": "error", "error": str(error)},
            )

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    report(started, e)
                    raise
                report(started)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                report(started, e)
                raise
            report(started)
            return result
        return wrapper

    return decorator


def get_logger(name: str) -> ContextualLogger:
    """Contextual logger for a module"""
    return ContextualLogger(logging.getLogger(name))
