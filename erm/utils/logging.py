"""
Structured logging for the ERM service.

Production output is one JSON object per line; development output is a
single readable line. Every record carries the request, workspace and user
bound by the request middleware.
"""

import asyncio
import json
import logging
import re
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
workspace_id_var: ContextVar[Optional[str]] = ContextVar("workspace_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Redis URLs and the analytics endpoint are the only secrets the service logs near
SENSITIVE_PATTERNS: list[re.Pattern] = [
    re.compile(r"(redis(?:s)?://)[^@\s/]*@", re.IGNORECASE),
    re.compile(r"bearer\s+[\w.-]+", re.IGNORECASE),
    re.compile(r"([?&](?:token|key|api_key)=)[^&\s]+", re.IGNORECASE),
]

REDACTED = "[REDACTED]"

DEVELOPMENT_FORMAT = (
    "%(asctime)s %(levelname)-8s [%(request_id)s] [%(workspace_id)s] %(name)s - %(message)s"
)

STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "request_id", "workspace_id", "user_id", "taskName"}


def redact_sensitive_data(message: str) -> str:
    """Mask credentials in Redis URLs, bearer tokens and token query parameters."""
    if not message:
        return message

    result = SENSITIVE_PATTERNS[0].sub(rf"\1{REDACTED}@", message)
    result = SENSITIVE_PATTERNS[1].sub(REDACTED, result)
    return SENSITIVE_PATTERNS[2].sub(rf"\1{REDACTED}", result)


class RequestContextFilter(logging.Filter):
    """Stamp request, workspace and user ids onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.workspace_id = workspace_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        record.msg = redact_sensitive_data(str(record.msg))
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys passed through ``extra=`` (feature, limit, duration_ms, ...) are
    grouped under ``extra``.
    """

    def __init__(self, service_name: str = "erm-api"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "workspace_id": getattr(record, "workspace_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in STANDARD_RECORD_ATTRS and not k.startswith("_")
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    service_name: str = "erm-api",
    level: str = "INFO",
    json_format: bool = False,
) -> logging.Logger:
    """
    Install the root handler.

    ``server.py`` calls this once with defaults at import time and again
    with the loaded ``LoggingSettings``; each call replaces the handler.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    if json_format:
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(DEVELOPMENT_FORMAT))
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def set_request_context(
    request_id: Optional[str] = None,
    workspace_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    if request_id is not None:
        request_id_var.set(request_id)
    if workspace_id is not None:
        workspace_id_var.set(workspace_id)
    if user_id is not None:
        user_id_var.set(user_id)


def clear_request_context() -> None:
    request_id_var.set(None)
    workspace_id_var.set(None)
    user_id_var.set(None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def get_workspace_id() -> Optional[str]:
    return workspace_id_var.get()


class Timer:
    """
    Context manager that logs how long a block took.

    Usage:
        with Timer("activity_csv_export", logger):
            rows = build_rows(activities)
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        if self.logger:
            self.logger.log(
                self.log_level,
                f"{self.name} completed in {self.elapsed_ms:.2f}ms",
                extra={"operation": self.name, "duration_ms": round(self.elapsed_ms, 2)},
            )


def timed(name: Optional[str] = None, log_level: int = logging.DEBUG) -> Callable:
    """
    Time a coroutine with ``Timer``, logging through its module's logger.

    Usage:
        @timed("usage_snapshot")
        async def get_usage(self):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"timed() expects a coroutine function, got {func.__name__}")
        operation_name = name or func.__name__
        func_logger = logging.getLogger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            with Timer(operation_name, func_logger, log_level):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
