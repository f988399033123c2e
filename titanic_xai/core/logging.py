"""
Structured Logging with Run ID Propagation

Features:
- JSON structured logs or human-readable text
- Pipeline run ID in all log entries
- Stage timing information
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

from titanic_xai.core.settings import Settings, settings as default_settings

# Context variable for run_id propagation
run_id_ctx: ContextVar[str] = ContextVar("run_id", default="-")


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter with run_id."""

    def __init__(self, debug: bool = False):
        super().__init__()
        self.debug = debug

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": run_id_ctx.get("-"),
        }

        # Add extra fields
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        # Add exception info
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add source location in debug mode
        if self.debug:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter with run_id."""

    def format(self, record: logging.LogRecord) -> str:
        run_id = run_id_ctx.get("-")
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = (
            f"{timestamp} [{record.levelname}] "
            f"[{run_id}] {record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(config: Settings | None = None) -> None:
    """Configure logging based on settings."""
    config = config or default_settings
    level = getattr(logging, config.LOG_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if config.LOG_FORMAT == "json":
        handler.setFormatter(StructuredFormatter(debug=config.DEBUG))
    else:
        handler.setFormatter(TextFormatter())

    root_logger.addHandler(handler)


def new_run_id() -> str:
    """Short random identifier for one pipeline run."""
    return uuid.uuid4().hex[:12]


@contextmanager
def run_context(run_id: str | None = None) -> Iterator[str]:
    """Bind a run_id to every log record emitted inside the block."""
    run_id = run_id or new_run_id()
    token = run_id_ctx.set(run_id)
    try:
        yield run_id
    finally:
        run_id_ctx.reset(token)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
):
    """Log with extra context data (rendered by StructuredFormatter)."""
    logger.log(level, message, extra={"extra_data": extra})


class Timer:
    """Simple timer for measuring stage duration."""

    def __init__(self, name: str, logger: logging.Logger | None = None):
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        if exc_type is None:
            self.logger.info(
                f"{self.name} completed in {self.elapsed_ms:.0f} ms",
                extra={"extra_data": {"duration_ms": round(self.elapsed_ms, 2)}},
            )

    @property
    def elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000

    @property
    def elapsed_seconds(self) -> float:
        return self.elapsed_ms / 1000
