"""Structured JSON logging with run context."""
import logging
import sys
from typing import Any, TextIO

from pythonjsonlogger import jsonlogger

from stepflow.config import get_settings


CONTEXT_FIELDS = ("run_id", "step_id", "operation")


class RunContextFilter(logging.Filter):
    """Add run context fields to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Default missing context fields to None so formats never fail."""
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        # The format string names timestamp, so the base class inserts None
        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        # Only emit context that is actually set
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                log_record[name] = value
            else:
                log_record.pop(name, None)


class ContextTextFormatter(logging.Formatter):
    """Human-readable formatter that appends run context when present."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None)
        )
        return f"{line} [{context}]" if context else line


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Configure logging for the process.

    Args:
        level: Log level (defaults to settings.log_level)
        fmt: "json" or "text" (defaults to settings.log_format)
        stream: Output stream (defaults to stderr, keeping stdout for results)
    """
    settings = get_settings()

    handler = logging.StreamHandler(stream or sys.stderr)

    if (fmt or settings.log_format) == "text":
        formatter: logging.Formatter = ContextTextFormatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    handler.setFormatter(formatter)
    handler.addFilter(RunContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.log_level).upper())

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> logging.LoggerAdapter:
    """
    Get a logger carrying run context.

    Args:
        name: Logger name (typically __name__)
        **context: Fixed context, e.g. run_id

    Returns:
        LoggerAdapter merging its context into every record
    """
    logger = logging.getLogger(name)
    return _MergingAdapter(logger, extra={k: v for k, v in context.items() if v is not None})


class _MergingAdapter(logging.LoggerAdapter):
    # The stdlib adapter replaces per-call extra; keep both
    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_trace_context(
    run_id: str | None = None,
    step_id: str | None = None,
    operation: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with run context for logging.

    Args:
        run_id: Run ID
        step_id: Step ID
        operation: Backend operation name
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if run_id:
        extra["run_id"] = run_id
    if step_id:
        extra["step_id"] = step_id
    if operation:
        extra["operation"] = operation
    return extra
