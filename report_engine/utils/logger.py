"""
Structured logging configuration.

Provides consistent logging across the application with JSON formatting,
correlation ids for tracing a single operation through its log lines, and
business/error event helpers consumed by operational tooling.
"""

import logging
import random
import string
import sys
import time
from typing import Any, Optional

import structlog
from structlog.types import Processor


CORRELATION_PREFIXES = ("COR", "PRJ", "ANL", "RPT", "ERR")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    use_stdlib: bool = False,
) -> None:
    """
    Configure application-wide structured logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Whether to output logs in JSON format.
        log_file: Optional file path for logging output.
        use_stdlib: Route rendered events through standard library handlers
            instead of printing them directly.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=(
            structlog.stdlib.LoggerFactory() if use_stdlib else structlog.PrintLoggerFactory()
        ),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger for the given module name.

    Args:
        name: Logger name, typically __name__.

    Returns:
        Configured structlog logger instance.
    """
    return structlog.get_logger(name)


class LogContext:
    """Context manager for adding temporary log context."""

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token:
            structlog.contextvars.unbind_contextvars(*self.context.keys())


# =============================================================================
# Correlation IDs
# =============================================================================

def _random_suffix(length: int) -> str:
    return "".join(random.choices(_ID_ALPHABET, k=length))


def generate_correlation_id(prefix: str = "COR") -> str:
    """
    Generate a correlation id of the form ``COR-<epoch ms>-<base36 suffix>``.

    The same id is threaded through every log line of one operation and stored
    in report metadata and archive files.
    """
    suffix_length = 9 if prefix == "COR" else 6
    return f"{prefix}-{int(time.time() * 1000)}-{_random_suffix(suffix_length)}"


def generate_project_correlation_id(project_id: str) -> str:
    """Generate a project-scoped correlation id (``PRJ-<project>-<ms>-<suffix>``)."""
    return f"PRJ-{project_id}-{int(time.time() * 1000)}-{_random_suffix(6)}"


def generate_report_correlation_id(report_type: str) -> str:
    """Generate a report-scoped correlation id (``RPT-<TYPE>-<ms>-<suffix>``)."""
    return f"RPT-{report_type.upper()}-{int(time.time() * 1000)}-{_random_suffix(6)}"


def is_valid_correlation_id(correlation_id: str) -> bool:
    """Check the ``<PREFIX>-<digits>-<alnum>`` shape of a plain correlation id."""
    parts = correlation_id.split("-")
    if len(parts) != 3:
        return False
    prefix, timestamp, suffix = parts
    return (
        prefix.upper() in CORRELATION_PREFIXES
        and timestamp.isdigit()
        and bool(suffix)
        and suffix.isalnum()
    )


def get_correlation_id_type(correlation_id: str) -> Optional[str]:
    """Return the prefix of a correlation id, or None for an empty string."""
    prefix = correlation_id.split("-", 1)[0]
    return prefix or None


def get_timestamp_from_correlation_id(correlation_id: str) -> Optional[int]:
    """Extract the epoch-millisecond timestamp from a plain correlation id."""
    parts = correlation_id.split("-")
    if len(parts) >= 2 and parts[1].isdigit():
        return int(parts[1])
    return None


# =============================================================================
# Telemetry Events
# =============================================================================

_event_logger = get_logger("report_engine.events")


def track_business_event(event_name: str, **fields: Any) -> None:
    """Emit a terminal business event for operational dashboards."""
    _event_logger.info(
        "Business event",
        event_type="business",
        event_name=event_name,
        **fields,
    )


def track_error_with_correlation(
    error: BaseException,
    correlation_id: str,
    operation: str,
    **context: Any,
) -> None:
    """Record a failure keyed by correlation id for later reconciliation."""
    _event_logger.error(
        "Tracked error",
        event_type="error",
        operation=operation,
        correlation_id=correlation_id,
        error=str(error),
        error_class=type(error).__name__,
        **context,
    )
