"""Utils module for the Competitive Report Engine."""

from report_engine.utils.logger import get_logger, setup_logging
from report_engine.utils.retry import (
    async_retry,
    CircuitBreaker,
    ErrorHandler,
    AppError,
    NetworkError,
    RateLimitError,
    AppTimeoutError,
    ServiceUnavailableError,
)
from report_engine.utils.formatters import ReportArchive

__all__ = [
    "get_logger",
    "setup_logging",
    "ReportArchive",
    "async_retry",
    "CircuitBreaker",
    "ErrorHandler",
    "AppError",
    "NetworkError",
    "RateLimitError",
    "AppTimeoutError",
    "ServiceUnavailableError",
]
