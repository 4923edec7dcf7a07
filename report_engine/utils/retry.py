"""
Resilient error handling utilities.

Provides retry logic, circuit breaker pattern, and centralized error categorization.
"""

import asyncio
import logging
from datetime import datetime
from functools import wraps
from typing import Callable, Optional, Type

# Use standard logging
logger = logging.getLogger(__name__)

# =============================================================================
# Custom Exceptions
# =============================================================================

class AppError(Exception):
    """Base application exception."""
    pass

class NetworkError(AppError):
    pass

class RateLimitError(AppError):
    pass

class AppTimeoutError(AppError):
    pass

class ServiceUnavailableError(AppError):
    pass

# =============================================================================
# Retry Decorator
# =============================================================================

def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    initial_wait: float = 1.0,
    exceptions: tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception], None]] = None
):
    """
    Retry decorator with exponential backoff.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt == max_attempts:
                        logger.warning(f"Final attempt {attempt} failed for {func.__name__}: {e}")
                        break

                    sleep_time = initial_wait * (backoff_factor ** (attempt - 1))

                    if on_retry:
                        on_retry(attempt, e)

                    logger.warning(
                        f"Attempt {attempt} failed for {func.__name__}: {e}. "
                        f"Retrying in {sleep_time:.2f}s..."
                    )

                    await asyncio.sleep(sleep_time)

            if last_exception:
                raise last_exception
        return wrapper
    return decorator

# =============================================================================
# Circuit Breaker
# =============================================================================

class CircuitBreaker:
    """
    Circuit breaker pattern for external services.

    Used around the AI completion provider: once the failure threshold is
    reached, calls fail fast with ServiceUnavailableError until the recovery
    timeout elapses, so degraded generations reach their fallback without
    waiting out the analysis timeout.
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60, name: str = "CircuitBreaker"):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name

        self.failures = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = "closed"  # closed, open, half-open

    def _should_attempt_reset(self) -> bool:
        if self.state != "open" or not self.last_failure_time:
            return False
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return elapsed > self.recovery_timeout

    def _on_success(self):
        if self.state != "closed":
            logger.info(f"Circuit {self.name} recovering. State: Closed.")
        self.failures = 0
        self.state = "closed"
        self.last_failure_time = None

    def _on_failure(self):
        self.failures += 1
        self.last_failure_time = datetime.now()

        if self.state == "half-open":
            self.state = "open"
            logger.warning(f"Circuit {self.name} trial failed. State: Re-Opened.")
        elif self.failures >= self.failure_threshold and self.state == "closed":
            self.state = "open"
            logger.error(f"Circuit {self.name} threshold reached. State: Open.")

    async def call(self, func: Callable, *args, **kwargs):
        if self.state == "open":
            if self._should_attempt_reset():
                self.state = "half-open"
                logger.info(f"Circuit {self.name} attempting reset. State: Half-Open.")
            else:
                remaining = self.recovery_timeout - (datetime.now() - self.last_failure_time).total_seconds()
                raise ServiceUnavailableError(f"Circuit {self.name} is OPEN. Retry in {remaining:.1f}s")

        try:
            result = await func(*args, **kwargs)
        except (Exception, asyncio.CancelledError):
            # Cancellation from an enclosing timeout counts as a failed call.
            self._on_failure()
            raise
        self._on_success()
        return result

# =============================================================================
# Error Handler
# =============================================================================

class ErrorHandler:
    """Centralized error categorization."""

    @staticmethod
    def categorize_error(error: BaseException) -> str:
        """Categorize errors into the error-type tags carried by failed responses."""
        if isinstance(error, (AppTimeoutError, asyncio.TimeoutError)):
            return "timeout_error"
        if isinstance(error, (ServiceUnavailableError, RateLimitError, NetworkError, ConnectionError)):
            return "dependency_error"
        if isinstance(error, OSError):
            return "persistence_error"
        if isinstance(error, (ValueError, TypeError)):
            return "validation_error"

        # Check string content
        err_str = str(error).lower()
        if "timeout" in err_str or "timed out" in err_str:
            return "timeout_error"
        if "rate limit" in err_str or "unavailable" in err_str or "connection" in err_str:
            return "dependency_error"

        return "internal_error"
