"""
Claude completion provider for AI-authored report content.

The orchestrator only needs one capability from the AI layer: turn a prompt
into markdown text. ClaudeService implements that on top of Anthropic's async
client with rate limiting, retry with backoff, and token/cost accounting.

Example:
    >>> service = ClaudeService(settings)
    >>> markdown = await service.complete(prompt)
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

import anthropic
from anthropic import APIError, APIStatusError, RateLimitError

from report_engine.config.settings import Settings, get_settings
from report_engine.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Token costs per model (per 1K tokens)
TOKEN_COSTS = {
    "claude-sonnet-4-20250514": {"input": 0.003, "output": 0.015},
    "claude-3-5-sonnet-20241022": {"input": 0.003, "output": 0.015},
    "claude-3-opus-20240229": {"input": 0.015, "output": 0.075},
    "claude-3-haiku-20240307": {"input": 0.00025, "output": 0.00125},
}

REPORT_SYSTEM_PROMPT = """You are a senior competitive intelligence analyst.

Your reports should be:
- Grounded in the captured competitor content you are given
- Specific and actionable
- Balanced, covering both opportunities and risks
- Written in clean markdown with clear section headings"""


# =============================================================================
# Provider Protocol
# =============================================================================

@runtime_checkable
class CompletionProvider(Protocol):
    """Anything that can turn a prompt into generated markdown."""

    async def complete(self, prompt: str) -> str:
        ...


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TokenUsage:
    """Token usage tracking for a single request."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    model: str = ""
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def calculate_cost(self, model: str) -> float:
        """Calculate estimated cost based on token usage."""
        if model in TOKEN_COSTS:
            costs = TOKEN_COSTS[model]
            input_cost = (self.input_tokens / 1000) * costs["input"]
            output_cost = (self.output_tokens / 1000) * costs["output"]
            self.estimated_cost = input_cost + output_cost
        return self.estimated_cost


@dataclass
class RateLimiter:
    """Sliding-window request limiter."""
    max_requests: int = 20
    window_seconds: int = 60

    _request_timestamps: list[float] = field(default_factory=list)

    def _cleanup_old_entries(self) -> None:
        cutoff = time.time() - self.window_seconds
        self._request_timestamps = [t for t in self._request_timestamps if t > cutoff]

    async def acquire(self) -> None:
        """Wait until another request fits in the current window."""
        self._cleanup_old_entries()

        if len(self._request_timestamps) >= self.max_requests:
            wait_time = self._request_timestamps[0] + self.window_seconds - time.time()
            if wait_time > 0:
                logger.warning(
                    "Rate limit reached, waiting",
                    wait_seconds=wait_time,
                    current_requests=len(self._request_timestamps),
                )
                await asyncio.sleep(wait_time)
                self._cleanup_old_entries()

        self._request_timestamps.append(time.time())


# =============================================================================
# Custom Exceptions
# =============================================================================

class ClaudeServiceError(Exception):
    """Base exception for Claude service errors."""
    pass


class MissingCredentialsError(ClaudeServiceError):
    """Raised when the service is constructed without a usable API key."""
    pass


class MaxRetriesExceededError(ClaudeServiceError):
    """Raised when max retries are exceeded."""
    pass


# =============================================================================
# Main Service Class
# =============================================================================

class ClaudeService:
    """
    Claude-backed CompletionProvider.

    Construction fails with MissingCredentialsError when no Anthropic key is
    configured; the orchestrator treats that as "AI unavailable".

    Attributes:
        settings: Application settings
        client: Anthropic API client
        rate_limiter: Rate limiter instance
        token_usage_history: List of token usage records
        total_cost: Running total of API costs
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
    ):
        self.settings = settings or get_settings()

        if api_key is None:
            if not self.settings.has_ai_credentials():
                raise MissingCredentialsError("ANTHROPIC_API_KEY is not configured")
            api_key = self.settings.anthropic_api_key.get_secret_value()

        self.max_retries = max_retries or self.settings.max_retries
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.rate_limiter = RateLimiter(max_requests=self.settings.max_requests_per_minute)

        self.token_usage_history: list[TokenUsage] = []
        self.total_cost: float = 0.0

        logger.info(
            "ClaudeService initialized",
            model=self.settings.claude_model,
            max_retries=self.max_retries,
        )

    async def __aenter__(self) -> "ClaudeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client connection."""
        await self.client.close()
        logger.info(
            "ClaudeService closed",
            total_requests=len(self.token_usage_history),
            total_cost=f"${self.total_cost:.4f}",
        )

    # =========================================================================
    # Core API Methods
    # =========================================================================

    async def complete(self, prompt: str, system: str = REPORT_SYSTEM_PROMPT) -> str:
        """Generate markdown for a single user prompt."""
        text, _ = await self._call_api(
            messages=[{"role": "user", "content": prompt}],
            system=system,
            temperature=self.settings.analysis_temperature,
        )
        return text

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        system: str = "",
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> tuple[str, TokenUsage]:
        """
        Make an API call with retry logic and rate limiting.

        Returns:
            Tuple of (response_text, token_usage)

        Raises:
            ClaudeServiceError: On non-retryable client errors
            MaxRetriesExceededError: When retries are exhausted
        """
        max_tokens = max_tokens or self.settings.claude_max_tokens

        await self.rate_limiter.acquire()

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                response = await self.client.messages.create(
                    model=self.settings.claude_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system,
                    messages=messages,
                )

                elapsed = time.time() - start_time
                response_text = response.content[0].text

                usage = TokenUsage(
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                    total_tokens=response.usage.input_tokens + response.usage.output_tokens,
                    model=self.settings.claude_model,
                )
                usage.calculate_cost(self.settings.claude_model)

                self.token_usage_history.append(usage)
                self.total_cost += usage.estimated_cost

                logger.info(
                    "API call successful",
                    attempt=attempt + 1,
                    elapsed_seconds=f"{elapsed:.2f}",
                    input_tokens=usage.input_tokens,
                    output_tokens=usage.output_tokens,
                    cost=f"${usage.estimated_cost:.4f}",
                )

                return response_text, usage

            except RateLimitError as e:
                last_error = e
                wait_time = self._calculate_backoff(attempt, base=30)
                logger.warning(
                    "Rate limit hit, backing off",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

            except APIStatusError as e:
                last_error = e
                if e.status_code >= 500:
                    wait_time = self._calculate_backoff(attempt)
                    logger.warning(
                        "Server error, retrying",
                        attempt=attempt + 1,
                        status_code=e.status_code,
                        wait_seconds=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                elif e.status_code == 401:
                    logger.error("Authentication failed", error=str(e))
                    raise ClaudeServiceError(f"Authentication failed: {e}")
                else:
                    logger.error("API error", status_code=e.status_code, error=str(e))
                    raise ClaudeServiceError(f"API error: {e}")

            except APIError as e:
                last_error = e
                wait_time = self._calculate_backoff(attempt)
                logger.warning(
                    "API error, retrying",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

        logger.error(
            "Max retries exceeded",
            max_retries=self.max_retries,
            last_error=str(last_error),
        )
        raise MaxRetriesExceededError(
            f"Failed after {self.max_retries} attempts: {last_error}"
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _calculate_backoff(self, attempt: int, base: float = 1.0) -> float:
        """Calculate exponential backoff with jitter."""
        backoff = base * (2 ** attempt)
        jitter = random.uniform(0, backoff * 0.1)
        return min(backoff + jitter, 60)

    def get_usage_stats(self) -> dict[str, Any]:
        """Get usage statistics for the service."""
        if not self.token_usage_history:
            return {
                "total_requests": 0,
                "total_tokens": 0,
                "total_cost": 0.0,
                "avg_tokens_per_request": 0,
            }

        total_tokens = sum(u.total_tokens for u in self.token_usage_history)

        return {
            "total_requests": len(self.token_usage_history),
            "total_tokens": total_tokens,
            "total_input_tokens": sum(u.input_tokens for u in self.token_usage_history),
            "total_output_tokens": sum(u.output_tokens for u in self.token_usage_history),
            "total_cost": self.total_cost,
            "avg_tokens_per_request": total_tokens // len(self.token_usage_history),
        }

    def reset_usage_stats(self) -> None:
        """Reset usage statistics."""
        self.token_usage_history.clear()
        self.total_cost = 0.0
        logger.info("Usage statistics reset")


__all__ = [
    "ClaudeService",
    "CompletionProvider",
    "TokenUsage",
    "RateLimiter",
    "ClaudeServiceError",
    "MissingCredentialsError",
    "MaxRetriesExceededError",
    "REPORT_SYSTEM_PROMPT",
]
