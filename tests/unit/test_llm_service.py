import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
from pydantic import SecretStr

from report_engine.services.llm_service import (
    ClaudeService,
    ClaudeServiceError,
    CompletionProvider,
    MaxRetriesExceededError,
    MissingCredentialsError,
    RateLimiter,
    TokenUsage,
)


@pytest.fixture
def ai_settings(settings):
    return settings.model_copy(update={"anthropic_api_key": SecretStr("sk-ant-api-test-key")})


def _api_response(text="## Report", input_tokens=1000, output_tokens=500):
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    response.usage.input_tokens = input_tokens
    response.usage.output_tokens = output_tokens
    return response


def _status_error(cls, status_code):
    return cls("upstream error", response=MagicMock(status_code=status_code), body=None)


def test_requires_credentials(settings):
    with pytest.raises(MissingCredentialsError):
        ClaudeService(settings=settings)


def test_explicit_api_key(settings):
    service = ClaudeService(settings=settings, api_key="sk-ant-explicit")
    assert service.client is not None
    assert isinstance(service, CompletionProvider)


@pytest.mark.asyncio
async def test_complete(ai_settings):
    service = ClaudeService(settings=ai_settings)

    with patch.object(service.client.messages, "create", new_callable=AsyncMock) as create:
        create.return_value = _api_response()
        text = await service.complete("Analyze Acme")

    assert text == "## Report"
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == ai_settings.claude_model
    assert kwargs["messages"] == [{"role": "user", "content": "Analyze Acme"}]
    assert "competitive intelligence" in kwargs["system"]

    stats = service.get_usage_stats()
    assert stats["total_requests"] == 1
    assert stats["total_tokens"] == 1500
    # claude-sonnet-4: $0.003 / 1K input, $0.015 / 1K output
    assert service.total_cost == pytest.approx(0.003 + 0.0075)


@pytest.mark.asyncio
async def test_server_error_is_retried(ai_settings):
    service = ClaudeService(settings=ai_settings, max_retries=3)

    with patch.object(service, "_calculate_backoff", return_value=0), \
         patch.object(service.client.messages, "create", new_callable=AsyncMock) as create:
        create.side_effect = [_status_error(anthropic.InternalServerError, 500), _api_response("ok")]
        text = await service.complete("prompt")

    assert text == "ok"
    assert create.call_count == 2


@pytest.mark.asyncio
async def test_authentication_error_is_not_retried(ai_settings):
    service = ClaudeService(settings=ai_settings, max_retries=3)

    with patch.object(service.client.messages, "create", new_callable=AsyncMock) as create:
        create.side_effect = _status_error(anthropic.AuthenticationError, 401)
        with pytest.raises(ClaudeServiceError, match="Authentication failed"):
            await service.complete("prompt")

    assert create.call_count == 1


@pytest.mark.asyncio
async def test_max_retries_exceeded(ai_settings):
    service = ClaudeService(settings=ai_settings, max_retries=2)

    with patch.object(service, "_calculate_backoff", return_value=0), \
         patch.object(service.client.messages, "create", new_callable=AsyncMock) as create:
        create.side_effect = _status_error(anthropic.InternalServerError, 503)
        with pytest.raises(MaxRetriesExceededError):
            await service.complete("prompt")

    assert create.call_count == 2


def test_usage_stats_reset(ai_settings):
    service = ClaudeService(settings=ai_settings)
    service.token_usage_history.append(TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15))
    service.total_cost = 1.0

    service.reset_usage_stats()

    assert service.get_usage_stats()["total_requests"] == 0
    assert service.total_cost == 0.0


def test_token_usage_unknown_model():
    usage = TokenUsage(input_tokens=1000, output_tokens=1000)
    assert usage.calculate_cost("unknown-model") == 0.0


@pytest.mark.asyncio
async def test_rate_limiter_under_limit():
    limiter = RateLimiter(max_requests=2)

    await limiter.acquire()
    await limiter.acquire()

    assert len(limiter._request_timestamps) == 2
