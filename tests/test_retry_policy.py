"""
Tests for retry/timeout policies and error classification
"""

import asyncio
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from poextract.processors.llm import (
    AuthError,
    ExtractionTimeoutError,
    InvalidRequestError,
    RateLimitedError,
    RetryPolicy,
    ServerError,
    TimeoutPolicy,
    classify_error,
    retry_with_policy,
)


OPENAI_REQUEST = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')


class StatusError(Exception):
    def __init__(self, message, status_code=None, code=None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def openai_status_error(cls, status):
    return cls(f"HTTP {status}", response=httpx.Response(status, request=OPENAI_REQUEST), body=None)


class TestRetryPolicy:
    """Tests for backoff computation"""

    def test_exponential_backoff_is_capped(self):
        policy = RetryPolicy(base_delay=5, max_delay=12, jitter_factor=0)

        assert [policy.compute_delay(a, lambda: 0.5) for a in (1, 2, 3)] == [5, 10, 12]

    def test_jitter_is_proportional(self):
        policy = RetryPolicy(base_delay=10, max_delay=60, jitter_factor=0.1)

        assert policy.compute_delay(1, lambda: 1.0) == pytest.approx(11.0)
        assert policy.compute_delay(2, lambda: 0.0) == pytest.approx(20.0)

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestTimeoutPolicy:
    """Tests for adaptive timeouts"""

    def test_grows_with_payload(self):
        policy = TimeoutPolicy()

        assert policy.for_payload(0) == 90
        assert policy.for_payload(200_000) == pytest.approx(120)
        assert policy.for_payload(10_000_000) == 180


class TestClassifyError:
    """Tests for mapping exceptions onto the taxonomy"""

    @pytest.mark.parametrize('error, expected', [
        (asyncio.TimeoutError(), ExtractionTimeoutError),
        (StatusError("slow down", 429), RateLimitedError),
        (StatusError("bad key", 401), AuthError),
        (StatusError("forbidden", 403), AuthError),
        (StatusError("upstream", 502), ServerError),
        (StatusError("bad request", 400), InvalidRequestError),
        (StatusError("nope", code='invalid_api_key'), AuthError),
        (StatusError("rate_limit_exceeded for model"), RateLimitedError),
        (StatusError("request timeout"), ExtractionTimeoutError),
        (StatusError("connection_error"), ServerError),
        (ValueError("something odd"), InvalidRequestError),
    ])
    def test_classification(self, error, expected):
        assert type(classify_error(error)) is expected

    def test_openai_exceptions(self):
        assert isinstance(classify_error(openai_status_error(openai.RateLimitError, 429)), RateLimitedError)
        assert isinstance(classify_error(openai_status_error(openai.AuthenticationError, 401)), AuthError)
        assert isinstance(classify_error(openai_status_error(openai.InternalServerError, 500)), ServerError)
        assert isinstance(classify_error(openai.APITimeoutError(request=OPENAI_REQUEST)), ExtractionTimeoutError)
        assert isinstance(classify_error(openai.APIConnectionError(request=OPENAI_REQUEST)), ServerError)

    def test_retryable_flags(self):
        assert RateLimitedError("x").retryable
        assert ServerError("x").retryable
        assert ExtractionTimeoutError("x").retryable
        assert not AuthError("x").retryable
        assert not InvalidRequestError("x").retryable

    def test_taxonomy_errors_pass_through(self):
        error = ServerError("boom")

        assert classify_error(error) is error


class TestRetryWithPolicy:
    """Tests for the retry loop"""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        operation = AsyncMock(side_effect=[StatusError("busy", 503), StatusError("busy", 503), "ok"])
        sleep = AsyncMock()

        result = await retry_with_policy(operation, RetryPolicy(jitter_factor=0), sleep=sleep, rng=lambda: 0)

        assert result == "ok"
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_raises_last_error_after_exhaustion(self):
        operation = AsyncMock(side_effect=StatusError("busy", 429))
        sleep = AsyncMock()

        with pytest.raises(RateLimitedError) as exc_info:
            await retry_with_policy(operation, RetryPolicy(max_attempts=3), sleep=sleep, rng=lambda: 0)

        assert operation.await_count == 3
        assert sleep.await_count == 2
        assert isinstance(exc_info.value.__cause__, StatusError)

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self):
        operation = AsyncMock(side_effect=StatusError("bad key", 401))
        sleep = AsyncMock()

        with pytest.raises(AuthError):
            await retry_with_policy(operation, RetryPolicy(), sleep=sleep)

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_taxonomy_error_is_reraised_unchanged(self):
        error = InvalidRequestError("schema rejected", status_code=400)
        operation = AsyncMock(side_effect=error)

        with pytest.raises(InvalidRequestError) as exc_info:
            await retry_with_policy(operation, RetryPolicy(), sleep=AsyncMock())

        assert exc_info.value is error
