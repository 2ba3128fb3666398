"""Tests for retry, token estimation and keyword helpers."""

from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from textintel.exceptions import RemoteFailureError
from textintel.utils import (
    estimate_token_count,
    extract_keywords,
    is_retryable_error,
    retry_async,
    with_retry,
)


def auth_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return openai.AuthenticationError(
        "Incorrect API key provided",
        response=httpx.Response(401, request=request),
        body=None,
    )


class TestIsRetryable:
    def test_remote_failure_uses_flag(self):
        assert is_retryable_error(RemoteFailureError("busy", retryable=True))
        assert not is_retryable_error(RemoteFailureError("bad request"))

    def test_connection_and_timeout(self):
        assert is_retryable_error(ConnectionError("reset"))
        assert is_retryable_error(TimeoutError())

    def test_openai_status_errors(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        rate_limited = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=request), body=None
        )
        assert is_retryable_error(rate_limited)
        assert not is_retryable_error(auth_error())

    def test_message_heuristics(self):
        assert is_retryable_error(RuntimeError("HTTP 429 Too Many Requests"))
        assert is_retryable_error(RuntimeError("network unreachable"))
        assert not is_retryable_error(ValueError("invalid input"))


class TestRetryAsync:
    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")

        assert await retry_async(func, max_retries=3, base_delay=0) == "ok"
        assert func.await_count == 1

    async def test_retries_transient_then_succeeds(self):
        func = AsyncMock(side_effect=[ConnectionError("reset"), ConnectionError("reset"), "ok"])

        assert await retry_async(func, max_retries=3, base_delay=0) == "ok"
        assert func.await_count == 3

    async def test_gives_up_with_last_error(self):
        errors = [ConnectionError(f"reset {i}") for i in range(3)]
        func = AsyncMock(side_effect=errors)

        with pytest.raises(ConnectionError, match="reset 2"):
            await retry_async(func, max_retries=2, base_delay=0)
        assert func.await_count == 3

    async def test_non_retryable_fails_fast(self):
        func = AsyncMock(side_effect=ValueError("invalid input"))

        with pytest.raises(ValueError):
            await retry_async(func, max_retries=5, base_delay=0)
        assert func.await_count == 1

    async def test_zero_retries_means_one_attempt(self):
        func = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(ConnectionError):
            await retry_async(func, max_retries=0)
        assert func.await_count == 1

    async def test_passes_arguments(self):
        func = AsyncMock(return_value=3)

        await retry_async(func, 1, 2, max_retries=1, base_delay=0, flag=True)

        func.assert_awaited_once_with(1, 2, flag=True)

    async def test_backoff_is_capped(self, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("textintel.utils.asyncio.sleep", fake_sleep)
        func = AsyncMock(side_effect=[ConnectionError()] * 4 + ["ok"])

        await retry_async(func, max_retries=4, base_delay=1.0, max_delay=3.0)

        assert len(delays) == 4
        assert delays[0] == pytest.approx(1.0, rel=0.11)
        assert delays[1] == pytest.approx(2.0, rel=0.11)
        assert all(d <= 3.0 * 1.1 for d in delays)


async def test_with_retry_decorator():
    calls = []

    @with_retry(max_retries=2, base_delay=0)
    async def flaky():
        calls.append(1)
        if len(calls) < 2:
            raise ConnectionError("reset")
        return "done"

    assert await flaky() == "done"
    assert len(calls) == 2


class TestTokenEstimate:
    def test_empty(self):
        assert estimate_token_count("") == 0

    def test_rounds_up(self):
        assert estimate_token_count("abcd") == 1
        assert estimate_token_count("abcde") == 2


class TestExtractKeywords:
    def test_drops_short_and_stop_words(self):
        words = extract_keywords("The cat sat with those wonderful Python packages!")

        assert words == ["wonderful", "python", "packages"]

    def test_punctuation_split(self):
        assert extract_keywords("retry-logic, backoff.") == ["retry", "logic", "backoff"]

    def test_empty(self):
        assert extract_keywords("a an of") == []
