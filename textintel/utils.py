"""
Utility functions shared by the providers.

Provides common functionality for:
- Retry logic with exponential backoff
- Token estimation
- Keyword extraction
"""
from __future__ import annotations

import asyncio
import math
import random
import re
from functools import wraps
from typing import Awaitable, Callable, ParamSpec, TypeVar

import openai

from .config import get_logger, settings
from .exceptions import RemoteFailureError

logger = get_logger("utils")

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Retry Logic with Exponential Backoff
# =============================================================================

def is_retryable_error(exc: BaseException) -> bool:
    """
    Determine if an exception is retryable.

    Retryable errors include:
    - Remote failures flagged as transient
    - Timeout and connection errors
    - Rate limit errors (429)
    - Server errors (5xx)
    """
    if isinstance(exc, RemoteFailureError):
        return exc.retryable

    if isinstance(exc, (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError)):
        return True
    if isinstance(exc, openai.APIStatusError):
        return False

    if isinstance(exc, (asyncio.TimeoutError, ConnectionError)):
        return True

    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    if "timeout" in exc_str or "timeout" in exc_type:
        return True
    if "429" in exc_str or "rate limit" in exc_str:
        return True
    if any(term in exc_str for term in ("connection", "network", "temporarily unavailable")):
        return True

    return False


async def retry_async(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    max_retries: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
    **kwargs: P.kwargs,
) -> T:
    """
    Execute an async function with retry logic and exponential backoff.

    Attempts run strictly one after another. Non-retryable errors are
    raised immediately; once attempts are exhausted the last error is
    raised unchanged.

    Args:
        func: Async function to execute
        *args: Positional arguments for the function
        max_retries: Maximum retry attempts (default from settings)
        base_delay: Base delay in seconds (default from settings)
        max_delay: Maximum delay in seconds (default from settings)
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function call
    """
    max_retries = max_retries if max_retries is not None else settings.MAX_RETRIES
    base_delay = base_delay if base_delay is not None else settings.RETRY_BASE_DELAY
    max_delay = max_delay if max_delay is not None else settings.RETRY_MAX_DELAY
    name = getattr(func, "__name__", repr(func))

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_error(e):
                raise

            if attempt >= max_retries:
                logger.error(
                    "All %d attempts exhausted for %s: %s",
                    max_retries + 1,
                    name,
                    e,
                )
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)
            # Add 10% jitter
            delay *= (0.9 + random.random() * 0.2)

            logger.warning(
                "Attempt %d/%d failed for %s (%s), retrying in %.2fs",
                attempt + 1,
                max_retries + 1,
                name,
                type(e).__name__,
                delay,
            )

            await asyncio.sleep(delay)

    raise RuntimeError("unreachable: retry loop exited without result")


def with_retry(
    max_retries: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
):
    """
    Decorator to add retry logic to async functions.

    Usage:
        @with_retry(max_retries=3)
        async def my_function():
            ...
    """
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await retry_async(
                func,
                *args,
                max_retries=max_retries,
                base_delay=base_delay,
                max_delay=max_delay,
                **kwargs,
            )
        return wrapper
    return decorator


# =============================================================================
# Text Processing Utilities
# =============================================================================

_NON_WORD = re.compile(r"[^\w\s]")

STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "this", "that", "these", "those", "from", "have",
    "been", "were", "what", "when", "where", "which", "will", "would",
})


def estimate_token_count(text: str) -> int:
    """Rough token count from character length (no billing API available)."""
    if not text:
        return 0
    return math.ceil(len(text) / settings.CHARS_PER_TOKEN)


def extract_keywords(text: str) -> list[str]:
    """
    Split text into comparable keywords.

    - Lowercase
    - Punctuation removed
    - Words of three characters or fewer dropped
    - Stop words dropped
    """
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) > 3 and w not in STOP_WORDS]
