"""
Rate-limit-aware retry for remote Git host calls.

Every request the GitHub client issues goes through a RateLimitedExecutor.
Only the rate-limit class of failure is retried; any other error response or
exception is handed back to the caller untouched.

A response counts as rate-limited when:
    - the status code is 429, or
    - the status code is an error and the JSON ``message`` mentions a
      rate limit (GitHub signals secondary/abuse limits with a 403 body)

Wait time before the next attempt:
    - ``retry-after`` header: delta seconds + reset buffer
    - ``x-ratelimit-reset`` header in the future: reset - now + reset buffer
    - otherwise exponential backoff: base_delay * multiplier ^ attempt

Example:
    >>> executor = RateLimitedExecutor(RetryConfig(max_retries=3, base_delay=2.0))
    >>> response = await executor.execute(lambda: client.get("/user"))

Configuration:
    - Default retries: 3 (4 attempts total)
    - Default base delay: 2.0 seconds (2s, 4s, 8s)
    - Default reset buffer: 5.0 seconds past the advertised reset
    - Jitter: off by default, ±jitter_ratio when enabled
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from treesync.core.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

RATE_LIMIT_PHRASES = (
    "secondary rate limit",
    "exceeded a secondary rate limit",
    "abuse detection",
    "api rate limit exceeded",
)

Call = Callable[[], Awaitable[httpx.Response]]
Sleep = Callable[[float], Awaitable[Any]]


class RetryConfig:
    """
    Configuration for rate-limit retry behavior.

    Attributes:
        max_retries: Additional attempts after the first (default: 3)
        base_delay: Backoff delay in seconds for the first retry (default: 2.0)
        multiplier: Exponential backoff multiplier (default: 2.0)
        reset_buffer: Seconds added past a header-advertised reset (default: 5.0)
        jitter: Whether to add jitter to backoff delays (default: False)
        jitter_ratio: Random variance ratio for jitter (default: 0.2 = ±20%)
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 2.0,
        multiplier: float = 2.0,
        reset_buffer: float = 5.0,
        jitter: bool = False,
        jitter_ratio: float = 0.2,
    ) -> None:
        """
        Initialize retry configuration.

        Raises:
            ValueError: If parameters are invalid
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if reset_buffer < 0:
            raise ValueError("reset_buffer must be non-negative")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.reset_buffer = reset_buffer
        self.jitter = jitter
        self.jitter_ratio = jitter_ratio

    def backoff_delay(self, attempt: int) -> float:
        """
        Calculate the exponential backoff delay for a retry attempt.

        Args:
            attempt: Attempt number (0-indexed)

        Returns:
            Delay in seconds before next attempt
        """
        delay = self.base_delay * (self.multiplier**attempt)

        if self.jitter:
            variance = delay * self.jitter_ratio
            delay = delay + random.uniform(-variance, variance)

        return max(0.0, delay)


def _response_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str):
            return message
    return ""


def is_rate_limited(response: httpx.Response) -> bool:
    """
    Determine whether a response signals a rate limit.

    Successful responses are never message-scanned: commit payloads carry a
    ``message`` field that is unrelated to throttling.

    Args:
        response: Response to classify

    Returns:
        True if the response is a primary or secondary rate-limit signal
    """
    if response.status_code == 429:
        return True
    if response.status_code < 400:
        return False
    message = _response_message(response).lower()
    return any(phrase in message for phrase in RATE_LIMIT_PHRASES)


def _header_float(response: httpx.Response, name: str) -> float | None:
    value = response.headers.get(name)
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def compute_wait(
    response: httpx.Response,
    attempt: int,
    config: RetryConfig,
    now: float,
) -> float:
    """
    Compute how long to wait before retrying a rate-limited response.

    Args:
        response: The rate-limited response
        attempt: Attempt number that produced the response (0-indexed)
        config: Retry configuration
        now: Current time as epoch seconds

    Returns:
        Non-negative wait time in seconds
    """
    retry_after = _header_float(response, "retry-after")
    if retry_after is not None and retry_after >= 0:
        return retry_after + config.reset_buffer

    reset_at = _header_float(response, "x-ratelimit-reset")
    if reset_at is not None and reset_at > now:
        return max(0.0, reset_at - now + config.reset_buffer)

    return config.backoff_delay(attempt)


class RateLimitedExecutor:
    """
    Wraps single remote calls with rate-limit retry and backoff.

    The executor is the only place retry happens, so every remote call gets
    identical semantics. Non-rate-limit failures are never retried.

    Example:
        >>> executor = RateLimitedExecutor()
        >>> response = await executor.execute(
        ...     lambda: http.post("/repos/o/r/git/blobs", json=payload),
        ...     operation="create blob",
        ... )
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the executor.

        Args:
            config: Retry configuration (defaults to RetryConfig())
            sleep: Awaitable sleep used between attempts
            clock: Returns current epoch seconds (for reset headers)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._clock = clock

    async def execute(self, call: Call, *, operation: str = "") -> httpx.Response:
        """
        Invoke ``call``, retrying while the remote reports a rate limit.

        Args:
            call: Zero-argument coroutine factory issuing one request
            operation: Short label used in logs and errors

        Returns:
            The first response that is not rate-limited (which may still be
            an error response for the caller to interpret)

        Raises:
            RateLimitExceededError: If every attempt was rate-limited
        """
        label = operation or getattr(call, "__name__", "remote call")
        total_attempts = self.config.max_retries + 1
        last_response: httpx.Response | None = None
        wait = 0.0

        for attempt in range(total_attempts):
            try:
                response = await call()
            except httpx.HTTPStatusError as e:
                if not is_rate_limited(e.response):
                    raise
                response = e.response

            if not is_rate_limited(response):
                return response

            last_response = response
            wait = compute_wait(response, attempt, self.config, self._clock())

            if attempt >= self.config.max_retries:
                break

            logger.info(
                "%s: rate limited (%s), waiting %.1fs before retry (attempt %d/%d)",
                label,
                _response_message(response) or response.status_code,
                wait,
                attempt + 1,
                total_attempts,
            )
            await self._sleep(wait)

        logger.warning(
            "%s: rate limit retries exhausted after %d attempts", label, total_attempts
        )
        status_code = last_response.status_code if last_response is not None else None
        message = _response_message(last_response) if last_response is not None else ""
        raise RateLimitExceededError(
            f"{label}: rate limit exceeded after {total_attempts} attempts"
            + (f" ({message})" if message else ""),
            wait_hint=wait,
            attempts=total_attempts,
            status_code=status_code,
        )


__all__ = [
    "RATE_LIMIT_PHRASES",
    "RetryConfig",
    "RateLimitedExecutor",
    "compute_wait",
    "is_rate_limited",
]
