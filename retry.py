"""
Retry with exponential backoff, plus the named retry policies used by the pipeline.

Three policies exist, one per kind of external dependency:
  AI       - language-model calls (never retries auth/quota failures)
  COMMERCE - Shopify Admin API calls (never retries malformed/unauthorized requests)
  FETCH    - outbound page fetches, with a hard per-attempt timeout

The engine itself knows nothing about any service. It never raises for a
failed operation; the outcome is always reported through RetryResult.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Generic, TypeVar

import httpx
import openai

logger = logging.getLogger(__name__)

T = TypeVar("T")

FETCH_TIMEOUT = 30.0  # seconds, per attempt
MAX_REDIRECTS = 5


class RequestTimeout(Exception):
    """An individual attempt exceeded its hard timeout."""

    def __init__(self, message: str = "Request timeout"):
        super().__init__(message)


class RedirectRefused(Exception):
    """A redirect pointed at a URL the caller does not allow."""

    def __init__(self, url: str):
        super().__init__(f"Redirect to disallowed URL: {url}")
        self.url = url


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def error_status(error: BaseException) -> int | None:
    """Best-effort HTTP status code carried by an exception."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, openai.APIStatusError):
        return error.status_code
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_transport_error(error: BaseException) -> bool:
    """Network-level failure: connection refused/reset, DNS, read timeouts."""
    return isinstance(error, (httpx.TransportError, openai.APIConnectionError, ConnectionError))


def default_retry_if(error: BaseException) -> bool:
    """Retry network errors, 5xx, rate limits and timeouts."""
    if isinstance(error, RedirectRefused):
        return False
    if is_transport_error(error):
        return True
    status = error_status(error)
    if status is not None and (status >= 500 or status == 429):
        return True
    return "timeout" in str(error).lower()


def ai_retry_if(error: BaseException) -> bool:
    status = error_status(error)
    # Bad credentials or exhausted quota must surface immediately
    if status in (401, 403):
        return False
    if is_transport_error(error):
        return True
    if status is not None and (status >= 500 or status == 429):
        return True
    return "timeout" in str(error).lower()


def commerce_retry_if(error: BaseException) -> bool:
    status = error_status(error)
    if status in (400, 401, 403):
        return False
    if is_transport_error(error):
        return True
    return status is not None and (status >= 500 or status in (429, 503))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _noop_on_retry(attempt: int, error: BaseException) -> None:
    return None


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    multiplier: float = 2.0
    retry_if: Callable[[BaseException], bool] = default_retry_if
    on_retry: Callable[[int, BaseException], None] = _noop_on_retry
    attempt_timeout: float | None = None  # seconds; None = no per-attempt limit

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.multiplier <= 1:
            raise ValueError(f"multiplier must be > 1, got {self.multiplier}")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    success: bool
    attempts: int
    elapsed: float  # seconds
    value: T | None = None
    error: BaseException | None = None


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def with_timeout(operation: Callable[[], Awaitable[T]], timeout: float) -> T:
    """Run operation, cancelling it and raising RequestTimeout after `timeout` seconds."""
    try:
        return await asyncio.wait_for(operation(), timeout)
    except asyncio.TimeoutError as e:
        raise RequestTimeout() from e


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
) -> RetryResult[T]:
    """Run operation until it succeeds, the budget runs out, or retry_if says stop."""
    options = options or RetryOptions()
    started = time.monotonic()
    attempt = 1

    while True:
        try:
            if options.attempt_timeout is not None:
                value = await with_timeout(operation, options.attempt_timeout)
            else:
                value = await operation()
            return RetryResult(
                success=True,
                attempts=attempt,
                elapsed=time.monotonic() - started,
                value=value,
            )
        except Exception as e:
            if attempt >= options.max_attempts or not options.retry_if(e):
                return RetryResult(
                    success=False,
                    attempts=attempt,
                    elapsed=time.monotonic() - started,
                    error=e,
                )

            delay = options.delay_for(attempt)
            logger.warning(f"Attempt {attempt}/{options.max_attempts} failed ({e}); retrying in {delay:.1f}s")
            options.on_retry(attempt, e)
            await _sleep(delay)
            attempt += 1


# ---------------------------------------------------------------------------
# Named policies
# ---------------------------------------------------------------------------


class RetryPolicy(str, Enum):
    AI = "ai"
    COMMERCE = "commerce"
    FETCH = "fetch"


POLICY_PRESETS: dict[RetryPolicy, RetryOptions] = {
    RetryPolicy.AI: RetryOptions(max_attempts=3, base_delay=2.0, max_delay=30.0, retry_if=ai_retry_if),
    RetryPolicy.COMMERCE: RetryOptions(max_attempts=3, base_delay=1.0, retry_if=commerce_retry_if),
    RetryPolicy.FETCH: RetryOptions(max_attempts=3, base_delay=1.0, attempt_timeout=FETCH_TIMEOUT),
}


def policy_options(policy: RetryPolicy, **overrides: Any) -> RetryOptions:
    """Preset for `policy` with per-call overrides merged in."""
    return replace(POLICY_PRESETS[policy], **overrides)


async def retry_with_policy(
    policy: RetryPolicy,
    operation: Callable[[], Awaitable[T]],
    **overrides: Any,
) -> RetryResult[T]:
    return await with_retry(operation, policy_options(policy, **overrides))


async def retry_fetch(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str] | None = None,
    allow_url: Callable[[str], bool] | None = None,
    **overrides: Any,
) -> RetryResult[httpx.Response]:
    """GET `url` under the FETCH policy. Non-2xx responses count as failures.

    Redirects are followed one hop at a time, up to MAX_REDIRECTS. When
    `allow_url` is given every hop target must pass it, otherwise the fetch
    fails with RedirectRefused (never retried).
    """

    async def _get() -> httpx.Response:
        target = url
        for _ in range(MAX_REDIRECTS + 1):
            response = await client.get(target, headers=headers, follow_redirects=False, timeout=FETCH_TIMEOUT)
            if response.next_request is None:
                response.raise_for_status()
                return response
            target = str(response.next_request.url)
            if allow_url is not None and not allow_url(target):
                raise RedirectRefused(target)
        raise httpx.TooManyRedirects(f"Exceeded {MAX_REDIRECTS} redirects fetching {url}", request=response.request)

    return await retry_with_policy(RetryPolicy.FETCH, _get, **overrides)
