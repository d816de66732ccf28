"""Bounded retry with exponential backoff for calls to external providers."""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 10.0

# min(1s * 2^n, 10s) after the n-th failed attempt: 2, 4, 8, 10, 10, ...
BACKOFF = wait_exponential(multiplier=2 * BASE_DELAY_SECONDS, max=MAX_DELAY_SECONDS)


def always_retry(exc: BaseException) -> bool:
    return True


def is_rate_limited(exc: BaseException) -> bool:
    """Return True if the provider rejected the call because of rate limiting."""
    if getattr(exc, "code", None) == 429 or getattr(exc, "status_code", None) == 429:
        return True
    message = str(exc)
    return "429" in message or "RESOURCE_EXHAUSTED" in message


def _log_retry(label: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        logger.warning(
            "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
            label,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
            retry_state.attempt_number,
            max_attempts,
        )

    return log


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    classify: Callable[[BaseException], bool],
    *,
    wait: Any = BACKOFF,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """
    Await ``operation()`` until it succeeds or the failure is not worth retrying.

    Args:
        operation: Zero-argument callable returning an awaitable.
        max_attempts: Total number of attempts, including the first one.
        classify: Returns True for transient failures that may be re-issued.
        wait: tenacity wait strategy between attempts.
        sleep: Awaitable sleep used between attempts.
        label: Name used in log messages.

    Returns:
        The operation's result.

    Raises:
        The last exception raised by ``operation``, unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    async for attempt in AsyncRetrying(
        retry=retry_if_exception(lambda e: isinstance(e, Exception) and classify(e)),
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        sleep=sleep,
        before_sleep=_log_retry(label, max_attempts),
        reraise=True,
    ):
        with attempt:
            return await operation()


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    classify: Callable[[BaseException], bool]


GENERATION_POLICY = RetryPolicy(max_attempts=5, classify=is_rate_limited)
TRANSCRIPTION_POLICY = RetryPolicy(max_attempts=3, classify=always_retry)


def retry_policy(
    max_attempts: int,
    classify: Callable[[BaseException], bool],
    *,
    wait: Any = BACKOFF,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str | None = None,
):
    """Decorate an async function so every call goes through ``with_retry``."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await with_retry(
                lambda: func(*args, **kwargs),
                max_attempts,
                classify,
                wait=wait,
                sleep=sleep,
                label=label or func.__qualname__,
            )

        return wrapper

    return decorator
