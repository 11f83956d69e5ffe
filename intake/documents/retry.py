"""Retry with exponential backoff for unreliable remote calls.

Wraps document extraction (and any other remote call) with a bounded number
of attempts. Errors are classified before retrying:

    - fatal: an HTTP-like status below 500 other than 429. Raised at once.
    - transient: 5xx, 429, or no status at all (connection failures).
      Retried until attempts are exhausted, then the last error is raised.

Wait before attempt n+1 = min(initial_delay * 2**(n-1), max_delay) plus
uniform jitter in [0, max_jitter).
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import ParamSpec, TypeVar

import httpx
import structlog

from intake.core.config import settings

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class FatalError(Exception):
    """Marker base for errors that must never be retried."""


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration.

    Attributes:
        max_attempts: Total attempts including the first one.
        initial_delay_ms: Delay before the second attempt.
        max_delay_ms: Ceiling for the exponential delay (jitter excluded).
        max_jitter_ms: Upper bound of random jitter added to each wait.
    """

    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    max_jitter_ms: int = 500

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            max_attempts=settings.extraction_max_attempts,
            initial_delay_ms=settings.extraction_initial_delay_ms,
            max_delay_ms=settings.extraction_max_delay_ms,
        )

    def backoff_ms(self, attempt: int) -> float:
        """Exponential delay after ``attempt`` failed (1-based), without jitter."""
        return float(min(self.initial_delay_ms * 2 ** (attempt - 1), self.max_delay_ms))


def get_status_code(exc: BaseException) -> int | None:
    """Read an HTTP-like status code from an exception, if it carries one."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_fatal_error(exc: BaseException) -> bool:
    """True when ``exc`` must not be retried."""
    if isinstance(exc, FatalError):
        return True
    status = get_status_code(exc)
    return status is not None and status < 500 and status != 429


async def with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    operation: str = "remote_call",
    sleep: Sleep = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """Call ``func`` until it succeeds, fails fatally, or attempts run out.

    Args:
        func: Zero-argument coroutine factory; called once per attempt.
        policy: Backoff configuration. Defaults to settings.
        operation: Name used in log events.
        sleep: Awaitable sleep, injectable for tests.
        rand: Source of jitter in [0, 1), injectable for tests.

    Returns:
        The first successful result.

    Raises:
        Exception: The fatal error, or the last transient error.
    """
    policy = policy or RetryPolicy.from_settings()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func()
        except Exception as exc:
            if is_fatal_error(exc):
                logger.warning(
                    "retry_fatal_error",
                    operation=operation,
                    attempt=attempt,
                    status_code=get_status_code(exc),
                    error=str(exc),
                )
                raise

            if attempt >= policy.max_attempts:
                logger.warning(
                    "retry_exhausted",
                    operation=operation,
                    attempts=policy.max_attempts,
                    error=str(exc),
                )
                raise

            delay_ms = policy.backoff_ms(attempt) + rand() * policy.max_jitter_ms
            logger.info(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                delay_ms=round(delay_ms),
                status_code=get_status_code(exc),
                error=str(exc),
            )
            await sleep(delay_ms / 1000)


def retrying(
    policy: RetryPolicy | None = None, operation: str | None = None
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator form of :func:`with_retry`.

    Usage:
        @retrying(RetryPolicy(max_attempts=5))
        async def call_api(...):
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await with_retry(
                lambda: func(*args, **kwargs),
                policy,
                operation=operation or func.__name__,
            )

        return wrapper

    return decorator


__all__ = [
    "FatalError",
    "RetryPolicy",
    "get_status_code",
    "is_fatal_error",
    "retrying",
    "with_retry",
]
