"""Bounded exponential backoff for async calls."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .utils import log_debug

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait before retrying a transient failure."""

    max_attempts: int = 3
    initial_delay: float = 0.5  # seconds
    max_delay: float = 8.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


class RetryableError(Exception):
    """Signals a failure that is worth retrying.

    ``retry_after`` carries a server-provided delay hint in seconds.
    """

    def __init__(self, message: str, *, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Return the delay before retry number ``attempt`` (0-indexed)."""
    delay = min(policy.initial_delay * (policy.exponential_base**attempt), policy.max_delay)
    if policy.jitter:
        jitter_range = delay * 0.25
        delay += random.uniform(-jitter_range, jitter_range)
    return max(0.0, delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation``, retrying on :class:`RetryableError` up to the policy limit.

    The last ``RetryableError`` propagates once attempts are exhausted; any
    other exception propagates immediately.
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except RetryableError as exc:
            if attempt == policy.max_attempts - 1:
                raise
            delay = backoff_delay(attempt, policy)
            if exc.retry_after is not None:
                delay = min(max(delay, exc.retry_after), policy.max_delay)
            log_debug(
                f"retrying {description} in {delay:.2f}s "
                f"(attempt {attempt + 2}/{policy.max_attempts}): {exc}"
            )
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
