"""Bounded retry with exponential backoff for calls to external collaborators.

retry_async never raises for failures of the wrapped call: it returns a
RetryOutcome carrying either the value or the last failure, classified as
Transient (retried) or Permanent (not retried). Callers branch on the
outcome instead of catching.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt cap and backoff shape: delay = base * 2^(attempt-1), capped, ±jitter."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.2

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= 1 + random.uniform(-self.jitter, self.jitter)
        return max(delay, 0.0)


@dataclass(frozen=True)
class Transient:
    """Failure worth retrying (timeouts, throttling, 5xx)."""

    error: str


@dataclass(frozen=True)
class Permanent:
    """Failure that will not change on retry (4xx other than throttling, bad data)."""

    error: str


Failure = Transient | Permanent


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: T | None
    failure: Failure | None
    attempts: int

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def exhausted(self) -> bool:
        """True when the attempt cap was hit on transient failures."""
        return isinstance(self.failure, Transient)

    @property
    def error(self) -> str | None:
        return self.failure.error if self.failure is not None else None


def classify_exception(exc: Exception) -> Failure:
    """Default classifier.

    Errors exposing a boolean `transient` attribute decide for themselves;
    otherwise an HTTP-like `status_code` attribute is checked against
    RETRYABLE_STATUS_CODES; timeouts and connection errors are transient.
    """
    message = f"{type(exc).__name__}: {exc}"
    transient = getattr(exc, "transient", None)
    if isinstance(transient, bool):
        return Transient(message) if transient else Permanent(message)
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return Transient(message) if status_code in RETRYABLE_STATUS_CODES else Permanent(message)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return Transient(message)
    return Permanent(message)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    classify: Callable[[Exception], Failure] = classify_exception,
    *,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryOutcome[T]:
    """Run `operation` up to policy.max_attempts times.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt).
        policy: Attempt cap and backoff.
        classify: Maps an exception to Transient or Permanent.
        label: Used in log lines.
        sleep: Injected for tests.
    """
    failure: Failure | None = None
    attempt = 0
    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            failure = classify(exc)
            if isinstance(failure, Permanent):
                logger.warning(
                    "%s failed permanently on attempt %d: %s", label, attempt, failure.error
                )
                return RetryOutcome(value=None, failure=failure, attempts=attempt)
            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.info(
                    "%s failed on attempt %d/%d (%s); retrying in %.2fs",
                    label,
                    attempt,
                    policy.max_attempts,
                    failure.error,
                    delay,
                )
                await sleep(delay)
            continue
        return RetryOutcome(value=value, failure=None, attempts=attempt)
    logger.warning(
        "%s gave up after %d attempts: %s",
        label,
        attempt,
        failure.error if failure else "unknown error",
    )
    return RetryOutcome(value=None, failure=failure, attempts=attempt)
