"""Retry controller with backoff, rate budgets and cancellation."""

import asyncio
import contextlib
import logging
import math
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TypeVar

import httpx

from food_engine.domain.errors import (
    NetworkFailureError,
    OperationCancelledError,
    RateLimitExceededError,
    UpstreamError,
)
from food_engine.services.rate_limiter import RateLimiter

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_HTTP_NOT_FOUND = 404
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_SERVER_ERROR = 500


@dataclass(frozen=True)
class RetryPolicy:
    """Static retry configuration. Delays are in seconds."""

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 0.25
    rate_limit_fallback_delay: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("Retry delays and jitter must be non-negative")


def compute_backoff(
    policy: RetryPolicy,
    attempt: int,
    rand: Callable[[], float] = random.random,
) -> float:
    """Exponential backoff for a zero-based attempt index, plus additive jitter."""
    delay = min(policy.base_delay * (2**attempt), policy.max_delay)
    return delay + rand() * policy.jitter * delay


def parse_retry_after(value: str | None, fallback: float) -> float:
    """Parse a Retry-After header given as seconds or an HTTP date."""
    if not value:
        return fallback
    value = value.strip()
    with contextlib.suppress(ValueError):
        seconds = float(value)
        return max(0.0, seconds) if math.isfinite(seconds) else fallback
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return fallback
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max(0.0, (retry_at - datetime.now(tz=UTC)).total_seconds())


class CancelSignal:
    """Caller-owned cancellation with an optional deadline.

    Sleeps and in-flight calls raced against the signal fail with
    `OperationCancelledError` once `cancel()` is called or the deadline passes.
    """

    def __init__(
        self,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.deadline = deadline
        self._clock = clock
        self._event = asyncio.Event()
        self._reason = "Operation cancelled"

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelSignal":
        """Create a signal that expires `seconds` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "Operation cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason)
        if self.expired:
            raise OperationCancelledError("Operation deadline exceeded")

    async def run(self, awaitable: Awaitable[_T]) -> _T:
        """Await `awaitable` unless the signal fires first."""
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            if not self.cancelled:
                await asyncio.wait(
                    {task, waiter},
                    timeout=self.remaining(),
                    return_when=asyncio.FIRST_COMPLETED,
                )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self.raise_if_cancelled()
        raise OperationCancelledError("Operation deadline exceeded")


@dataclass
class RetryController:
    """Runs upstream calls against a rate budget with bounded retries."""

    rate_limiter: RateLimiter
    policy: RetryPolicy
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    rand: Callable[[], float] = random.random

    async def execute(
        self,
        operation: Callable[[], Awaitable[httpx.Response]],
        budget: str,
        policy: RetryPolicy | None = None,
        cancel: CancelSignal | None = None,
    ) -> httpx.Response:
        """Run `operation`, retrying rate limits, network errors and 5xx.

        A 404 response is returned as-is; other 4xx responses fail at once.
        """
        policy = policy or self.policy
        last_attempt = policy.max_attempts - 1
        for attempt in range(policy.max_attempts):
            await self._acquire(budget, final=attempt == last_attempt, cancel=cancel)
            try:
                response = await self._run(operation(), cancel)
            except httpx.TransportError as exc:
                if attempt == last_attempt:
                    raise NetworkFailureError(
                        "Failed to connect to the food database",
                        details={"error": str(exc), "attempts": attempt + 1},
                    ) from exc
                delay = compute_backoff(policy, attempt, self.rand)
                _logger.warning(
                    "Upstream %s request failed (attempt %s/%s): %s; retrying in %.2fs",
                    budget,
                    attempt + 1,
                    policy.max_attempts,
                    exc,
                    delay,
                )
                await self._pause(delay, cancel)
                continue

            status_code = response.status_code
            if status_code == _HTTP_TOO_MANY_REQUESTS:
                delay = parse_retry_after(
                    response.headers.get("Retry-After"),
                    policy.rate_limit_fallback_delay,
                )
                if attempt == last_attempt:
                    raise RateLimitExceededError(delay, budget=budget)
                _logger.warning(
                    "Upstream rate limited %s request; waiting %.2fs", budget, delay
                )
                await self._pause(delay, cancel)
                continue
            if status_code >= _HTTP_SERVER_ERROR:
                if attempt == last_attempt:
                    raise UpstreamError(
                        f"HTTP error {status_code}: {response.reason_phrase}",
                        status_code=status_code,
                    )
                delay = compute_backoff(policy, attempt, self.rand)
                _logger.warning(
                    "Upstream %s returned %s (attempt %s/%s); retrying in %.2fs",
                    budget,
                    status_code,
                    attempt + 1,
                    policy.max_attempts,
                    delay,
                )
                await self._pause(delay, cancel)
                continue
            if response.is_success or status_code == _HTTP_NOT_FOUND:
                return response
            raise UpstreamError(
                f"HTTP error {status_code}: {response.reason_phrase}",
                status_code=status_code,
            )
        raise NetworkFailureError("Maximum retries exceeded")

    async def _acquire(
        self, budget: str, *, final: bool, cancel: CancelSignal | None
    ) -> None:
        while True:
            wait = self.rate_limiter.try_acquire(budget)
            if wait <= 0:
                return
            if final:
                raise RateLimitExceededError(wait, budget=budget)
            _logger.info("Rate budget %s exhausted; waiting %.2fs", budget, wait)
            await self._pause(wait, cancel)

    async def _pause(self, delay: float, cancel: CancelSignal | None) -> None:
        await self._run(self.sleep(delay), cancel)

    async def _run(self, awaitable: Awaitable[_T], cancel: CancelSignal | None) -> _T:
        if cancel is None:
            return await awaitable
        return await cancel.run(awaitable)
