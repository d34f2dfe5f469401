"""Sliding-window rate limiter with named budgets."""

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

SEARCH_BUDGET = "search"
LOOKUP_BUDGET = "lookup"


@dataclass(frozen=True)
class BudgetStatus:
    """Advisory view of a budget for UI warnings."""

    remaining: int
    reset_in: float


@dataclass
class RateLimitBudget:
    """Request timestamps for one named budget."""

    name: str
    max_requests: int
    window_seconds: float
    timestamps: deque[float] = field(default_factory=deque)

    def __post_init__(self) -> None:
        if self.max_requests < 1 or self.window_seconds <= 0:
            raise ValueError(f"Invalid rate limit for budget {self.name}")

    def prune(self, now: float) -> None:
        """Drop timestamps that have aged out of the window."""
        while self.timestamps and now - self.timestamps[0] >= self.window_seconds:
            self.timestamps.popleft()

    def wait_time(self, now: float) -> float:
        """Seconds until the oldest in-window request expires, or 0 if allowed."""
        if len(self.timestamps) < self.max_requests:
            return 0.0
        return max(0.0, self.window_seconds - (now - self.timestamps[0]))


class RateLimiter:
    """Process-local limiter; every check-and-record runs under one lock."""

    def __init__(
        self,
        budgets: list[RateLimitBudget],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._budgets = {budget.name: budget for budget in budgets}
        self._clock = clock
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        *,
        search_limit: int,
        search_window_seconds: float,
        lookup_limit: int,
        lookup_window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RateLimiter":
        """Create a limiter with the search and lookup budgets."""
        return cls(
            [
                RateLimitBudget(SEARCH_BUDGET, search_limit, search_window_seconds),
                RateLimitBudget(LOOKUP_BUDGET, lookup_limit, lookup_window_seconds),
            ],
            clock=clock,
        )

    @property
    def budget_names(self) -> list[str]:
        return list(self._budgets)

    def allow(self, budget: str) -> bool:
        """Return whether a request may be sent now."""
        with self._lock:
            bucket = self._bucket(budget)
            bucket.prune(self._clock())
            return len(bucket.timestamps) < bucket.max_requests

    def wait_time(self, budget: str) -> float:
        """Return seconds until a request would be allowed."""
        with self._lock:
            bucket = self._bucket(budget)
            now = self._clock()
            bucket.prune(now)
            return bucket.wait_time(now)

    def record(self, budget: str) -> None:
        """Record a sent request, whether or not it later succeeds."""
        with self._lock:
            self._bucket(budget).timestamps.append(self._clock())

    def try_acquire(self, budget: str) -> float:
        """Atomically check and record.

        Returns 0.0 when the request was recorded, otherwise the wait time.
        """
        with self._lock:
            bucket = self._bucket(budget)
            now = self._clock()
            bucket.prune(now)
            wait = bucket.wait_time(now)
            if wait > 0:
                return wait
            bucket.timestamps.append(now)
            return 0.0

    def status(self, budget: str) -> BudgetStatus:
        """Return remaining requests and seconds until the window resets."""
        with self._lock:
            bucket = self._bucket(budget)
            now = self._clock()
            bucket.prune(now)
            remaining = max(0, bucket.max_requests - len(bucket.timestamps))
            reset_in = 0.0
            if bucket.timestamps:
                reset_in = max(0.0, bucket.window_seconds - (now - bucket.timestamps[0]))
            return BudgetStatus(remaining=remaining, reset_in=reset_in)

    def _bucket(self, budget: str) -> RateLimitBudget:
        try:
            return self._budgets[budget]
        except KeyError:
            raise KeyError(f"Unknown rate limit budget: {budget}") from None
