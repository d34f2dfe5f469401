"""Error taxonomy for food data acquisition."""

import math


class FoodDataError(Exception):
    """Base error for upstream food data failures."""

    code = "FOOD_DATA_ERROR"

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(FoodDataError):
    """Caller input rejected before any network call."""

    code = "INVALID_INPUT"


class RateLimitExceededError(FoodDataError):
    """A rate budget is exhausted; `retry_after` is in seconds."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: float, budget: str | None = None) -> None:
        self.retry_after = max(0.0, retry_after)
        self.budget = budget
        super().__init__(
            f"Rate limit exceeded. Retry after {math.ceil(self.retry_after)} seconds.",
            details={"budget": budget, "retry_after": self.retry_after},
        )


class IncompleteDataError(FoodDataError):
    """The upstream record exists but lacks a name or energy value."""

    code = "INCOMPLETE_DATA"


class NetworkFailureError(FoodDataError):
    """Transport-level failure after retries were exhausted."""

    code = "NETWORK_ERROR"


class UpstreamError(FoodDataError):
    """Non-retryable or exhausted non-2xx upstream response."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, details={"status_code": status_code})


class OperationCancelledError(FoodDataError):
    """The caller cancelled the operation or its deadline passed."""

    code = "CANCELLED"
