"""Tests for the retry controller."""

import asyncio
from dataclasses import dataclass, field

import httpx
import pytest

from food_engine.domain.errors import (
    NetworkFailureError,
    OperationCancelledError,
    RateLimitExceededError,
    UpstreamError,
)
from food_engine.services.rate_limiter import SEARCH_BUDGET, RateLimiter
from food_engine.services.retry import (
    CancelSignal,
    RetryController,
    RetryPolicy,
    compute_backoff,
    parse_retry_after,
)
from tests.conftest import RecordingSleep


@dataclass
class ScriptedOperation:
    """Returns scripted responses or raises scripted errors in order."""

    outcomes: list[httpx.Response | Exception]
    calls: int = 0
    on_call: list = field(default_factory=list)

    async def __call__(self) -> httpx.Response:
        self.calls += 1
        for hook in self.on_call:
            hook()
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _controller(
    rate_limiter: RateLimiter, clock, **policy
) -> tuple[RetryController, RecordingSleep]:
    sleep = RecordingSleep(clock=clock)
    controller = RetryController(
        rate_limiter=rate_limiter,
        policy=RetryPolicy(**policy),
        sleep=sleep,
        rand=lambda: 0.0,
    )
    return controller, sleep


def test_success_returns_response(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation([httpx.Response(200, json={"ok": True})])

    response = asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert response.json() == {"ok": True}
    assert operation.calls == 1
    assert sleep.delays == []
    assert rate_limiter.status(SEARCH_BUDGET).remaining == 9


def test_server_errors_retry_with_backoff(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation(
        [httpx.Response(503), httpx.Response(502), httpx.Response(200)]
    )

    response = asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert response.status_code == 200
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert rate_limiter.status(SEARCH_BUDGET).remaining == 7


def test_exhausted_server_errors_raise_upstream_error(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation([httpx.Response(503)])

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert excinfo.value.status_code == 503
    assert operation.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_network_errors_retry_then_raise(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation([httpx.ConnectError("connection refused")])

    with pytest.raises(NetworkFailureError):
        asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert operation.calls == 4
    assert len(sleep.delays) == 3


def test_network_error_then_success(rate_limiter, clock) -> None:
    controller, _ = _controller(rate_limiter, clock)
    operation = ScriptedOperation(
        [httpx.ReadTimeout("timed out"), httpx.Response(200, json={})]
    )

    response = asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert response.status_code == 200
    assert operation.calls == 2


def test_client_errors_fail_without_retry(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation([httpx.Response(400)])

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert excinfo.value.status_code == 400
    assert operation.calls == 1
    assert sleep.delays == []


def test_not_found_passes_through(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation([httpx.Response(404)])

    response = asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert response.status_code == 404
    assert operation.calls == 1
    assert sleep.delays == []


def test_upstream_429_honours_retry_after(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation(
        [httpx.Response(429, headers={"Retry-After": "7"}), httpx.Response(200)]
    )

    response = asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert response.status_code == 200
    assert sleep.delays == [7.0]


def test_upstream_429_on_final_attempt_raises(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    operation = ScriptedOperation([httpx.Response(429)])

    with pytest.raises(RateLimitExceededError) as excinfo:
        asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert excinfo.value.retry_after == 60
    assert sleep.delays == [60.0, 60.0, 60.0]


def test_local_budget_waits_on_non_final_attempt(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock)
    for _ in range(10):
        rate_limiter.record(SEARCH_BUDGET)
    clock.advance(5)
    operation = ScriptedOperation([httpx.Response(200)])

    asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert sleep.delays == [pytest.approx(55)]
    assert operation.calls == 1


def test_local_budget_fails_fast_on_final_attempt(rate_limiter, clock) -> None:
    controller, sleep = _controller(rate_limiter, clock, max_attempts=1)
    for _ in range(10):
        rate_limiter.record(SEARCH_BUDGET)
    operation = ScriptedOperation([httpx.Response(200)])

    with pytest.raises(RateLimitExceededError) as excinfo:
        asyncio.run(controller.execute(operation, SEARCH_BUDGET))

    assert excinfo.value.retry_after == 60
    assert excinfo.value.budget == SEARCH_BUDGET
    assert operation.calls == 0
    assert sleep.delays == []


def test_eleventh_search_in_window_is_refused(rate_limiter, clock) -> None:
    controller, _ = _controller(rate_limiter, clock, max_attempts=1)
    operation = ScriptedOperation([httpx.Response(200)])

    async def issue_calls() -> None:
        for _ in range(10):
            await controller.execute(operation, SEARCH_BUDGET)
            clock.advance(0.5)
        await controller.execute(operation, SEARCH_BUDGET)

    with pytest.raises(RateLimitExceededError) as excinfo:
        asyncio.run(issue_calls())

    assert operation.calls == 10
    assert excinfo.value.retry_after > 0


def test_backoff_is_monotonic_capped_and_non_negative() -> None:
    policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.25)

    delays = [compute_backoff(policy, attempt, rand=lambda: 0.0) for attempt in range(8)]

    assert delays == sorted(delays)
    assert delays[:5] == [1.0, 2.0, 4.0, 8.0, 10.0]
    assert all(delay >= 0 for delay in delays)
    assert compute_backoff(policy, 2, rand=lambda: 1.0) == pytest.approx(5.0)
    assert compute_backoff(policy, 10, rand=lambda: 1.0) == pytest.approx(12.5)


def test_parse_retry_after_variants() -> None:
    assert parse_retry_after("12", 60) == 12
    assert parse_retry_after(None, 60) == 60
    assert parse_retry_after("soon", 60) == 60
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", 60) == 0


def test_parse_retry_after_rejects_non_finite_seconds() -> None:
    assert parse_retry_after("inf", 60) == 60
    assert parse_retry_after("nan", 60) == 60
    assert parse_retry_after("-5", 60) == 0


def test_invalid_policy_rejected() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_cancel_short_circuits_pending_backoff(rate_limiter) -> None:
    controller = RetryController(
        rate_limiter=rate_limiter,
        policy=RetryPolicy(base_delay=30, max_delay=30),
    )
    operation = ScriptedOperation([httpx.Response(503)])

    async def run() -> None:
        signal = CancelSignal()
        asyncio.get_running_loop().call_later(0.05, signal.cancel)
        await asyncio.wait_for(
            controller.execute(operation, SEARCH_BUDGET, cancel=signal), timeout=5
        )

    with pytest.raises(OperationCancelledError):
        asyncio.run(run())

    assert operation.calls == 1


def test_cancel_inside_operation_stops_retries(rate_limiter, clock) -> None:
    controller, _ = _controller(rate_limiter, clock)
    signal = CancelSignal()
    operation = ScriptedOperation([httpx.Response(500)], on_call=[signal.cancel])

    with pytest.raises(OperationCancelledError):
        asyncio.run(controller.execute(operation, SEARCH_BUDGET, cancel=signal))

    assert operation.calls == 1


def test_expired_deadline_fails_before_calling(rate_limiter, clock) -> None:
    controller, _ = _controller(rate_limiter, clock)
    signal = CancelSignal(deadline=clock.now, clock=clock)
    operation = ScriptedOperation([httpx.Response(200)])

    with pytest.raises(OperationCancelledError) as excinfo:
        asyncio.run(controller.execute(operation, SEARCH_BUDGET, cancel=signal))

    assert "deadline" in excinfo.value.message
    assert operation.calls == 0
